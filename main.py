"""
MyRevuHQ - Web Server Entry Point
=================================

Run this to start the API server:
    python main.py

Then open http://127.0.0.1:8000/docs in your browser.

To send scheduled SMS without an external cron:
    python run_scheduler.py
"""

import logging
import os

import uvicorn

from myrevuhq.infrastructure.config import get_settings

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """Start the web server."""
    settings = get_settings()
    for issue in settings.validate():
        logger.warning(issue)

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))

    print("\n" + "=" * 50)
    print("   MyRevuHQ - API Server")
    print("=" * 50)
    print(f"\n   Starting server at http://{host}:{port}")
    print("   Press Ctrl+C to stop\n")

    uvicorn.run(
        "myrevuhq.web.app:app",
        host=host,
        port=port,
        reload=not settings.app.is_production,
        log_level="info"
    )


if __name__ == "__main__":
    main()
