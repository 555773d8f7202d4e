# Presentation layer: FastAPI app, routers, request schemas and dependencies
