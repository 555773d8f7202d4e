from fastapi import APIRouter

from myrevuhq import __version__
from myrevuhq.domain.models import to_iso, utc_now

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok", "version": __version__, "timestamp": to_iso(utc_now())}
