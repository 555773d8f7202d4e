import logging

from fastapi import APIRouter, Request

from myrevuhq.infrastructure.geo import DEFAULT_COUNTRY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/geo", tags=["geo"])

COUNTRY_HEADERS = (
    ("x-vercel-ip-country", "vercel-header"),
    ("cf-ipcountry", "cloudflare-header"),
)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else "")


@router.get("/detect-country")
def detect_country(request: Request):
    """Default phone country for the signup form."""
    ip = _client_ip(request)

    for header, method in COUNTRY_HEADERS:
        code = request.headers.get(header, "").strip().upper()
        if code:
            logger.info(f"[Geo] Detected country: {code} (via {method}, IP: {ip})")
            return {"country": code, "method": method, "ip": ip}

    code = request.app.state.country_lookup.country_for_ip(ip)
    if code:
        logger.info(f"[Geo] Detected country: {code} (via IP API, IP: {ip})")
        return {"country": code, "method": "ip-api", "ip": ip}

    return {"country": DEFAULT_COUNTRY, "method": "fallback", "ip": ip}
