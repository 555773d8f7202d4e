"""Inbound SMS keyword classification (carrier opt-out / opt-in rules)."""

from enum import Enum

OPT_OUT_KEYWORDS = frozenset(
    ["STOP", "CANCEL", "UNSUBSCRIBE", "QUIT", "END", "REVOKE", "STOPALL", "OPTOUT"]
)
OPT_IN_KEYWORDS = frozenset(["START", "UNSTOP", "YES"])


class InboundIntent(Enum):
    OPT_OUT = "opt_out"
    OPT_IN = "opt_in"
    OTHER = "other"


def classify_inbound(body: str) -> InboundIntent:
    """Only an exact keyword (case-insensitive, trimmed) counts."""
    keyword = (body or "").strip().upper()
    if keyword in OPT_OUT_KEYWORDS:
        return InboundIntent.OPT_OUT
    if keyword in OPT_IN_KEYWORDS:
        return InboundIntent.OPT_IN
    return InboundIntent.OTHER
