"""Subscription tiers, their monthly SMS allowance and feature gates."""

from dataclasses import dataclass
from typing import Dict, Optional

UNLIMITED_SMS = 999999


@dataclass(frozen=True)
class PricingPlan:
    id: str
    name: str
    price: float
    sms_limit: int
    description: str


PRICING_PLANS: Dict[str, PricingPlan] = {
    # Development tier mirrors Business so every feature can be exercised
    "free": PricingPlan("free", "Free (Dev)", 0.0, 60, "Development testing only"),
    "starter": PricingPlan("starter", "Starter", 4.99, 15, "Perfect for small businesses getting started"),
    "pro": PricingPlan("pro", "Pro", 9.99, 30, "Ideal for growing businesses"),
    "business": PricingPlan("business", "Business", 19.99, 60, "For established businesses with high volume"),
    "enterprise": PricingPlan("enterprise", "Enterprise", 0.0, UNLIMITED_SMS, "Custom volume, contact sales"),
}


def sms_limit_for_tier(tier: Optional[str]) -> int:
    """Monthly SMS allowance. No tier means no access."""
    plan = PRICING_PLANS.get(tier or "")
    return plan.sms_limit if plan else 0


def is_known_tier(tier: Optional[str]) -> bool:
    return (tier or "") in PRICING_PLANS


def has_analytics(tier: Optional[str]) -> bool:
    return tier in ("pro", "business")


def has_customer_analytics(tier: Optional[str]) -> bool:
    return tier == "business"
