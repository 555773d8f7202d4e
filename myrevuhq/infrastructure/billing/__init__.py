from .stripe_client import StripeClient, StripeError, build_stripe_client

__all__ = ["StripeClient", "StripeError", "build_stripe_client"]
