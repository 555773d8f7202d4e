from .settings import (
    AppSettings,
    EmailSettings,
    Settings,
    StripeSettings,
    SupabaseSettings,
    TwilioSettings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "EmailSettings",
    "Settings",
    "StripeSettings",
    "SupabaseSettings",
    "TwilioSettings",
    "get_settings",
]
