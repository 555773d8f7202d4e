from .messaging_provider import (
    ConsoleProvider,
    MessagingError,
    MessagingProvider,
    SentMessage,
    TwilioProvider,
    build_messaging_provider,
)

__all__ = [
    "ConsoleProvider",
    "MessagingError",
    "MessagingProvider",
    "SentMessage",
    "TwilioProvider",
    "build_messaging_provider",
]
