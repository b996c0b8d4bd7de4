"""
Utility modules for Safe Traveler Buddy

- notifications: SMS and email channels (log-only stubs or live providers)
"""

from .notifications import (
    SMSSender,
    EmailSender,
    LoggingSMSService,
    LoggingEmailService,
    SMSService,
    EmailService,
    build_notification_services
)

__all__ = [
    "SMSSender",
    "EmailSender",
    "LoggingSMSService",
    "LoggingEmailService",
    "SMSService",
    "EmailService",
    "build_notification_services"
]
