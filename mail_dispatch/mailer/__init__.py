"""
Message building and SMTP transports.
"""

from mail_dispatch.mailer.message import (
    AttachmentFile,
    EmailMessage,
    InvalidAddressError,
    build_message,
)
from mail_dispatch.mailer.transport import (
    DryRunTransport,
    SmtpTransport,
    Transport,
    TransportError,
)

__all__ = [
    "AttachmentFile",
    "EmailMessage",
    "InvalidAddressError",
    "build_message",
    "DryRunTransport",
    "SmtpTransport",
    "Transport",
    "TransportError",
]
