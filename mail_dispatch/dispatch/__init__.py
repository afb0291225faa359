"""
Dispatch layer — fan a single message out to every configured recipient
and collect one outcome per recipient.
"""

from mail_dispatch.config import (
    ConfigError,
    DispatchConfig,
    MessageTemplate,
    Recipient,
    TransportSettings,
    load_config,
)
from mail_dispatch.dispatch.runner import (
    DispatchReport,
    Dispatcher,
    OutcomeKind,
    SendOutcome,
)

__all__ = [
    "ConfigError",
    "DispatchConfig",
    "DispatchReport",
    "Dispatcher",
    "MessageTemplate",
    "OutcomeKind",
    "Recipient",
    "SendOutcome",
    "TransportSettings",
    "load_config",
]
