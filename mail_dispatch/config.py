"""
Dispatch configuration model.

Defines the transport settings, message template, and recipient list
read from an ``appsettings.json``-style document. Passwords may be
given inline or sourced from an environment variable.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "appsettings.json"


class ConfigError(ValueError):
    """Raised when the settings file is missing, unreadable, or incomplete."""


@dataclass(frozen=True)
class TransportSettings:
    """SMTP connection settings shared by every send.

    Attributes:
        host: SMTP relay host name.
        port: SMTP relay port.
        use_tls: Upgrade the connection with STARTTLS before login.
        username: Login name; no login is attempted when empty.
        password: Login secret (app password).
        timeout: Socket timeout in seconds handed to smtplib.
    """

    host: str = "smtp.gmail.com"
    port: int = 587
    use_tls: bool = True
    username: str = ""
    password: str = field(default="", repr=False)
    timeout: Optional[float] = None


@dataclass(frozen=True)
class MessageTemplate:
    """Sender identity and the fixed subject/body sent to everyone."""

    sender_name: str
    sender_address: str
    subject: str
    body: str


@dataclass
class Recipient:
    """A single send target.

    Attributes:
        name: Display name used for every address of this recipient.
        emails: Ordered addresses; the first is To, the rest are CC.
        attachments: File names relative to the attachment folder.
    """

    name: str
    emails: list[str] = field(default_factory=list)
    attachments: list[str] = field(default_factory=list)

    @property
    def primary_address(self) -> str:
        if not self.emails:
            raise ValueError(f"Recipient '{self.name}' has no email address")
        return self.emails[0]

    @property
    def cc_addresses(self) -> list[str]:
        return self.emails[1:]


@dataclass
class DispatchConfig:
    """Everything needed to run one dispatch."""

    transport: TransportSettings
    template: MessageTemplate
    attachment_folder: Path
    recipients: list[Recipient] = field(default_factory=list)

    def attachment_count(self) -> int:
        """Return the total number of attachments across all recipients."""
        return sum(len(r.attachments) for r in self.recipients)


def load_config(config_path: str | Path = DEFAULT_SETTINGS_FILE) -> DispatchConfig:
    """Load a DispatchConfig from a JSON settings file.

    The document is expected to hold an ``AppSettings`` object with
    ``SmtpSettings`` and ``EmailSettings`` sections. SMTP fields fall back
    to TransportSettings defaults; every EmailSettings field is required.
    ``SmtpSettings.AppPasswordEnv`` names an environment variable to read
    the password from when ``AppPassword`` is absent.

    A relative ``AttachmentFolder`` is resolved against the working
    directory, not the settings file.

    Raises:
        ConfigError: If the file is missing or malformed, or a required
            field is absent.
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw: dict[str, Any] = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read settings file {path}: {e}") from e

    app = _section(raw, "AppSettings")
    smtp = _section(app, "SmtpSettings", "AppSettings")
    email = _section(app, "EmailSettings", "AppSettings")

    # --- Transport ---
    password = smtp.get("AppPassword")
    password_env = smtp.get("AppPasswordEnv", "")
    if password is None and password_env:
        password = os.environ.get(password_env, "")
        if not password:
            logger.warning("Environment variable %s is not set; sending without a password", password_env)

    defaults = TransportSettings()
    try:
        transport = TransportSettings(
            host=str(smtp.get("Host", defaults.host)),
            port=int(smtp.get("Port", defaults.port)),
            use_tls=bool(smtp.get("UseSsl", defaults.use_tls)),
            username=str(smtp.get("UserName", defaults.username)),
            password=str(password or ""),
            timeout=float(smtp["Timeout"]) if smtp.get("Timeout") is not None else None,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid SmtpSettings: {e}") from e

    # --- Template ---
    template = MessageTemplate(
        sender_name=_required(email, "Sender"),
        sender_address=_required(email, "SenderEmail"),
        subject=_required(email, "Subject"),
        body=_required(email, "Body"),
    )
    attachment_folder = Path(_required(email, "AttachmentFolder"))

    # --- Recipients ---
    entries = email.get("Recipients")
    if not isinstance(entries, list):
        raise ConfigError("Missing required setting: EmailSettings.Recipients")

    recipients: list[Recipient] = []
    for i, entry in enumerate(entries):
        where = f"EmailSettings.Recipients[{i}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"{where} must be an object")
        recipients.append(
            Recipient(
                name=_required(entry, "Name", where),
                emails=_string_list(entry, "Emails", where),
                attachments=_string_list(entry, "Attachments", where),
            )
        )

    logger.debug(
        "Loaded %d recipient(s) from %s (smtp %s:%d)",
        len(recipients), path, transport.host, transport.port,
    )

    return DispatchConfig(
        transport=transport,
        template=template,
        attachment_folder=attachment_folder,
        recipients=recipients,
    )


def _section(raw: dict[str, Any], key: str, parent: str = "") -> dict[str, Any]:
    value = raw.get(key) if isinstance(raw, dict) else None
    if not isinstance(value, dict):
        name = f"{parent}.{key}" if parent else key
        raise ConfigError(f"Missing required section: {name}")
    return value


def _required(raw: dict[str, Any], key: str, where: str = "EmailSettings") -> str:
    value = raw.get(key)
    if value is None:
        raise ConfigError(f"Missing required setting: {where}.{key}")
    return str(value)


def _string_list(raw: dict[str, Any], key: str, where: str) -> list[str]:
    value = raw.get(key)
    if not isinstance(value, list):
        raise ConfigError(f"Missing required setting: {where}.{key}")
    return [str(v) for v in value]
