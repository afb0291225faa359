"""
Message construction — turns a recipient and the shared template into a
MIME-compliant email with To/CC headers and file attachments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, format_datetime
from pathlib import Path
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from mail_dispatch.config import MessageTemplate, Recipient


class InvalidAddressError(ValueError):
    """Raised when an email address cannot be used in a message header."""


def validate_address(address: str) -> str:
    """Return the normalized address, or raise InvalidAddressError.

    Syntax only: no DNS lookups, and dotless or quoted-local addresses are
    accepted the way a mail client would accept them.
    """
    candidate = (address or "").strip()
    try:
        info = validate_email(
            candidate,
            check_deliverability=False,
            globally_deliverable=False,
            allow_quoted_local=True,
        )
    except EmailNotValidError as e:
        raise InvalidAddressError(
            f"The specified string is not a valid email address: '{address}' ({e})"
        ) from e
    return info.normalized


@dataclass
class AttachmentFile:
    """A file loaded for attachment, with its filesystem timestamps."""

    path: Path
    content: bytes
    created: datetime
    modified: datetime
    read: datetime

    @classmethod
    def load(cls, path: Path) -> "AttachmentFile":
        stat = path.stat()
        # st_birthtime only exists on some platforms; st_ctime is the fallback
        created = getattr(stat, "st_birthtime", stat.st_ctime)
        return cls(
            path=path,
            content=path.read_bytes(),
            created=datetime.fromtimestamp(created).astimezone(),
            modified=datetime.fromtimestamp(stat.st_mtime).astimezone(),
            read=datetime.fromtimestamp(stat.st_atime).astimezone(),
        )

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass
class EmailMessage:
    """A fully formed email ready to hand to a transport."""

    from_address: str
    from_name: str
    to: str
    subject: str
    body_text: str
    display_name: str = ""
    cc: list[str] = field(default_factory=list)
    attachments: list[AttachmentFile] = field(default_factory=list)
    closed: bool = False

    @property
    def envelope_recipients(self) -> list[str]:
        return [self.to, *self.cc]

    def to_mime(self) -> MIMEMultipart:
        if self.closed:
            raise RuntimeError("Cannot render a closed message")

        msg = MIMEMultipart("mixed")
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = formataddr((self.display_name, self.to))
        if self.cc:
            msg["Cc"] = ", ".join(formataddr((self.display_name, addr)) for addr in self.cc)
        msg["Subject"] = self.subject
        msg.attach(MIMEText(self.body_text, "plain", "utf-8"))

        for attachment in self.attachments:
            part = MIMEApplication(attachment.content, Name=attachment.filename)
            # RFC 2183 date parameters
            part.add_header(
                "Content-Disposition",
                "attachment",
                filename=attachment.filename,
                creation_date=format_datetime(attachment.created),
                modification_date=format_datetime(attachment.modified),
                read_date=format_datetime(attachment.read),
            )
            msg.attach(part)

        return msg

    def close(self) -> None:
        """Drop loaded attachment content. Safe to call more than once."""
        self.attachments.clear()
        self.closed = True


def resolve_attachment(attachment_folder: Path, filename: str) -> Path:
    """Join an attachment filename onto the configured folder."""
    return Path(attachment_folder) / filename


def build_message(
    recipient: Recipient,
    template: MessageTemplate,
    attachment_folder: Path,
    message: Optional[EmailMessage] = None,
) -> EmailMessage:
    """
    Build the message for one recipient.

    The first address becomes To and the remaining addresses become CC,
    all under the recipient's name. Attachments are resolved against
    ``attachment_folder`` and loaded, timestamps included, from the
    resolved path.

    When ``message`` is given it is filled in place, so a caller holding
    it can still close it if loading an attachment fails halfway.

    Raises:
        ValueError: If the recipient has no address.
        InvalidAddressError: If any address is malformed.
        OSError: If an attachment cannot be read.
    """
    to_address = validate_address(recipient.primary_address)
    cc = [validate_address(addr) for addr in recipient.cc_addresses]

    if message is None:
        message = blank_message()
    message.from_address = validate_address(template.sender_address)
    message.from_name = template.sender_name
    message.to = to_address
    message.cc = cc
    message.display_name = recipient.name
    message.subject = template.subject
    message.body_text = template.body

    for filename in recipient.attachments:
        path = resolve_attachment(attachment_folder, filename)
        message.attachments.append(AttachmentFile.load(path))

    return message


def blank_message() -> EmailMessage:
    return EmailMessage(from_address="", from_name="", to="", subject="", body_text="")
