"""
Mail transports — hand a built message to an SMTP relay.

Each send gets its own transport instance. A transport connects lazily
on its first ``send`` and must be closed by its owner exactly once.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from typing import Any, Callable

from mail_dispatch.config import TransportSettings
from mail_dispatch.mailer.message import EmailMessage

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """The relay refused the message or could not be reached."""


class Transport(ABC):
    """Base class for mail transports."""

    def __init__(self, settings: TransportSettings) -> None:
        self.settings = settings
        self.closed = False

    @abstractmethod
    def send(self, message: EmailMessage) -> None:
        """Transmit ``message``; raise TransportError on failure."""

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


TransportFactory = Callable[[TransportSettings], Transport]


class SmtpTransport(Transport):
    """
    Send messages through an SMTP relay with smtplib.

    Usage:
        with SmtpTransport(settings) as transport:
            transport.send(message)
    """

    def __init__(self, settings: TransportSettings) -> None:
        super().__init__(settings)
        self._server: smtplib.SMTP | None = None

    def send(self, message: EmailMessage) -> None:
        mime = message.to_mime()
        try:
            if self._server is None:
                self._server = self._connect()
            self._server.send_message(
                mime,
                from_addr=message.from_address,
                to_addrs=message.envelope_recipients,
            )
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(str(e) or e.__class__.__name__) from e

        logger.debug("Relay accepted message for %s", message.to)

    def close(self) -> None:
        server, self._server = self._server, None
        if server is not None:
            try:
                server.quit()
            except (smtplib.SMTPException, OSError) as e:
                logger.debug("QUIT failed (%s); dropping connection", e)
                server.close()
        super().close()

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        kwargs: dict[str, Any] = {}
        if s.timeout is not None:
            kwargs["timeout"] = s.timeout

        logger.debug("Connecting to %s:%d (tls=%s)", s.host, s.port, s.use_tls)
        server = smtplib.SMTP(s.host, s.port, **kwargs)
        try:
            if s.use_tls:
                context = ssl.create_default_context()
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
            if s.username:
                server.login(s.username, s.password)
        except BaseException:
            server.close()
            raise
        return server


class DryRunTransport(Transport):
    """Render messages without any network I/O."""

    def __init__(self, settings: TransportSettings) -> None:
        super().__init__(settings)
        self.sent: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> None:
        size = len(message.to_mime().as_bytes())
        logger.info(
            "[dry run] %s -> %s (cc: %d, attachments: %d, %d bytes)",
            message.from_address, message.to, len(message.cc), len(message.attachments), size,
        )
        self.sent.append(message)
