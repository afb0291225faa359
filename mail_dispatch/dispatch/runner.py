"""
Dispatch runner — sends the shared message to every recipient concurrently.

Each recipient gets its own transport client, its own message, and a
single-fulfillment outcome future. The future is resolved exactly once,
either by the transmission's completion callback or by the synchronous
failure path, so ``dispatch_all`` always returns one outcome per recipient.
"""

from __future__ import annotations

import enum
import logging
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Optional, Sequence

from mail_dispatch.config import DispatchConfig, MessageTemplate, Recipient, TransportSettings
from mail_dispatch.mailer.message import EmailMessage, blank_message, build_message
from mail_dispatch.mailer.transport import (
    DryRunTransport,
    SmtpTransport,
    Transport,
    TransportFactory,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 16


class OutcomeKind(enum.Enum):
    """Terminal classification of one recipient's send."""

    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"
    EXCEPTION = "exception"


@dataclass(frozen=True)
class SendOutcome:
    """Result of sending to a single recipient.

    ``to`` is always the recipient's configured name, whichever path
    produced the outcome.
    """

    to: str
    kind: OutcomeKind
    reason: str = ""

    @property
    def delivered(self) -> bool:
        return self.kind is OutcomeKind.DELIVERED

    @property
    def status(self) -> str:
        if self.kind is OutcomeKind.DELIVERED:
            return "has been sent ✅"
        if self.kind is OutcomeKind.CANCELLED:
            return "Cancelled"
        if self.kind is OutcomeKind.FAILED:
            return f"Failed: {self.reason}"
        return f"Exception: {self.reason}"

    def format_line(self) -> str:
        return f"{self.to} {self.status}"


@dataclass
class DispatchReport:
    """Summary of a full dispatch run."""

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    dry_run: bool = False
    outcomes: list[SendOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def delivered(self) -> int:
        return sum(1 for o in self.outcomes if o.delivered)

    @property
    def failed(self) -> int:
        return self.total - self.delivered

    def count(self, kind: OutcomeKind) -> int:
        return sum(1 for o in self.outcomes if o.kind is kind)

    def summary(self) -> str:
        """Format a human-readable dispatch summary."""
        mode = "DRY RUN" if self.dry_run else "LIVE"
        lines = [
            f"=== Dispatch Report ({mode}) ===",
            f"Started:    {self.started_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        ]
        if self.completed_at:
            elapsed = (self.completed_at - self.started_at).total_seconds()
            lines.append(
                f"Finished:   {self.completed_at.strftime('%Y-%m-%d %H:%M:%S UTC')} in {elapsed:.1f}s"
            )
        lines.extend([
            f"Recipients: {self.total}",
            f"Delivered:  {self.delivered}",
            f"Cancelled:  {self.count(OutcomeKind.CANCELLED)}",
            f"Failed:     {self.count(OutcomeKind.FAILED)}",
            f"Exceptions: {self.count(OutcomeKind.EXCEPTION)}",
            "=== End Report ===",
        ])
        return "\n".join(lines)


@dataclass
class _SendState:
    """Everything owned by one in-flight send."""

    recipient: Recipient
    outcome: Future
    transport: Optional[Transport] = None
    message: Optional[EmailMessage] = None

    def release(self) -> None:
        message, self.message = self.message, None
        transport, self.transport = self.transport, None
        if message is not None:
            message.close()
        if transport is not None:
            try:
                transport.close()
            except Exception:
                logger.warning("Closing transport for %s failed", self.recipient.name, exc_info=True)

    def resolve(self, kind: OutcomeKind, reason: str = "") -> None:
        try:
            self.release()
        finally:
            self.outcome.set_result(SendOutcome(self.recipient.name, kind, reason))


class Dispatcher:
    """
    Send one templated email per recipient, all at once.

    Usage:
        config = load_config("appsettings.json")
        dispatcher = Dispatcher.from_config(config)
        for outcome in dispatcher.dispatch_all(config.recipients):
            print(outcome.format_line())
    """

    def __init__(
        self,
        template: MessageTemplate,
        transport_settings: TransportSettings,
        attachment_folder: Path,
        transport_factory: Optional[TransportFactory] = None,
        max_workers: Optional[int] = None,
        dry_run: bool = False,
    ) -> None:
        self.template = template
        self.transport_settings = transport_settings
        self.attachment_folder = Path(attachment_folder)
        self.dry_run = dry_run
        if transport_factory is None:
            transport_factory = DryRunTransport if dry_run else SmtpTransport
        self.transport_factory = transport_factory
        self.max_workers = max_workers

    @classmethod
    def from_config(cls, config: DispatchConfig, **kwargs) -> "Dispatcher":
        return cls(
            template=config.template,
            transport_settings=config.transport,
            attachment_folder=config.attachment_folder,
            **kwargs,
        )

    def send_one(self, recipient: Recipient, executor: Executor) -> Future:
        """
        Start sending to ``recipient`` and return its outcome future.

        Never raises: failures while building or submitting the message
        resolve the future with an EXCEPTION outcome instead.
        """
        state = _SendState(recipient=recipient, outcome=Future())
        try:
            state.transport = self.transport_factory(self.transport_settings)
            state.message = blank_message()
            build_message(recipient, self.template, self.attachment_folder, message=state.message)
            transmission = executor.submit(state.transport.send, state.message)
        except Exception as e:
            logger.debug("Send to %s failed before submission", recipient.name, exc_info=True)
            state.resolve(OutcomeKind.EXCEPTION, str(e) or e.__class__.__name__)
            return state.outcome

        transmission.add_done_callback(partial(self._on_complete, state))
        return state.outcome

    def dispatch_all(self, recipients: Sequence[Recipient]) -> list[SendOutcome]:
        """
        Send to every recipient concurrently and wait for all outcomes.

        Returns one outcome per recipient, in recipient order.
        """
        if not recipients:
            return []

        workers = self.max_workers or min(len(recipients), DEFAULT_MAX_WORKERS)
        logger.info("Dispatching to %d recipient(s) with %d worker(s)", len(recipients), workers)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mail-dispatch") as executor:
            pending = [self.send_one(r, executor) for r in recipients]
            return [f.result() for f in pending]

    def run(self, recipients: Sequence[Recipient]) -> DispatchReport:
        """Dispatch to all recipients and wrap the outcomes in a report."""
        report = DispatchReport(dry_run=self.dry_run)
        report.outcomes = self.dispatch_all(recipients)
        report.completed_at = datetime.now(timezone.utc)
        return report

    def _on_complete(self, state: _SendState, transmission: Future) -> None:
        name = state.recipient.name
        if transmission.cancelled():
            logger.info("Send to %s was cancelled", name)
            state.resolve(OutcomeKind.CANCELLED)
            return

        error = transmission.exception()
        if isinstance(error, CancelledError):
            logger.info("Send to %s was cancelled", name)
            state.resolve(OutcomeKind.CANCELLED)
        elif error is not None:
            logger.warning("Send to %s failed: %s", name, error)
            state.resolve(OutcomeKind.FAILED, str(error) or error.__class__.__name__)
        else:
            logger.info("Send to %s delivered", name)
            state.resolve(OutcomeKind.DELIVERED)
