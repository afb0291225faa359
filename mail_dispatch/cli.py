"""
CLI interface for Mail Dispatch.

Commands:
    send   — Send the configured email to every recipient
    check  — Validate a settings file without sending anything
"""

from __future__ import annotations

import logging
from typing import Optional

import click

from mail_dispatch import __version__
from mail_dispatch.config import DEFAULT_SETTINGS_FILE, ConfigError, DispatchConfig, load_config


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(version=__version__, prog_name="mail-dispatch")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr.")
def cli(verbose: bool) -> None:
    """Mail Dispatch — send one email, with attachments, to many recipients at once."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# send
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("config_path", default=DEFAULT_SETTINGS_FILE, required=False)
@click.option("--dry-run", is_flag=True, help="Build every message but do not contact the SMTP server.")
@click.option("--workers", "-w", type=click.IntRange(min=1), default=None,
              help="Maximum concurrent sends (default: one per recipient, up to 16).")
@click.option("--summary", is_flag=True, help="Print a dispatch report after the per-recipient lines.")
def send(config_path: str, dry_run: bool, workers: Optional[int], summary: bool) -> None:
    """Send the configured email to every recipient in CONFIG_PATH."""
    from mail_dispatch.dispatch.runner import Dispatcher

    config = _load(config_path)
    dispatcher = Dispatcher.from_config(config, max_workers=workers, dry_run=dry_run)
    report = dispatcher.run(config.recipients)

    for outcome in report.outcomes:
        click.echo(outcome.format_line())
    click.echo("")

    if summary:
        click.echo(report.summary())


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("config_path", default=DEFAULT_SETTINGS_FILE, required=False)
def check(config_path: str) -> None:
    """Validate CONFIG_PATH and show what would be sent."""
    from mail_dispatch.mailer.message import InvalidAddressError, resolve_attachment, validate_address

    config = _load(config_path)
    t = config.transport
    click.echo(f"SMTP:        {t.host}:{t.port} (tls={'on' if t.use_tls else 'off'}, user={t.username or '-'})")
    click.echo(f"From:        {config.template.sender_name} <{config.template.sender_address}>")
    click.echo(f"Subject:     {config.template.subject}")
    click.echo(f"Attachments: {config.attachment_folder} ({config.attachment_count()} file(s))")
    click.echo(f"Recipients:  {len(config.recipients)}")

    problems = 0
    for r in config.recipients:
        click.echo(f"  {r.name}")
        if not r.emails:
            click.echo("    ! no email address")
            problems += 1
        for i, address in enumerate(r.emails):
            label = "To" if i == 0 else "Cc"
            try:
                validate_address(address)
                click.echo(f"    {label}: {address}")
            except InvalidAddressError as e:
                click.echo(f"    ! {label}: {e}")
                problems += 1
        for filename in r.attachments:
            path = resolve_attachment(config.attachment_folder, filename)
            if path.is_file():
                click.echo(f"    + {path}")
            else:
                click.echo(f"    ! missing attachment: {path}")
                problems += 1

    if problems:
        click.echo(f"\n{problems} problem(s) found; affected recipients will be reported as exceptions.")
    else:
        click.echo("\nNo problems found.")


# ---------------------------------------------------------------------------
# Utility
# ---------------------------------------------------------------------------

def _load(config_path: str) -> DispatchConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
