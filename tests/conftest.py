"""
Shared fixtures for Mail Dispatch tests.
"""

import json
from pathlib import Path

import pytest


def _write_settings(path: Path, attachment_folder: Path, recipients: list[dict], **smtp) -> Path:
    smtp_settings = {
        "Host": "smtp.example.org",
        "Port": 2525,
        "UseSsl": False,
        "UserName": "mailer@example.org",
        "AppPassword": "secret",
    }
    smtp_settings.update(smtp)
    document = {
        "AppSettings": {
            "SmtpSettings": smtp_settings,
            "EmailSettings": {
                "Subject": "Quarterly statements",
                "Body": "Please find your documents attached.",
                "Sender": "Accounts Team",
                "SenderEmail": "accounts@example.org",
                "AttachmentFolder": str(attachment_folder),
                "Recipients": recipients,
            },
        }
    }
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


@pytest.fixture
def attachment_folder(tmp_path: Path) -> Path:
    folder = tmp_path / "attachments"
    folder.mkdir()
    (folder / "statement.pdf").write_bytes(b"%PDF-1.4 statement")
    (folder / "invoice.pdf").write_bytes(b"%PDF-1.4 invoice")
    (folder / "notes.txt").write_text("see you next quarter", encoding="utf-8")
    return folder


@pytest.fixture
def write_settings():
    return _write_settings
