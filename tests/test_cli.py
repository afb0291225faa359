"""
Tests for the mail-dispatch command line.
"""

from click.testing import CliRunner

from mail_dispatch import __version__
from mail_dispatch.cli import cli


RECIPIENTS = [
    {"Name": "Alice", "Emails": ["alice@example.com"], "Attachments": []},
    {"Name": "Bob", "Emails": ["bob@example.com", "bob.cc@example.com"], "Attachments": ["statement.pdf", "invoice.pdf"]},
    {"Name": "Mallory", "Emails": ["mallory-at-example"], "Attachments": []},
]


class TestSendCommand:
    def test_dry_run_reports_every_recipient(self, tmp_path, attachment_folder, write_settings):
        path = write_settings(tmp_path / "appsettings.json", attachment_folder, RECIPIENTS)
        result = CliRunner().invoke(cli, ["send", str(path), "--dry-run"])

        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0] == "Alice has been sent ✅"
        assert lines[1] == "Bob has been sent ✅"
        assert lines[2].startswith("Mallory Exception: ")
        assert lines[3] == ""

    def test_summary(self, tmp_path, attachment_folder, write_settings):
        path = write_settings(tmp_path / "appsettings.json", attachment_folder, RECIPIENTS)
        result = CliRunner().invoke(cli, ["send", str(path), "--dry-run", "--summary", "-w", "2"])

        assert result.exit_code == 0, result.output
        assert "Dispatch Report (DRY RUN)" in result.output
        assert "Delivered:  2" in result.output

    def test_missing_settings_is_fatal(self, tmp_path):
        result = CliRunner().invoke(cli, ["send", str(tmp_path / "missing.json")])
        assert result.exit_code == 1
        assert "Settings file not found" in result.output

    def test_incomplete_settings_is_fatal(self, tmp_path):
        path = tmp_path / "appsettings.json"
        path.write_text('{"AppSettings": {"SmtpSettings": {}, "EmailSettings": {"Subject": "x"}}}')
        result = CliRunner().invoke(cli, ["send", str(path)])
        assert result.exit_code == 1
        assert "EmailSettings.Sender" in result.output


class TestCheckCommand:
    def test_reports_problems(self, tmp_path, attachment_folder, write_settings):
        recipients = RECIPIENTS + [{"Name": "Eve", "Emails": [], "Attachments": ["gone.pdf"]}]
        path = write_settings(tmp_path / "appsettings.json", attachment_folder, recipients)
        result = CliRunner().invoke(cli, ["check", str(path)])

        assert result.exit_code == 0, result.output
        assert "smtp.example.org:2525" in result.output
        assert "Recipients:  4" in result.output
        assert "(3 file(s))" in result.output
        assert "Cc: bob.cc@example.com" in result.output
        assert "! no email address" in result.output
        assert "missing attachment" in result.output
        assert "3 problem(s) found" in result.output

    def test_clean_config(self, tmp_path, attachment_folder, write_settings):
        path = write_settings(tmp_path / "appsettings.json", attachment_folder, RECIPIENTS[:2])
        result = CliRunner().invoke(cli, ["check", str(path)])
        assert result.exit_code == 0
        assert "No problems found." in result.output


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert __version__ in result.output
