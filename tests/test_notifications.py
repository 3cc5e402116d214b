"""Tests for run report emails."""

import sys
from pathlib import Path
from unittest.mock import patch

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for p in (SRC, ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from hs_campaigns.models import CampaignResult, RunReport
from hs_campaigns.services import notifications


def _report():
    results = [
        CampaignResult(
            success=True,
            campaign="Spring",
            list_name="Acme - Spring - acme.com - 5 Mar 2025",
            list_id=5000,
            requested_count=10,
            contact_count=10,
            fulfillment_percentage=100,
        ),
        CampaignResult(success=False, campaign="Summer", requested_count=10, error="create failed"),
    ]
    return RunReport(
        run_id="run-1",
        succeeded=1,
        failed=1,
        total_requested=20,
        total_fulfilled=10,
        average_fulfillment=100,
        results=results,
    )


def test_format_run_report_lists_each_campaign():
    body = notifications.format_run_report(_report())
    assert "Success: 1" in body
    assert "Failed: 1" in body
    assert "- Acme - Spring - acme.com - 5 Mar 2025: 10/10 (100%) list 5000" in body
    assert "- Summer: FAILED (create failed)" in body


def test_notification_skipped_without_smtp(monkeypatch):
    for key in ("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD", "EMAIL_FROM", "NOTIFICATION_EMAIL"):
        monkeypatch.delenv(key, raising=False)
    with patch("hs_campaigns.services.notifications.smtplib.SMTP") as smtp:
        notifications.send_run_notification(_report())
    smtp.assert_not_called()


def test_notification_sent_when_configured(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_USER", "bot@example.com")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    with patch("hs_campaigns.services.notifications.smtplib.SMTP") as smtp:
        notifications.send_run_notification(_report(), to_email="ops@example.com")

    session = smtp.return_value.__enter__.return_value
    session.login.assert_called_once_with("bot@example.com", "secret")
    message = session.send_message.call_args.args[0]
    assert message["To"] == "ops@example.com"
    assert "1 succeeded, 1 failed" in message["Subject"]


def test_notification_failure_is_swallowed(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_USER", "bot@example.com")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    with patch("hs_campaigns.services.notifications.smtplib.SMTP", side_effect=OSError("refused")):
        notifications.send_run_notification(_report())
