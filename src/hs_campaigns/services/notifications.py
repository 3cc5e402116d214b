import logging
import os
import smtplib
from email.message import EmailMessage
from typing import Optional

from hs_campaigns.models import RunReport


logger = logging.getLogger(__name__)


def format_run_report(report: RunReport) -> str:
    lines = [
        f"Campaign run {report.run_id} complete",
        f"Success: {report.succeeded}",
        f"Failed: {report.failed}",
        f"Total Requested: {report.total_requested}",
        f"Total Fulfilled: {report.total_fulfilled}",
        f"Average Fulfillment: {report.average_fulfillment}%",
        "",
    ]
    for result in report.results:
        if result.success:
            lines.append(
                f"- {result.list_name}: {result.contact_count}/{result.requested_count} "
                f"({result.fulfillment_percentage}%) list {result.list_id}"
            )
        else:
            lines.append(f"- {result.campaign}: FAILED ({result.error})")
    return "\n".join(lines)


def send_run_notification(
    report: RunReport,
    *,
    subject: Optional[str] = None,
    to_email: Optional[str] = None,
) -> None:
    """Best-effort email summary of a finished campaign run.

    Uses SMTP_* and EMAIL_FROM / NOTIFICATION_EMAIL env vars when present.
    Fails open: logs and returns on any error instead of raising.
    """

    host = os.getenv("SMTP_HOST")
    port_raw = os.getenv("SMTP_PORT", "587")
    user = os.getenv("SMTP_USER")
    password = os.getenv("SMTP_PASSWORD")
    from_email = os.getenv("EMAIL_FROM") or user
    recipient = to_email or os.getenv("NOTIFICATION_EMAIL") or user

    if not host or not user or not password or not from_email or not recipient:
        logger.info(
            "Email not sent for run %s; SMTP/recipient configuration incomplete",
            report.run_id,
        )
        return

    try:
        port = int(port_raw)
    except ValueError:
        port = 587

    msg = EmailMessage()
    msg["Subject"] = subject or (
        f"List creation run: {report.succeeded} succeeded, {report.failed} failed"
    )
    msg["From"] = from_email
    msg["To"] = recipient
    msg.set_content(format_run_report(report))

    try:
        with smtplib.SMTP(host, port, timeout=10) as smtp:
            try:
                smtp.starttls()
            except smtplib.SMTPException:
                logger.debug("STARTTLS not available on %s:%s", host, port)
            smtp.login(user, password)
            smtp.send_message(msg)
        logger.info(
            "Sent notification email for run %s to %s with subject=%r",
            report.run_id,
            recipient,
            msg["Subject"],
        )
    except Exception as exc:
        logger.warning(
            "Failed to send notification email for run %s: %s",
            report.run_id,
            exc,
        )
