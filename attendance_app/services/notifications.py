from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass, field
from datetime import date
from email.message import EmailMessage
from typing import Any

from attendance_app.models import LeaveRequest, LeaveStatus
from attendance_app.settings import get_settings

logger = logging.getLogger("attendance_app.notifications")


@dataclass(frozen=True, slots=True)
class NotificationMessage:
    recipients: list[str]
    subject: str
    body: str
    context: dict[str, Any] = field(default_factory=dict)


class EmailChannel:
    def __init__(self) -> None:
        settings = get_settings()
        self.smtp_host = (settings.smtp_host or "").strip()
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_pass = settings.smtp_password
        self.smtp_from = (settings.smtp_from or "").strip()
        self.smtp_use_tls = settings.smtp_use_tls
        self.configured = bool(self.smtp_host and self.smtp_from)

    def send(self, message: NotificationMessage) -> dict[str, Any]:
        recipients = [item.strip() for item in message.recipients if item and item.strip()]
        if not recipients:
            logger.info("email_channel_skip_no_recipients", extra={"subject": message.subject})
            return {"mode": "skipped_no_recipients", "sent": 0, "recipients": []}

        if not self.configured:
            logger.info(
                "email_channel_not_configured",
                extra={"subject": message.subject, "recipients": recipients},
            )
            return {"mode": "not_configured", "sent": 0, "recipients": recipients}

        email_message = EmailMessage()
        email_message["From"] = self.smtp_from
        email_message["To"] = ", ".join(recipients)
        email_message["Subject"] = message.subject
        email_message.set_content(message.body)

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=15) as smtp_client:
            if self.smtp_use_tls:
                smtp_client.starttls()
            if self.smtp_user:
                smtp_client.login(self.smtp_user, self.smtp_pass or "")
            smtp_client.send_message(email_message)
        return {"mode": "sent", "sent": len(recipients), "recipients": recipients}


def _format_day(value: date) -> str:
    return value.isoformat()


def build_leave_decision_message(
    leave: LeaveRequest,
    *,
    recipient_email: str,
    recipient_name: str,
) -> NotificationMessage:
    status_label = leave.status.value
    period = f"{_format_day(leave.start_date)} - {_format_day(leave.end_date)}"
    lines = [
        f"Hello {recipient_name},",
        "",
        f"Your {leave.leave_type.value} leave request for {period} ({leave.total_days:g} days) was {status_label}.",
    ]
    if leave.status == LeaveStatus.REJECTED and leave.rejection_reason:
        lines.append(f"Reason: {leave.rejection_reason}")
    return NotificationMessage(
        recipients=[recipient_email],
        subject=f"Leave request {status_label}",
        body="\n".join(lines),
        context={"leave_id": leave.id, "status": status_label},
    )


def send_notification(message: NotificationMessage) -> dict[str, Any]:
    """Deliver best-effort; failures are logged and never raised."""
    try:
        result = EmailChannel().send(message)
    except (smtplib.SMTPException, OSError) as exc:
        logger.exception(
            "email_send_failed",
            extra={
                "subject": message.subject,
                "error_type": exc.__class__.__name__,
                **message.context,
            },
        )
        return {"mode": "failed", "sent": 0, "recipients": message.recipients}

    logger.info(
        "notification_dispatched",
        extra={"subject": message.subject, "mode": result["mode"], **message.context},
    )
    return result
