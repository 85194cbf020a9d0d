from __future__ import annotations

import smtplib
import unittest
from datetime import date
from unittest.mock import MagicMock, patch

from attendance_app.models import LeaveRequest, LeaveStatus, LeaveType
from attendance_app.services.notifications import (
    NotificationMessage,
    build_leave_decision_message,
    send_notification,
)
from attendance_app.settings import Settings


def _leave(status: LeaveStatus, rejection_reason: str | None = None) -> LeaveRequest:
    return LeaveRequest(
        id=11,
        employee_id=3,
        leave_type=LeaveType.ANNUAL,
        start_date=date(2026, 10, 26),
        end_date=date(2026, 10, 28),
        total_days=3.0,
        reason="Family trip abroad",
        status=status,
        rejection_reason=rejection_reason,
    )


def _message() -> NotificationMessage:
    return NotificationMessage(recipients=["ada@example.com"], subject="Leave request approved", body="Hello")


class LeaveDecisionMessageTests(unittest.TestCase):
    def test_approved_message(self) -> None:
        message = build_leave_decision_message(
            _leave(LeaveStatus.APPROVED),
            recipient_email="ada@example.com",
            recipient_name="Ada Lane",
        )

        self.assertEqual(message.recipients, ["ada@example.com"])
        self.assertEqual(message.subject, "Leave request approved")
        self.assertIn("2026-10-26 - 2026-10-28 (3 days) was approved", message.body)
        self.assertEqual(message.context, {"leave_id": 11, "status": "approved"})

    def test_rejected_message_includes_reason(self) -> None:
        message = build_leave_decision_message(
            _leave(LeaveStatus.REJECTED, "Quarter end freeze period"),
            recipient_email="ada@example.com",
            recipient_name="Ada Lane",
        )
        self.assertIn("Reason: Quarter end freeze period", message.body)


class SendNotificationTests(unittest.TestCase):
    def test_unconfigured_smtp_is_skipped(self) -> None:
        with patch("attendance_app.services.notifications.get_settings", return_value=Settings(smtp_host=None)):
            result = send_notification(_message())

        self.assertEqual(result["mode"], "not_configured")
        self.assertEqual(result["sent"], 0)

    def test_empty_recipients_are_skipped(self) -> None:
        message = NotificationMessage(recipients=["  "], subject="Leave request approved", body="Hello")
        with patch("attendance_app.services.notifications.get_settings", return_value=Settings(smtp_host=None)):
            result = send_notification(message)

        self.assertEqual(result["mode"], "skipped_no_recipients")

    def test_configured_smtp_sends_message(self) -> None:
        smtp_client = MagicMock()
        smtp_factory = MagicMock()
        smtp_factory.return_value.__enter__.return_value = smtp_client
        settings = Settings(smtp_host="smtp.example.com", smtp_user="mailer", smtp_password="secret")

        with patch("attendance_app.services.notifications.get_settings", return_value=settings), patch(
            "attendance_app.services.notifications.smtplib.SMTP", smtp_factory
        ):
            result = send_notification(_message())

        self.assertEqual(result["mode"], "sent")
        smtp_client.starttls.assert_called_once()
        smtp_client.login.assert_called_once_with("mailer", "secret")
        smtp_client.send_message.assert_called_once()

    def test_smtp_failure_is_reported_not_raised(self) -> None:
        settings = Settings(smtp_host="smtp.example.com")
        with patch("attendance_app.services.notifications.get_settings", return_value=settings), patch(
            "attendance_app.services.notifications.smtplib.SMTP",
            side_effect=smtplib.SMTPConnectError(421, b"unavailable"),
        ):
            result = send_notification(_message())

        self.assertEqual(result["mode"], "failed")
        self.assertEqual(result["sent"], 0)


if __name__ == "__main__":
    unittest.main()
