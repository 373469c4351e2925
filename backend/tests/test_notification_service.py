"""Tests for batch notification rendering and delivery."""

import json
import threading
from types import SimpleNamespace

import httpx
import pytest

from app.services.notification_service import (
    RESEND_API_URL,
    BatchSummary,
    LoggingEmailSender,
    NotificationDispatcher,
    NotificationKind,
    ResendEmailSender,
    render_email,
)


class CollectingSender:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []
        self.delivered = threading.Event()

    def send(self, email):
        self.sent.append(email)
        self.delivered.set()
        if self.fail:
            raise RuntimeError("mail provider down")


class TestRenderEmail:

    def test_started(self):
        email = render_email("ops@example.com", NotificationKind.STARTED, BatchSummary(1, total_cells=12))
        assert email.to == "ops@example.com"
        assert email.subject == "Bulk AI Processing Started"
        assert "12 cells will be processed" in email.text
        assert "Number of cells to process: 12" in email.html

    def test_completed_reports_counts(self):
        summary = BatchSummary(1, total_cells=3, successful_cells=2, failed_cells=1)
        email = render_email("ops@example.com", NotificationKind.COMPLETED, summary)
        assert email.subject == "Bulk AI Processing Complete"
        assert "2 cells were processed successfully, 1 failed" in email.text
        assert "Failed: 1 cells" in email.html

    def test_failed(self):
        summary = BatchSummary(1, total_cells=3, error="Column 9 not found")
        email = render_email("ops@example.com", NotificationKind.FAILED, summary)
        assert email.subject == "Bulk AI Processing Error"
        assert "error occurred" in email.text


class TestResendEmailSender:

    def test_posts_to_resend(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email-1"})

        sender = ResendEmailSender("re_test_key", "Gridfill <n@example.com>", transport=httpx.MockTransport(handler))
        email = render_email("ops@example.com", NotificationKind.STARTED, BatchSummary(1, total_cells=2))
        sender.send(email)
        sender.close()

        assert captured["url"] == RESEND_API_URL
        assert captured["auth"] == "Bearer re_test_key"
        assert captured["body"]["to"] == "ops@example.com"
        assert captured["body"]["from"] == "Gridfill <n@example.com>"
        assert captured["body"]["subject"] == "Bulk AI Processing Started"

    def test_error_status_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "bad"}))
        sender = ResendEmailSender("re_test_key", "n@example.com", transport=transport)
        email = render_email("ops@example.com", NotificationKind.FAILED, BatchSummary(1, total_cells=1))
        with pytest.raises(httpx.HTTPStatusError):
            sender.send(email)
        sender.close()


class TestNotificationDispatcher:

    def test_delivers_in_background(self):
        sender = CollectingSender()
        dispatcher = NotificationDispatcher(sender)
        future = dispatcher.notify("ops@example.com", NotificationKind.STARTED, BatchSummary(5, total_cells=2))
        future.result(timeout=5)
        dispatcher.close()
        assert [email.subject for email in sender.sent] == ["Bulk AI Processing Started"]

    def test_sender_failure_is_logged_not_raised(self, caplog):
        sender = CollectingSender(fail=True)
        dispatcher = NotificationDispatcher(sender)
        future = dispatcher.notify("ops@example.com", NotificationKind.COMPLETED, BatchSummary(5, total_cells=2))
        assert future.result(timeout=5) is None
        dispatcher.close()
        assert "mail provider down" in caplog.text

    def test_notify_after_close_is_dropped(self):
        dispatcher = NotificationDispatcher(CollectingSender())
        dispatcher.close()
        assert dispatcher.notify("ops@example.com", NotificationKind.FAILED, BatchSummary(5, total_cells=1)) is None

    def test_from_settings_without_key_logs_instead(self):
        settings = SimpleNamespace(
            resend_api_key="",
            notification_from_address="n@example.com",
            notification_timeout_seconds=1.0,
        )
        dispatcher = NotificationDispatcher.from_settings(settings)
        assert isinstance(dispatcher.sender, LoggingEmailSender)
        dispatcher.close()

    def test_from_settings_with_key_uses_resend(self):
        settings = SimpleNamespace(
            resend_api_key="re_test_key",
            notification_from_address="n@example.com",
            notification_timeout_seconds=1.0,
        )
        dispatcher = NotificationDispatcher.from_settings(settings)
        assert isinstance(dispatcher.sender, ResendEmailSender)
        dispatcher.close()
