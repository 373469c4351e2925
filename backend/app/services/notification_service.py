"""Batch notifications: started / completed / failed emails.

``NotificationDispatcher.notify`` is fire-and-forget. Delivery runs on the
dispatcher's own small thread pool so a slow mail provider never holds a
bulk worker or a request thread; delivery errors are logged and dropped.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class NotificationKind(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchSummary:
    """What a notification reports about a batch."""
    bulk_job_id: int
    total_cells: int
    successful_cells: int = 0
    failed_cells: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class EmailNotification:
    to: str
    subject: str
    text: str
    html: str


def render_email(target: str, kind: NotificationKind, summary: BatchSummary) -> EmailNotification:
    """Build the email sent for a batch state transition."""
    if kind == NotificationKind.STARTED:
        subject = "Bulk AI Processing Started"
        text = (
            "Your bulk AI processing job has started. "
            f"{summary.total_cells} cells will be processed."
        )
        html = (
            f"<h2>{subject}</h2>"
            "<p>Your bulk AI processing job has started.</p>"
            f"<p>Number of cells to process: {summary.total_cells}</p>"
            "<p>You will receive another email when the processing is complete.</p>"
        )
    elif kind == NotificationKind.COMPLETED:
        subject = "Bulk AI Processing Complete"
        text = (
            "Your bulk AI processing job has completed. "
            f"{summary.successful_cells} cells were processed successfully, "
            f"{summary.failed_cells} failed."
        )
        html = (
            f"<h2>{subject}</h2>"
            "<p>Your bulk AI processing job has completed.</p>"
            f"<p>Successfully processed: {summary.successful_cells} cells</p>"
            f"<p>Failed: {summary.failed_cells} cells</p>"
            "<p>You can view the results in the application.</p>"
        )
    else:
        subject = "Bulk AI Processing Error"
        text = "An error occurred during bulk processing. Please check the application for details."
        html = (
            f"<h2>{subject}</h2>"
            "<p>An error occurred during bulk processing.</p>"
            "<p>Please check the application for details.</p>"
        )
    return EmailNotification(to=target, subject=subject, text=text, html=html)


class EmailSender(Protocol):
    def send(self, email: EmailNotification) -> None:
        ...


class ResendEmailSender:
    """Delivers email through the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.from_address = from_address
        self._client = httpx.Client(
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    def send(self, email: EmailNotification) -> None:
        resp = self._client.post(
            RESEND_API_URL,
            json={
                "from": self.from_address,
                "to": email.to,
                "subject": email.subject,
                "text": email.text,
                "html": email.html,
            },
        )
        resp.raise_for_status()

    def close(self) -> None:
        self._client.close()


class LoggingEmailSender:
    """Records notifications in the log when no mail provider is configured."""

    def send(self, email: EmailNotification) -> None:
        logger.info("Notification to %s: %s | %s", email.to, email.subject, email.text)


class NotificationDispatcher:
    """Renders and delivers batch notifications in the background."""

    def __init__(self, sender: EmailSender, max_workers: int = 2):
        self.sender = sender
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")

    @classmethod
    def from_settings(cls, settings) -> "NotificationDispatcher":
        if settings.resend_api_key:
            sender = ResendEmailSender(
                settings.resend_api_key,
                settings.notification_from_address,
                timeout=settings.notification_timeout_seconds,
            )
        else:
            sender = LoggingEmailSender()
        return cls(sender)

    def notify(self, target: str, kind: NotificationKind, summary: BatchSummary) -> Optional[Future]:
        """Queue a notification and return immediately. Never raises."""
        try:
            email = render_email(target, kind, summary)
            return self._executor.submit(self._deliver, email, kind, summary.bulk_job_id)
        except RuntimeError as e:
            # Executor already shut down during application exit
            logger.warning(
                "Dropped %s notification for bulk job %d: %s", kind.value, summary.bulk_job_id, e,
            )
            return None

    def _deliver(self, email: EmailNotification, kind: NotificationKind, bulk_job_id: int) -> None:
        try:
            self.sender.send(email)
            logger.info(
                "Sent %s notification", kind.value,
                extra={"bulk_job_id": bulk_job_id, "notify_target": email.to},
            )
        except Exception as e:
            logger.error(
                "Failed to send %s notification for bulk job %d: %s", kind.value, bulk_job_id, e,
                extra={"bulk_job_id": bulk_job_id},
            )

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        close_sender = getattr(self.sender, "close", None)
        if close_sender is not None:
            close_sender()
