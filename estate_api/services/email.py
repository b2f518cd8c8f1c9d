"""
Outbound notification e-mail.

``HttpEmailDispatcher`` posts to a transactional mail API; without
``ESTATE_EMAIL_API_URL`` the ``LogOnlyEmailDispatcher`` just records the send.
Callers treat every send as best-effort. Request handlers go through
``get_request_mailer`` so sends run after the response has been sent.
"""

from __future__ import annotations

import html
from functools import lru_cache
from typing import Optional, Protocol

import httpx
import structlog
from fastapi import BackgroundTasks, Depends

from estate_api.core.config import get_settings

log = structlog.get_logger()


class EmailDispatcher(Protocol):
    async def send(self, to: str, subject: str, html_body: str) -> None: ...


class HttpEmailDispatcher:
    """JSON-over-HTTP mail API with a bearer key."""

    def __init__(
        self,
        url: str,
        api_key: str,
        sender: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._transport = transport

    async def send(self, to: str, subject: str, html_body: str) -> None:
        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": html_body,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.url, json=payload, headers=headers)
            response.raise_for_status()
        log.info("email.sent", to=to, status=response.status_code)


class LogOnlyEmailDispatcher:
    async def send(self, to: str, subject: str, html_body: str) -> None:
        log.info("email.skipped", to=to, subject=subject, reason="no email api configured")


@lru_cache
def get_email_dispatcher() -> EmailDispatcher:
    settings = get_settings()
    if not settings.email_api_url:
        return LogOnlyEmailDispatcher()
    return HttpEmailDispatcher(
        url=settings.email_api_url,
        api_key=settings.email_api_key,
        sender=settings.email_from,
        timeout=settings.email_timeout_seconds,
    )


async def _send_logged(mailer: EmailDispatcher, to: str, subject: str, html_body: str) -> None:
    try:
        await mailer.send(to, subject, html_body)
    except Exception as exc:
        log.warning("email.failed", to=to, error=str(exc))


class BackgroundEmailDispatcher:
    """Queues sends on the response's background tasks; they run after the response is sent."""

    def __init__(self, inner: EmailDispatcher, background_tasks: BackgroundTasks):
        self.inner = inner
        self.background_tasks = background_tasks

    async def send(self, to: str, subject: str, html_body: str) -> None:
        self.background_tasks.add_task(_send_logged, self.inner, to, subject, html_body)


def get_request_mailer(
    background_tasks: BackgroundTasks,
    mailer: EmailDispatcher = Depends(get_email_dispatcher),
) -> EmailDispatcher:
    """FastAPI dependency: the configured dispatcher, deferred until after the response."""
    return BackgroundEmailDispatcher(mailer, background_tasks)


def render_notification_email(full_name: str, message: str, link: Optional[str]) -> tuple[str, str]:
    """Returns (subject, html body) for a notification e-mail."""
    subject = "You have a new notification"
    parts = [
        f"<p>Hi {html.escape(full_name)},</p>",
        f"<p>{html.escape(message)}</p>",
    ]
    if link:
        url = get_settings().frontend_url.rstrip("/") + link
        parts.append(f'<p><a href="{html.escape(url, quote=True)}">Open in Estate</a></p>')
    return subject, "\n".join(parts)
