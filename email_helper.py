"""
Outbound email for admin replies, sent through the Resend HTTP API.
"""
import html
import logging
import os
from typing import Optional, Protocol, Tuple

import httpx
from dotenv import load_dotenv

from utils.exceptions import DispatchError

load_dotenv()

logger = logging.getLogger(__name__)

RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com")
EMAIL_FROM = os.getenv("EMAIL_FROM", "NexGen <onboarding@resend.dev>")
EMAIL_REPLY_TO = os.getenv("EMAIL_REPLY_TO")
SITE_NAME = os.getenv("SITE_NAME", "NexGen")
EMAIL_TIMEOUT_SECONDS = float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))


class Dispatcher(Protocol):
    async def send(self, to_address: str, to_name: str, original_subject: str, reply_body: str) -> str:
        ...

    async def verify(self) -> dict:
        ...


def render_reply_email(
    to_name: str,
    original_subject: str,
    reply_body: str,
    site_name: str = SITE_NAME
) -> Tuple[str, str, str]:
    """
    Build the reply email.

    Returns:
        Tuple of (subject, html_body, text_body). The plain-text body is always
        produced so clients that refuse HTML still get the reply.
    """
    subject = f"Re: {original_subject}"

    text_body = (
        f"Hi {to_name},\n\n"
        f"{reply_body}\n\n"
        f"Best regards,\n"
        f"The {site_name} Team\n"
    )

    # Escape first, then keep the admin's line breaks
    reply_html = html.escape(reply_body).replace("\r\n", "\n").replace("\n", "<br>\n")
    html_body = f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #1f2937; line-height: 1.6;">
    <p>Hi {html.escape(to_name)},</p>
    <div style="margin: 16px 0;">{reply_html}</div>
    <p>Best regards,<br>The {html.escape(site_name)} Team</p>
    <hr style="border: none; border-top: 1px solid #e5e7eb;">
    <p style="font-size: 12px; color: #6b7280;">You are receiving this email because you contacted {html.escape(site_name)} about &quot;{html.escape(original_subject)}&quot;.</p>
  </body>
</html>
"""
    return subject, html_body, text_body


class ResendDispatcher:
    """Sends reply emails through Resend's /emails endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        from_address: str = EMAIL_FROM,
        reply_to: Optional[str] = EMAIL_REPLY_TO,
        site_name: str = SITE_NAME,
        base_url: str = RESEND_API_URL,
        timeout: float = EMAIL_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.reply_to = reply_to
        self.site_name = site_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.api_key:
            raise DispatchError("Email provider is not configured", detail="RESEND_API_KEY is not set")
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
            transport=self._transport
        )

    async def send(self, to_address: str, to_name: str, original_subject: str, reply_body: str) -> str:
        subject, html_body, text_body = render_reply_email(to_name, original_subject, reply_body, self.site_name)
        payload = {
            "from": self.from_address,
            "to": [to_address],
            "subject": subject,
            "html": html_body,
            "text": text_body,
        }
        if self.reply_to:
            payload["reply_to"] = self.reply_to

        async with self._client() as client:
            try:
                response = await client.post("/emails", json=payload)
            except httpx.TimeoutException as e:
                raise DispatchError("Email provider timed out", detail=str(e)) from e
            except httpx.HTTPError as e:
                raise DispatchError("Could not reach email provider", detail=str(e)) from e

        if response.status_code >= 400:
            raise DispatchError(
                "Email provider rejected the message",
                detail=_error_detail(response),
                status_code=response.status_code
            )

        message_id = _json_object(response).get("id")
        logger.info(f"Reply email accepted by provider (id={message_id})")
        return message_id

    async def verify(self) -> dict:
        """Confirm the API key is accepted, without sending anything."""
        async with self._client() as client:
            try:
                response = await client.get("/domains")
            except httpx.HTTPError as e:
                raise DispatchError("Could not reach email provider", detail=str(e)) from e

        if response.status_code >= 400:
            raise DispatchError(
                "Email provider rejected the credentials",
                detail=_error_detail(response),
                status_code=response.status_code
            )

        domains = _json_object(response).get("data") or []
        if not isinstance(domains, list):
            raise DispatchError("Email provider returned an unreadable response", detail="domain list is missing")
        return {
            "configured": True,
            "fromAddress": self.from_address,
            "domains": [d.get("name") for d in domains if isinstance(d, dict)],
        }


def _json_object(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        raise DispatchError(
            "Email provider returned an unreadable response",
            detail=(response.text or "")[:200] or f"HTTP {response.status_code}",
            status_code=response.status_code
        )
    return body


def _error_detail(response: httpx.Response) -> str:
    try:
        body = _json_object(response)
    except DispatchError:
        return response.text or f"HTTP {response.status_code}"
    return body.get("message") or body.get("name") or f"HTTP {response.status_code}"


def create_dispatcher() -> ResendDispatcher:
    """Build the dispatcher from the environment; called once at startup."""
    api_key = os.getenv("RESEND_API_KEY")
    if not api_key:
        logger.warning("RESEND_API_KEY is not set; reply emails will not be delivered")
    return ResendDispatcher(api_key=api_key)
