from __future__ import annotations

import base64
import json
import logging
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
from pathlib import Path
from typing import Any, Callable, Optional, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from crm.config import settings
from crm.exceptions import DeliveryError

LOGGER = logging.getLogger(__name__)

GMAIL_SEND_ENDPOINT = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
CREDENTIALS_DIR = Path(__file__).resolve().parents[2] / "credentials"
TOKEN_REFRESH_MARGIN = timedelta(minutes=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OutgoingMessage:
    subject: str
    html_body: str
    text_body: str


class Notifier(Protocol):
    def send(self, recipient: str, payload: OutgoingMessage) -> None:
        ...


def build_password_reset_message(
    code: str, ttl_seconds: int, subject: Optional[str] = None
) -> OutgoingMessage:
    minutes = max(1, ttl_seconds // 60)
    text_body = (
        "Password Reset Request\n\n"
        "Use the OTP below to reset your password. "
        f"This code is valid for {minutes} minutes.\n\n"
        f"    {code}\n\n"
        "If you did not request a password reset, you can safely ignore this email.\n"
        "Please do not reply to this email."
    )
    html_body = _HTML_TEMPLATE.format(code=escape(code), minutes=minutes)
    return OutgoingMessage(
        subject=subject or settings.otp_email_subject,
        html_body=html_body,
        text_body=text_body,
    )


class GmailNotifier:
    """Delivers rendered messages through the Gmail REST API.

    The OAuth access token lives in ``token_path`` next to its refresh token.
    When it is missing or about to lapse it is refreshed against the token
    endpoint and the file is rewritten in place. Client id and secret come
    from the token file, or from ``credentials_path`` when the token file
    does not carry them.
    """

    def __init__(
        self,
        sender: Optional[str] = None,
        sender_name: Optional[str] = None,
        timeout: float = 10,
        token_path: Optional[Path] = None,
        credentials_path: Optional[Path] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._sender = sender if sender is not None else settings.otp_email_sender
        self._sender_name = (
            sender_name if sender_name is not None else settings.otp_email_sender_name
        )
        self._timeout = timeout
        self._token_path = Path(
            token_path or settings.gmail_token_file or CREDENTIALS_DIR / "token.json"
        )
        self._credentials_path = Path(
            credentials_path
            or settings.gmail_credentials_file
            or CREDENTIALS_DIR / "credentials.json"
        )
        self._clock = clock

    def send(self, recipient: str, payload: OutgoingMessage) -> None:
        if not self._sender:
            raise DeliveryError("OTP email sender is not configured")

        raw_message = _build_raw_message(
            formataddr((self._sender_name, self._sender)), recipient, payload
        )
        access_token = self.access_token()

        request = Request(
            GMAIL_SEND_ENDPOINT,
            data=json.dumps({"raw": raw_message}).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=self._timeout) as response:
                response.read()
        except HTTPError as exc:
            LOGGER.error(
                "Gmail send rejected to=%s status=%s body=%s",
                recipient,
                exc.code,
                exc.read().decode("utf-8", errors="replace"),
            )
            raise DeliveryError("Failed to send OTP email") from exc
        except URLError as exc:
            raise DeliveryError("Failed to reach Gmail API") from exc
        LOGGER.info("Password reset email sent to=%s", recipient)

    def access_token(self) -> str:
        stored = _read_json(self._token_path)
        cached = stored.get("token")
        expiry = _parse_expiry(stored.get("expiry"))
        if cached and expiry and expiry - TOKEN_REFRESH_MARGIN > self._clock():
            return cached

        refresh_token = stored.get("refresh_token")
        if not refresh_token:
            raise DeliveryError("Gmail refresh token is missing")
        client_id, client_secret = self._client_credentials(stored)

        grant = urlencode(
            {
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        ).encode("utf-8")
        request = Request(
            stored.get("token_uri") or GOOGLE_TOKEN_URI, data=grant, method="POST"
        )
        try:
            with urlopen(request, timeout=self._timeout) as response:
                granted = json.loads(response.read().decode("utf-8"))
        except HTTPError as exc:
            LOGGER.error(
                "Gmail token refresh rejected status=%s body=%s",
                exc.code,
                exc.read().decode("utf-8", errors="replace"),
            )
            raise DeliveryError("Failed to refresh Gmail token") from exc
        except URLError as exc:
            raise DeliveryError("Failed to reach Gmail token endpoint") from exc

        fresh = granted.get("access_token")
        if not fresh:
            raise DeliveryError("Gmail token refresh did not return an access token")
        lifetime = timedelta(seconds=int(granted.get("expires_in", 3600)))
        stored["token"] = fresh
        stored["expiry"] = (self._clock() + lifetime).isoformat()
        _replace_json(self._token_path, stored)
        LOGGER.info("Gmail access token refreshed expiry=%s", stored["expiry"])
        return fresh

    def _client_credentials(self, stored: dict[str, Any]) -> tuple[str, str]:
        if stored.get("client_id") and stored.get("client_secret"):
            return stored["client_id"], stored["client_secret"]

        # credentials.json as downloaded from the Google console nests the
        # client under "installed".
        downloaded = _read_json(self._credentials_path)
        client = downloaded.get("installed") or downloaded
        client_id = client.get("client_id")
        client_secret = client.get("client_secret")
        if not client_id or not client_secret:
            raise DeliveryError("Gmail client credentials are missing")
        return client_id, client_secret


def _build_raw_message(sender: str, recipient: str, payload: OutgoingMessage) -> str:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = payload.subject
    message.set_content(payload.text_body)
    message.add_alternative(payload.html_body, subtype="html")
    # Gmail API expects base64url-encoded RFC 2822 content.
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")


def _parse_expiry(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _read_json(path: Path) -> dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise DeliveryError(f"Missing Gmail file: {path}") from exc
    except json.JSONDecodeError as exc:
        raise DeliveryError(f"Unreadable Gmail file: {path}") from exc


def _replace_json(path: Path, data: dict[str, Any]) -> None:
    # Readers never see a half-written token file.
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", delete=False
    ) as handle:
        json.dump(data, handle)
    Path(handle.name).replace(path)


_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Password Reset OTP</title>
</head>
<body style="margin:0;padding:0;background-color:#f4f6f8;font-family:Arial,Helvetica,sans-serif;">
    <table width="100%" cellpadding="0" cellspacing="0">
        <tr>
            <td align="center" style="padding:40px 0;">
                <table width="480" cellpadding="0" cellspacing="0"
                       style="background:#ffffff;border-radius:12px;padding:32px;">
                    <tr>
                        <td style="font-size:20px;font-weight:600;color:#111827;">
                            Password Reset Request
                        </td>
                    </tr>
                    <tr>
                        <td style="padding-top:12px;font-size:14px;color:#374151;line-height:1.6;">
                            Use the OTP below to reset your password. This code is valid for {minutes} minutes.
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding:28px 0;">
                            <div style="display:inline-block;padding:14px 26px;font-size:28px;
                                        font-weight:700;letter-spacing:6px;color:#111827;
                                        background:#f3f4f6;border-radius:8px;">
                                {code}
                            </div>
                        </td>
                    </tr>
                    <tr>
                        <td style="font-size:13px;color:#6b7280;line-height:1.6;">
                            If you did not request a password reset, you can safely ignore this email.
                        </td>
                    </tr>
                    <tr>
                        <td style="padding-top:28px;font-size:12px;color:#9ca3af;border-top:1px solid #e5e7eb;">
                            Security Notification<br>
                            Please do not reply to this email.
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>
"""
