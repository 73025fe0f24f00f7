"""Clients for the two remote collaborators: email delivery and image-to-HTML.

Both are plain request/response calls. Retries and timeouts beyond a single
request timeout are the providers' business.
"""

import base64
import logging
import re
from typing import Any, Dict, Optional

import requests

from . import config
from .errors import ExternalServiceFailure

logger = logging.getLogger(__name__)

IMAGE_PROMPT = """Analyze this receipt image and convert it to HTML email template with the following requirements:

1. Extract all text content, amounts, dates, and layout structure
2. Create email-safe HTML with inline CSS styling
3. Match the visual design as closely as possible
4. Replace dynamic content with placeholders like {{BUYER_NAME}}, {{AMOUNT}}, {{DATE}}, {{ORDER_ID}}, {{PRODUCT_NAME}}, etc.
5. Make it responsive for email clients
6. Use proper table layouts for email compatibility
7. Include all styling inline (no external CSS)
8. If there are images/logos, use placeholder URLs like {{LOGO_URL}} or {{PRODUCT_IMAGE_URL}}

Return only the HTML code without any markdown formatting or explanations."""

_fence_re = re.compile(r"^\s*```[a-zA-Z]*\s*\n(.*?)\n?\s*```\s*$", re.S)


def _provider_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if body.get("message"):
            return str(body["message"])
        if err:
            return str(err)
    return resp.text or f"HTTP {resp.status_code}"


def _json_body(resp: requests.Response, failure: str) -> Dict[str, Any]:
    # A 2xx reply can still be a gateway page or some other non-object body
    try:
        body = resp.json()
    except ValueError as exc:
        logger.error("Provider sent a non-JSON reply (%s): %.200s", resp.status_code, resp.text)
        raise ExternalServiceFailure(failure, resp.text or f"HTTP {resp.status_code}") from exc
    if not isinstance(body, dict):
        logger.error("Provider sent unexpected JSON (%s): %.200s", resp.status_code, resp.text)
        raise ExternalServiceFailure(failure, resp.text)
    return body


def format_sender(from_name: Optional[str], from_email: Optional[str]) -> str:
    if from_name and from_email:
        return f"{from_name} <{from_email}>"
    return config.DEFAULT_FROM


def send_email(
    to: str,
    subject: str,
    html: str,
    from_name: Optional[str] = None,
    from_email: Optional[str] = None,
) -> str:
    """Hand a rendered receipt to Resend and return the provider message id."""
    if not to or not subject or not html:
        raise ExternalServiceFailure("Missing required fields: to, subject, html")
    if not config.RESEND_API_KEY:
        raise ExternalServiceFailure("Email service not configured")

    payload = {
        "from": format_sender(from_name, from_email),
        "to": [to],
        "subject": subject,
        "html": html,
    }
    logger.info("Sending receipt email to %s (subject=%r)", to, subject)
    try:
        resp = requests.post(
            config.RESEND_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {config.RESEND_API_KEY}"},
            timeout=config.HTTP_TIMEOUT,
        )
    except requests.RequestException as exc:
        logger.error("Email transport error: %s", exc)
        raise ExternalServiceFailure("Failed to send email", str(exc)) from exc

    if not resp.ok:
        details = _provider_message(resp)
        logger.error("Email provider rejected request (%s): %s", resp.status_code, details)
        raise ExternalServiceFailure("Failed to send email", details)

    message_id = str(_json_body(resp, "Failed to send email").get("id") or "")
    logger.info("Email sent to %s id=%s", to, message_id)
    return message_id


def strip_code_fence(text: str) -> str:
    m = _fence_re.match(text or "")
    return (m.group(1) if m else (text or "")).strip()


def convert_image_to_html(image: bytes, content_type: str = "image/jpeg") -> str:
    """Ask the vision model for an HTML template of a photographed receipt."""
    if not image:
        raise ExternalServiceFailure("Missing image data")
    if not config.OPENAI_API_KEY:
        raise ExternalServiceFailure("AI service not configured")

    data_url = f"data:{content_type or 'image/jpeg'};base64,{base64.b64encode(image).decode('ascii')}"
    payload = {
        "model": config.OPENAI_MODEL,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": IMAGE_PROMPT},
                    {"type": "image_url", "image_url": {"url": data_url, "detail": "high"}},
                ],
            }
        ],
        "max_tokens": 4000,
        "temperature": 0.1,
    }
    logger.info("Converting %d byte image to HTML with %s", len(image), config.OPENAI_MODEL)
    try:
        resp = requests.post(
            config.OPENAI_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {config.OPENAI_API_KEY}"},
            timeout=config.HTTP_TIMEOUT,
        )
    except requests.RequestException as exc:
        logger.error("Image conversion transport error: %s", exc)
        raise ExternalServiceFailure("AI processing failed", str(exc)) from exc

    if not resp.ok:
        details = _provider_message(resp)
        logger.error("Image conversion failed (%s): %s", resp.status_code, details)
        raise ExternalServiceFailure("AI processing failed", details)

    choices = _json_body(resp, "AI processing failed").get("choices")
    content = ""
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        if isinstance(message, dict):
            content = message.get("content")
    html = strip_code_fence(content) if isinstance(content, str) else ""
    if not html:
        raise ExternalServiceFailure("Failed to generate HTML from image")
    return html
