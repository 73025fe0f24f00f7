"""Built-in platform receipt templates.

The HTML documents live next to this module in ``templates/`` and are read
once at import; the mapping is never written afterwards.
"""

from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

PLATFORMS: List[Dict[str, str]] = [
    {
        "id": "beacons",
        "name": "Beacons.ai",
        "description": "Modern dark theme with seller logo and product images",
    },
    {
        "id": "stanstore",
        "name": "Stan Store",
        "description": "Professional purple theme with payment method display",
    },
    {
        "id": "fanbasis",
        "name": "Fanbasis",
        "description": "Clean yellow and dark theme for digital courses",
    },
]


class EmailDefaults(BaseModel):
    subject: str
    fromName: str
    fromEmail: str


_EMAIL_DEFAULTS = {
    "beacons": EmailDefaults(
        subject="Your Receipt from Beacons.ai",
        fromName="Beacons AI",
        fromEmail="no-reply@beacons.ai",
    ),
    "stanstore": EmailDefaults(
        subject="Receipt from Stan - Your Creator Store",
        fromName="Stan Store",
        fromEmail="no-reply@stan.store",
    ),
    "fanbasis": EmailDefaults(
        subject="Payment Confirmation - Your Order Receipt",
        fromName="Fanbasis",
        fromEmail="no-reply@fanbasis.com",
    ),
}

# Fields each platform form starts with before the user types anything
_DATE_FIELDS = {"beacons": "DATE", "stanstore": "DATE_PAID", "fanbasis": "DATE"}
_STATIC_DEFAULTS = {"stanstore": {"PAYMENT_METHOD": "MasterCard"}}


def _load_templates() -> Mapping[str, str]:
    docs = {}
    for platform in PLATFORMS:
        path = TEMPLATE_DIR / f"{platform['id']}.html"
        docs[platform["id"]] = path.read_text(encoding="utf-8")
    return MappingProxyType(docs)


TEMPLATES = _load_templates()


def get_template(template_id: str) -> str:
    return TEMPLATES.get(template_id, "") if isinstance(template_id, str) else ""


def list_templates() -> List[Dict[str, str]]:
    return [dict(p) for p in PLATFORMS]


def detect_platform(html: Optional[str]) -> str:
    html = html or ""
    if "stan.store" in html or "Stan Store" in html:
        return "stanstore"
    if "fanbasis" in html or "Fanbasis" in html:
        return "fanbasis"
    return "beacons"


def email_defaults(platform: Optional[str] = None, html: Optional[str] = None) -> EmailDefaults:
    if platform not in _EMAIL_DEFAULTS:
        platform = detect_platform(html)
    return _EMAIL_DEFAULTS[platform].model_copy()


def format_receipt_date(when: datetime) -> str:
    """Date as the platform receipts print it, e.g. ``Jan 05, 2025, 3:04:05 PM``."""
    hour = when.hour % 12 or 12
    return f"{when:%b %d, %Y}, {hour}:{when:%M:%S %p}"


def default_values(template_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    if template_id not in TEMPLATES:
        return {}
    values: Dict[str, Any] = dict(_STATIC_DEFAULTS.get(template_id, {}))
    values[_DATE_FIELDS[template_id]] = format_receipt_date(now or datetime.now())
    return values
