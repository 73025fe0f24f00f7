"""Recover field values from an already rendered receipt.

Each dialect is a list of regexes tuned to the literal wording of one known
receipt layout. Named groups are the field keys they recover. Nothing here
tries to understand arbitrary HTML: when a layout is unknown the generic
``receipt`` table is used and is allowed to guess wrong or recover nothing.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

_MONEY = r"\$\s*[0-9,]+(?:\.[0-9]{1,2})?"


def _p(expr: str, flags: int = 0) -> re.Pattern:
    return re.compile(expr, flags)


@dataclass(frozen=True)
class Dialect:
    name: str
    markers: Tuple[str, ...]
    patterns: Tuple[re.Pattern, ...]
    extras: Optional[Callable[[str], Dict[str, str]]] = field(default=None, compare=False)

    def matches(self, html: str) -> bool:
        lowered = html.lower()
        return any(marker.lower() in lowered for marker in self.markers)


_img_re = re.compile(r"<img\b[^>]*>", re.I)
_src_re = re.compile(r"""\bsrc\s*=\s*(["'])(.*?)\1""", re.I | re.S)


def _guess_images(html: str) -> Dict[str, str]:
    logo = product = None
    for index, m in enumerate(_img_re.finditer(html)):
        tag = m.group(0)
        src = _src_re.search(tag)
        if not src or not src.group(2):
            continue
        lowered = tag.lower()
        if logo is None and ("logo" in lowered or "profile" in lowered or index == 0):
            logo = src.group(2)
        elif product is None and ("product" in lowered or index > 0):
            product = src.group(2)
    found = {}
    if logo:
        found["SELLER_LOGO_URL"] = logo
    if product:
        found["PRODUCT_IMAGE_URL"] = product
    return found


BEACONS = Dialect(
    name="beacons",
    markers=("beacons.ai",),
    patterns=(
        _p(r"Thanks for your order,\s*(?P<BUYER_NAME>[^!<]+?)\s*!"),
        _p(r'class="order-title">\s*<strong>\s*(?P<PRODUCT_NAME>[^<]+?)\s*</strong>'),
        _p(r'Date:</div>\s*<div class="summary-value">\s*(?P<DATE>[^<]+?)\s*</div>'),
        _p(r'Order #:</div>\s*<div class="summary-value">\s*(?P<ORDER_ID>[^<]+?)\s*</div>'),
        _p(r'class="product-price">\s*(?P<PRICE>[^<]+?)\s*</div>'),
        _p(r'<img class="logo" src="(?P<SELLER_LOGO_URL>[^"]+)"'),
        _p(r'alt="(?P<SELLER_NAME>[^"]+?)\'s profile picture"'),
        _p(r"bought a product from\s*<a[^>]*>\s*(?P<SELLER_NAME>[^<]+?)\s*</a>"),
        _p(r'<img class="product-image" src="(?P<PRODUCT_IMAGE_URL>[^"]+)"'),
        _p(r'href="(?P<ACCESS_LINK>[^"]+)"[^>]*>\s*Access link'),
        _p(r'href="(?P<CUSTOMER_PORTAL_URL>[^"]+)"[^>]*>\s*Manage your order'),
    ),
)

STANSTORE = Dialect(
    name="stanstore",
    markers=("stan.store", "Stan - Your Creator Store"),
    patterns=(
        _p(r"\[#(?P<RECEIPT_ID>[^\]\s]+)\]"),
        _p(r"Receipt #(?P<RECEIPT_ID>[^\s<]+)"),
        _p(r"Amount paid\s+(?P<AMOUNT_PAID>" + _MONEY + ")"),
        _p(r"Date paid\s+(?P<DATE_PAID>[^\n<]+?)\s*(?:\n|<|$)"),
        _p(r'<img alt="(?P<PAYMENT_METHOD>[^"]+)"[^>]*src="https://stripe-images\.stripecdn\.com/'),
        _p(r'-dark@2x\.png"[^>]*>\s*</span>\s*<span>\s*-\s*(?P<CARD_LAST4>[^<]+?)\s*</span>'),
        _p(r">\s*(?P<PRODUCT_NAME>[^<>]+?)\s*&lt;&gt;&nbsp;(?P<BUYER_NAME>[^<]+?)\s*</td>"),
        _p(
            r"&lt;&gt;&nbsp;[^<]*</td>\s*<td[^>]*>[^<]*</td>\s*<td[^>]*>\s*"
            r"(?P<PRODUCT_PRICE>[^<]+?)\s*</td>"
        ),
        _p(
            r"<strong>Amount paid</strong>\s*</td>\s*<td[^>]*>[^<]*</td>\s*<td[^>]*>\s*"
            r"<strong>\s*(?P<TOTAL_AMOUNT>[^<]+?)\s*</strong>"
        ),
        _p(r"""mailto:(?P<SELLER_EMAIL>[^"'>\s?]+)"""),
    ),
)

FANBASIS = Dialect(
    name="fanbasis",
    markers=("fanbasis",),
    patterns=(
        _p(
            r"Thank you for purchasing <b>\s*(?P<PRODUCT_NAME>[^<]+?)\s*</b>"
            r" from <b>\s*(?P<SELLER_NAME>[^<]+?)\s*</b>"
        ),
        _p(r">Name:\s*(?P<BUYER_NAME>[^<]+?)\s*<"),
        _p(r">Email:\s*(?:<a[^>]*>)?\s*(?P<BUYER_EMAIL>[^<\s]+@[^<\s]+)"),
        _p(r"Seller name:\s*(?P<SELLER_NAME>[^<]+?)\s*<"),
        _p(r"Order date:\s*(?P<DATE>[^<]+?)\s*<"),
        _p(r'class="price">\s*(?P<PRICE>[^<]+?)\s*<'),
        _p(r"Subtotal:</td>\s*<td>\s*(?P<SUBTOTAL>[^<]+?)\s*</td>"),
        _p(r"Order Total:</td>\s*<td>\s*(?P<TOTAL>[^<]+?)\s*</td>"),
    ),
)

RECEIPT = Dialect(
    name="receipt",
    markers=(),
    patterns=(
        _p(r"\b(?:Name|Customer):\s*(?P<BUYER_NAME>[^<\n]+)", re.I),
        _p(r"Thanks for your order,?\s*(?P<BUYER_NAME>[^!]+?)!", re.I),
        _p(r"Email:\s*(?:<a[^>]*>)?(?P<BUYER_EMAIL>[^<\n]+@[^<\n]+?)(?:</a>|<|\n|$)", re.I),
        _p(r"<(?:strong|b|h[1-6])[^>]*>\s*(?P<PRODUCT_NAME>[^<]+?)\s*</(?:strong|b|h[1-6])>", re.I),
        _p(r"(?P<PRICE>" + _MONEY + ")"),
        _p(r"Subtotal:?\s*(?P<SUBTOTAL>" + _MONEY + ")", re.I),
        _p(r"\b(?:Order Total|Total):?\s*(?P<TOTAL>" + _MONEY + ")", re.I),
        _p(r"\b(?:Order date|Date):?\s*(?P<DATE>[0-9]{1,2}/[0-9]{1,2}/[0-9]{2,4})", re.I),
        _p(r"\b(?:Order #|Receipt #|ID\b):?\s*(?P<ORDER_ID>[^<\n\s]+)", re.I),
        _p(r"Receipt #\s*(?P<RECEIPT_ID>[^<\n\s\]]+)", re.I),
        _p(r"from\s+<(?:strong|b)>\s*(?P<SELLER_NAME>[^<]+?)\s*</(?:strong|b)>", re.I),
        _p(r"purchasing\s+<(?:strong|b)>\s*(?P<SELLER_NAME>[^<]+?)\s*</(?:strong|b)>", re.I),
        _p(r"""mailto:(?P<SELLER_EMAIL>[^"'>\s?]+)""", re.I),
        _p(r'href="(?P<ACCESS_LINK>[^"]*access[^"]*)', re.I),
        _p(r'href="(?P<CUSTOMER_PORTAL_URL>[^"]*portal[^"]*)', re.I),
    ),
    extras=_guess_images,
)

# Detection order: the first dialect whose marker shows up wins
DIALECTS: Dict[str, Dialect] = {d.name: d for d in (STANSTORE, FANBASIS, BEACONS, RECEIPT)}


def detect_dialect(html: str) -> Dialect:
    if isinstance(html, str):
        for dialect in DIALECTS.values():
            if dialect.markers and dialect.matches(html):
                return dialect
    return RECEIPT


def resolve_dialect(html: str, dialect: Union[Dialect, str, None] = None) -> Dialect:
    """An explicit dialect or name wins; unknown names fall back to ``receipt``."""
    if isinstance(dialect, Dialect):
        return dialect
    if dialect:
        return DIALECTS.get(dialect, RECEIPT)
    return detect_dialect(html)


def extract(html: str, dialect: Union[Dialect, str, None] = None) -> Dict[str, str]:
    if not isinstance(html, str) or not html:
        return {}
    chosen = resolve_dialect(html, dialect)
    data: Dict[str, str] = {}
    for pattern in chosen.patterns:
        m = pattern.search(html)
        if not m:
            continue
        for key, value in m.groupdict().items():
            value = (value or "").strip()
            if value and key not in data:
                data[key] = value
    if chosen.extras is not None:
        for key, value in chosen.extras(html).items():
            data.setdefault(key, value)
    logger.debug("extracted %d fields using %s dialect", len(data), chosen.name)
    return data


def apply_edits(
    html: str,
    values: Mapping[str, object],
    extracted: Optional[Mapping[str, str]] = None,
) -> str:
    """Swap previously rendered values for new ones in a finished receipt.

    URL fields are replaced at their first occurrence only; every other field
    replaces all literal occurrences of the value it had before. Fields that
    could not be recovered from ``html`` are left alone.
    """
    if not isinstance(html, str):
        return ""
    if extracted is None:
        extracted = extract(html)
    url_keys: List[str] = [k for k in values if "URL" in k]
    text_keys: List[str] = [k for k in values if "URL" not in k]
    out = html
    for key in url_keys + text_keys:
        new, old = values.get(key), extracted.get(key)
        if not new or not old or not isinstance(old, str):
            continue
        out = out.replace(old, str(new), 1 if key in url_keys else -1)
    return out
