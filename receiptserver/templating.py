import logging
import re
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from bs4 import BeautifulSoup
from pydantic import BaseModel

from .errors import ParseFailure

logger = logging.getLogger(__name__)

_ph_re = re.compile(r"\{\{([^}]+)\}\}")
_img_src_re = re.compile(r"<img\b[^>]*?\bsrc\s*=\s*([\"'])(.*?)\1", re.I | re.S)


class FieldType(str, Enum):
    text = "text"
    email = "email"
    number = "number"
    file = "file"
    date = "date"


class FieldDescriptor(BaseModel):
    key: str
    label: str
    type: FieldType
    placeholder: str = ""
    required: bool = True


class ParsedTemplate(BaseModel):
    html: str
    fields: List[FieldDescriptor]
    images: List[str]


# First hit wins, so order matters ("TOTAL_DATE" is a date, not a number).
_TYPE_HINTS = (
    (FieldType.email, ("email",)),
    (FieldType.date, ("date",)),
    (FieldType.number, ("price", "amount", "total")),
    (FieldType.file, ("logo", "image", "photo")),
)


def classify(name: str) -> FieldType:
    lowered = (name or "").lower()
    for field_type, needles in _TYPE_HINTS:
        if any(n in lowered for n in needles):
            return field_type
    return FieldType.text


def format_label(name: str) -> str:
    return " ".join(part[:1].upper() + part[1:].lower() for part in (name or "").split("_"))


def describe_field(key: str) -> FieldDescriptor:
    label = format_label(key)
    return FieldDescriptor(
        key=key,
        label=label,
        type=classify(key),
        placeholder=f"Enter {label.lower()}",
        required=True,
    )


def find_placeholders(html: str) -> List[str]:
    """Unique placeholder names in order of first appearance."""
    seen: Dict[str, None] = {}
    for m in _ph_re.finditer(html):
        key = m.group(0).replace("{", "").replace("}", "")
        if key not in seen:
            seen[key] = None
    return list(seen)


def find_image_sources(html: str) -> List[str]:
    try:
        soup = BeautifulSoup(html, "html.parser")
        sources = [img.get("src") or "" for img in soup.find_all("img")]
    except Exception as exc:
        # Malformed markup: fall back to a text scan, placeholders don't need a DOM
        logger.debug("img scan fell back to text matching: %s", exc)
        sources = [m.group(2) for m in _img_src_re.finditer(html)]
    return [src for src in sources if "{{" in src and "}}" in src]


def parse_template(html: str) -> ParsedTemplate:
    if not isinstance(html, str):
        raise ParseFailure()
    try:
        fields = [describe_field(key) for key in find_placeholders(html)]
    except Exception as exc:
        logger.error("template scan failed: %s", exc)
        raise ParseFailure() from exc
    fields.sort(key=lambda f: (f.label.casefold(), f.label))
    return ParsedTemplate(html=html, fields=fields, images=find_image_sources(html))


def _token_pattern(keys: List[str]) -> "re.Pattern[str]":
    # Known keys are tried first so a key containing "}" still matches as a whole;
    # the generic branch blanks any placeholder nobody supplied.
    if not keys:
        return _ph_re
    known = "|".join(re.escape(k) for k in sorted(keys, key=len, reverse=True))
    return re.compile(r"\{\{(?:(?P<known>" + known + r")|[^}]+)\}\}")


def render_template(tpl: str, data: Optional[Mapping[str, Any]]) -> str:
    if not isinstance(tpl, str):
        return ""
    if not isinstance(data, Mapping):
        data = {}
    values = {str(k): v for k, v in data.items()}
    pattern = _token_pattern(list(values))

    def repl(m):
        k = m.groupdict().get("known")
        if k is None:
            return ""
        v = values.get(k)
        return "" if v is None else str(v)

    return pattern.sub(repl, tpl)
