"""
Free-text sanitization and small field validators
"""
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

# Tab, newline and carriage return survive
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_SCRIPT_BLOCK_RE = re.compile(
    r"<\s*(script|style|iframe|object|embed)\b[^>]*>.*?<\s*/\s*\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(r"<\s*/?\s*[a-zA-Z!?][^>]*>")
_TAG_OPENER_RE = re.compile(r"<(?=\s*[a-zA-Z/!?])")
_DANGEROUS_SCHEME_RE = re.compile(
    r"(?<![\w+.\-])(?:javascript|vbscript|data|file|blob)\s*:\S*",
    re.IGNORECASE,
)
_FOREIGN_URL_RE = re.compile(
    r"(?<![\w+.\-])(?!https?://|mailto:)[a-z][a-z0-9+.\-]*://\S*",
    re.IGNORECASE,
)
_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def _sanitize_pass(text: str) -> str:
    text = _CONTROL_CHARS_RE.sub("", text)
    text = _SCRIPT_BLOCK_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    text = _TAG_OPENER_RE.sub("", text)
    text = _DANGEROUS_SCHEME_RE.sub("", text)
    text = _FOREIGN_URL_RE.sub("", text)
    return text.strip()


def sanitize_text(value: Any) -> Any:
    """
    Strip anything in free text that could introduce script execution.

    Markup is removed, URLs with a scheme other than http(s)/mailto are
    dropped and control characters are removed. Passes repeat until the text
    stops changing, so sanitizing already-sanitized text is a no-op.
    Non-string values are returned untouched for the schema to reject.
    """
    if not isinstance(value, str):
        return value

    previous = None
    text = value
    while text != previous:
        previous = text
        text = _sanitize_pass(text)

    if text != value.strip():
        logger.debug("Sanitizer removed content from free-text field")
    return text


def is_sanitized(value: str) -> bool:
    return sanitize_text(value) == value


def validate_hex_color(value: str) -> str:
    """Validate a `#rgb` / `#rrggbb` color tag"""
    if not _HEX_COLOR_RE.match(value):
        raise ValueError(f"Invalid color tag: {value}")
    return value.lower()


def validate_opaque_id(value: Any) -> str:
    """Identifiers are opaque, non-blank strings"""
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Identifier must be a non-empty string")
    return value.strip()
