"""Output sanitization for AI-generated text.

Truncates generated text, replaces it with a fixed sentinel when it trips the
harmful-content patterns, and otherwise HTML-escapes it so it can be injected
as markup. Bare tags from an allowlist (``<b>``, ``</li>``, ...) survive
escaping; attributes never do.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .harmful_content import find_harmful_pattern

logger = logging.getLogger(__name__)

FILTERED_SENTINEL = "[Content filtered for safety reasons]"

DEFAULT_ALLOWED_TAGS: tuple[str, ...] = ("p", "br", "b", "i", "u", "ul", "ol", "li", "code", "pre")

# Ampersand must be encoded first
HTML_ENTITIES: dict[str, str] = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#039;",
}

# An escaped tag with no attributes, e.g. "&lt;/li&gt;" or "&lt;br/&gt;"
_ESCAPED_TAG = re.compile(r"&lt;(/?)([a-zA-Z][a-zA-Z0-9]*)\s*(/?)&gt;")


@dataclass(frozen=True)
class SanitizerOptions:
    """Options for :func:`sanitize_output`."""

    max_length: int = 5000
    allowed_tags: tuple[str, ...] = DEFAULT_ALLOWED_TAGS
    check_for_harmful_content: bool = True


@dataclass(frozen=True)
class SafeHtml:
    """Sanitized markup, safe to render directly."""

    html: str

    def __html__(self) -> str:
        return self.html

    def __str__(self) -> str:
        return self.html


def encode_html(text: str) -> str:
    """Encode all HTML special characters."""
    for char, entity in HTML_ENTITIES.items():
        text = text.replace(char, entity)
    return text


def escape_with_allowed_tags(text: str, allowed_tags: tuple[str, ...] | list[str]) -> str:
    """Escape ``text`` and re-enable bare allowlisted tags.

    Args:
        text: Raw text
        allowed_tags: Tag names that may appear, without attributes

    Returns:
        Markup where the only unescaped angle brackets belong to allowed tags
    """
    escaped = encode_html(text)
    allowed = {tag.lower() for tag in allowed_tags}
    if not allowed:
        return escaped

    def _restore(match: re.Match[str]) -> str:
        closing, name, self_closing = match.groups()
        if name.lower() not in allowed:
            return match.group(0)
        return f"<{closing}{name.lower()}{self_closing}>"

    return _ESCAPED_TAG.sub(_restore, escaped)


def sanitize_output(text: str, options: SanitizerOptions | None = None) -> str:
    """Sanitize AI-generated text for display.

    Args:
        text: Generated content
        options: Truncation, tag allowlist and harmful-content settings

    Returns:
        Escaped content, or the sentinel when the content was filtered
    """
    if not text:
        return ""
    opts = options or SanitizerOptions()

    try:
        if len(text) > opts.max_length:
            text = text[: opts.max_length]

        if opts.check_for_harmful_content:
            match = find_harmful_pattern(text)
            if match is not None:
                logger.info("Output filtered (category: %s)", match.category)
                return FILTERED_SENTINEL

        return escape_with_allowed_tags(text, opts.allowed_tags)
    except Exception:
        # Fail closed
        logger.exception("Output sanitization failed; returning filtered sentinel")
        return FILTERED_SENTINEL


def safe_html(text: str, options: SanitizerOptions | None = None) -> SafeHtml:
    """Wrap :func:`sanitize_output` for direct-render consumers."""
    return SafeHtml(html=sanitize_output(text, options))
