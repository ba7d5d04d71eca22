"""Pattern tables for harmful-content and prompt-injection detection.

Matching is plain case-insensitive regex search, not semantic analysis:
paraphrases slip through and innocent text can trip a pattern. The tables
are kept as data so they can be extended and tested on their own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class HarmfulPattern:
    """A named detection pattern."""

    category: str
    pattern: re.Pattern[str]

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _compile(table: list[tuple[str, str]]) -> tuple[HarmfulPattern, ...]:
    return tuple(HarmfulPattern(category, re.compile(p, re.IGNORECASE)) for category, p in table)


# Checked against both prompts and generated output
HARMFUL_PATTERNS: tuple[HarmfulPattern, ...] = _compile(
    [
        ("illegal_instructions", r"how to (hack|steal|illegally)"),
        ("malware", r"(create|make) (virus|malware)"),
        ("security_bypass", r"(bypass|circumvent) security"),
        ("injection", r"script\s*?:"),
        ("injection", r"javascript\s*?:"),
        ("injection", r"onerror\s*?="),
        ("injection", r"onclick\s*?="),
        ("injection", r"eval\s*?\("),
    ]
)

# Prompt-only screen for instruction-override attempts
PROMPT_INJECTION_PATTERNS: tuple[HarmfulPattern, ...] = _compile(
    [
        ("instruction_override", r"^(ignore|disregard) (previous|above|all) instructions"),
        ("instruction_override", r"^(ignore|disregard) everything (above|before)"),
        ("mode_switch", r"you are now in (developer|DAN|sudo) mode"),
        ("system_prompt", r"system prompt:"),
    ]
)


def find_harmful_pattern(
    text: str, patterns: tuple[HarmfulPattern, ...] = HARMFUL_PATTERNS
) -> HarmfulPattern | None:
    """Return the first pattern that matches ``text``.

    Args:
        text: Text to scan
        patterns: Pattern table to use

    Returns:
        The matching HarmfulPattern, or None when the text looks clean
    """
    if not text:
        return None
    for entry in patterns:
        if entry.matches(text):
            return entry
    return None


def detect_harmful_content(text: str) -> bool:
    """True if ``text`` matches any harmful-content pattern."""
    return find_harmful_pattern(text) is not None


def detect_prompt_injection(text: str) -> bool:
    """True if ``text`` looks like an attempt to override instructions."""
    if not text:
        return False
    return find_harmful_pattern(text.strip(), PROMPT_INJECTION_PATTERNS) is not None
