"""Scored PG-13 content filter.

Blocklist and pattern based filtering with confidence scores and suggested
safer wording. Decisions are made in a fixed order: a blocklist hit always
wins over a suspicious pattern, a pattern always wins over the educational
exception, and the educational exception wins over sentiment scoring.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from utils.log_sanitizer import sanitize_for_log

from ..config import FilterConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterDecision:
    """Outcome of filtering a piece of text."""

    allowed: bool
    confidence: float  # 0-1, how sure the filter is of this decision
    reason: str | None = None
    suggestions: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "confidence": self.confidence,
            "reason": self.reason,
            "suggestions": list(self.suggestions),
        }


# Matched against whole whitespace-separated tokens, so multi-word entries
# like "beat up" are kept for completeness but never fire on their own.
CORE_BLOCKLIST: tuple[str, ...] = (
    # Nudity / sexual
    "nude", "naked", "sex", "sexual", "porn", "erotic", "breast", "genitals",
    "intimate", "seduce", "orgasm", "masturbat", "fetish", "bdsm",
    # Violence / gore
    "kill", "murder", "death", "dead", "blood", "gore", "violent", "torture",
    "stab", "shoot", "gun", "weapon", "knife", "bomb", "explode", "suicide",
    "hang", "strangle", "beat up", "assault", "fight", "war", "battle",
    # Substances
    "drug", "cocaine", "heroin", "meth", "marijuana", "weed", "high", "stoned",
    "drunk", "alcohol", "beer", "wine", "vodka", "whiskey", "smoke", "cigarette",
    # Vulgar language
    "fuck", "shit", "damn", "hell", "bitch", "ass", "crap", "piss", "bastard",
    "whore", "slut", "gay", "lesbian", "homo", "fag",
    # Disturbing
    "scary", "horror", "nightmare", "monster", "demon", "devil", "evil",
    "ghost", "zombie", "corpse", "skeleton", "witch", "occult",
    # Hate / discrimination
    "racist", "nazi", "hitler", "slave", "terrorism", "terrorist", "isis",
    "hate", "discrimination", "supremacist", "kkk",
    # Predatory
    "child", "kid", "minor", "teen", "young", "school", "student", "baby",
    "infant", "underage", "lolita", "daddy", "mommy",
)  # fmt: skip

EDUCATIONAL_EXCEPTIONS: tuple[str, ...] = (
    "educational documentary",
    "science",
    "nature",
    "space",
    "astronomy",
    "biology",
    "chemistry",
    "physics",
    "history",
    "geography",
    "mathematics",
    "art",
    "music",
    "literature",
    "technology",
    "engineering",
)

SUSPICIOUS_PATTERNS: tuple[str, ...] = (
    r"\b\d{1,2}[-\s]?year[-\s]?old\b",
    r"\bunder(age|aged)\b",
    r"\b(meet|chat|talk).*private\b",
    r"\b(send|show).*pic(ture)?s?\b",
    r"\bno.*parent(s)?\b",
    r"\bsecret\b.*\bfrom\b",
)

SAFER_ALTERNATIVES: dict[str, tuple[str, ...]] = {
    "violent": ("energetic", "dynamic", "action-packed"),
    "scary": ("mysterious", "intriguing", "suspenseful"),
    "dark": ("nighttime", "shadowy", "dimly lit"),
    "fight": ("competition", "contest", "challenge"),
    "weapon": ("tool", "equipment", "device"),
    "blood": ("red liquid", "paint", "ketchup"),
    "dead": ("still", "motionless", "sleeping"),
    "kill": ("stop", "end", "finish"),
}
GENERIC_ALTERNATIVES: tuple[str, ...] = (
    "Consider a different approach",
    "Try more positive language",
)

PATTERN_SUGGESTIONS: tuple[str, ...] = (
    "Try describing scenes without age references",
    "Focus on general activities rather than specific interactions",
)

SAFE_SUGGESTIONS: tuple[str, ...] = (
    "Add more positive descriptive words",
    "Focus on beautiful scenery or landscapes",
    "Include friendly characters or animals",
    "Describe peaceful or fun activities",
    "Add educational elements about science or nature",
)

POSITIVE_WORDS = frozenset({"beautiful", "amazing", "wonderful", "peaceful", "happy", "fun", "exciting"})
NEGATIVE_WORDS = frozenset({"dark", "scary", "sad", "angry", "disturbing", "creepy"})

FILTER_CATEGORIES: tuple[str, ...] = (
    "Nudity/Sexual",
    "Violence/Gore",
    "Substances",
    "Vulgar Language",
    "Disturbing",
    "Hate/Discrimination",
    "Predatory",
)

_NON_WORD = re.compile(r"[^\w]")


class ContentFilter:
    """PG-13 filter producing scored allow/deny decisions.

    All derived tables are rebuilt from the config on construction and on
    every :meth:`update_config`, so a decision depends only on the text and
    the current config.
    """

    def __init__(self, config: FilterConfig | None = None):
        """Initialize with configuration.

        Args:
            config: Filter configuration; defaults to strict mode with
                educational exceptions enabled
        """
        self.config = config or FilterConfig()
        self._build_tables()

    def _build_tables(self) -> None:
        self.blocked_words: frozenset[str] = frozenset(w.lower() for w in CORE_BLOCKLIST) | (
            self.config.custom_blocklist
        )
        self.educational_exceptions: tuple[str, ...] = EDUCATIONAL_EXCEPTIONS
        self.suspicious_patterns: tuple[re.Pattern[str], ...] = tuple(
            re.compile(p, re.IGNORECASE) for p in SUSPICIOUS_PATTERNS
        )

    def filter_content(self, text: str) -> FilterDecision:
        """Filter text and return a scored decision.

        Args:
            text: Text to evaluate

        Returns:
            FilterDecision; internal failures resolve to a deny decision
        """
        try:
            normalized = (text or "").lower().strip()

            blocked = self._check_blocked_words(normalized)
            if blocked is not None:
                return blocked

            suspicious = self._check_suspicious_patterns(text or "")
            if suspicious is not None:
                return suspicious

            if self.config.allow_educational and self._is_educational(normalized):
                return FilterDecision(
                    allowed=True,
                    confidence=0.9,
                    reason="Educational content exception applied",
                )

            return FilterDecision(
                allowed=True,
                confidence=self._sentiment_confidence(text or ""),
                suggestions=SAFE_SUGGESTIONS[:3],
            )
        except Exception:
            logger.exception("Content filtering failed for %s", sanitize_for_log(text, max_length=80))
            return FilterDecision(
                allowed=False,
                confidence=1.0,
                reason="Content could not be evaluated",
                suggestions=GENERIC_ALTERNATIVES,
            )

    def _check_blocked_words(self, normalized: str) -> FilterDecision | None:
        for token in normalized.split():
            word = _NON_WORD.sub("", token)
            if word in self.blocked_words:
                return FilterDecision(
                    allowed=False,
                    confidence=1.0,
                    reason=f'Contains blocked content: "{word}"',
                    suggestions=SAFER_ALTERNATIVES.get(word, GENERIC_ALTERNATIVES),
                )
        return None

    def _check_suspicious_patterns(self, text: str) -> FilterDecision | None:
        for pattern in self.suspicious_patterns:
            if pattern.search(text):
                return FilterDecision(
                    allowed=False,
                    confidence=0.8,
                    reason="Content contains potentially inappropriate patterns",
                    suggestions=PATTERN_SUGGESTIONS,
                )
        return None

    def _is_educational(self, normalized: str) -> bool:
        return any(phrase in normalized for phrase in self.educational_exceptions)

    @staticmethod
    def _sentiment_confidence(text: str) -> float:
        words = text.lower().split()
        positive = sum(1 for w in words if w in POSITIVE_WORDS)
        negative = sum(1 for w in words if w in NEGATIVE_WORDS)
        return 0.3 if negative > positive else 0.9

    def is_allowed(self, text: str) -> bool:
        return self.filter_content(text).allowed

    def monitor_live_content(self, text: str, callback: Callable[[FilterDecision], None]) -> None:
        """Filter text and escalate anything that needs attention.

        The callback receives the decision when the text is denied, or a
        manual-review decision when it is allowed with confidence below 0.5.
        Nothing is reported for confidently allowed text.
        """
        decision = self.filter_content(text)
        if not decision.allowed:
            callback(decision)
        elif decision.confidence < 0.5:
            callback(
                FilterDecision(
                    allowed=False,
                    confidence=decision.confidence,
                    reason="Content flagged for manual review",
                    suggestions=decision.suggestions,
                )
            )

    def update_config(self, **changes: Any) -> FilterConfig:
        """Merge partial changes into the config and rebuild all tables.

        Args:
            **changes: Any of ``strict_mode``, ``custom_blocklist``,
                ``allow_educational``

        Returns:
            The new configuration
        """
        self.config = replace(self.config, **changes)
        self._build_tables()
        logger.info("Content filter reconfigured: %s", sorted(changes))
        return self.config

    def get_filter_stats(self) -> dict[str, Any]:
        """Get filter statistics.

        Returns:
            Dictionary with blocklist size, categories and mode flags
        """
        return {
            "total_blocked": len(self.blocked_words),
            "categories": list(FILTER_CATEGORIES),
            "strict_mode": self.config.strict_mode,
            "allow_educational": self.config.allow_educational,
        }


# Global filter instance
_global_filter: ContentFilter | None = None


def get_content_filter(config: FilterConfig | None = None) -> ContentFilter:
    """Get or create the shared content filter.

    Args:
        config: Optional configuration, only used on first creation

    Returns:
        ContentFilter instance
    """
    global _global_filter
    if _global_filter is None:
        _global_filter = ContentFilter(config)
    return _global_filter


def quick_content_check(text: str) -> bool:
    """True if the shared filter allows ``text`` with confidence above 0.7."""
    decision = get_content_filter().filter_content(text)
    return decision.allowed and decision.confidence > 0.7


def emergency_content_block(reason: str) -> FilterDecision:
    """Build an unconditional deny decision."""
    return FilterDecision(
        allowed=False,
        confidence=1.0,
        reason=f"EMERGENCY BLOCK: {reason}",
        suggestions=(
            "Please try a completely different prompt",
            "Focus on positive, family-friendly content",
        ),
    )
