"""Keyword tables shared by the trigger detector, the predictive scanner and
the intent classifier.

Each table is a named list of phrases (English and Turkish) matched on word
boundaries against case-folded text, so "rate" does not fire on "accurate".
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Pattern, Tuple

from models.signal_models import InterventionTrigger


def normalize(text: str) -> str:
    """Case-fold and straighten typographic apostrophes."""
    return text.casefold().replace("\u2019", "'")


def _phrase_pattern(phrases: Iterable[str]) -> Pattern[str]:
    escaped = sorted((re.escape(normalize(p)) for p in phrases), key=len, reverse=True)
    return re.compile(r"(?<!\w)(?:" + "|".join(escaped) + r")(?!\w)")


@dataclass(frozen=True)
class KeywordTable:
    """A labelled group of phrases with an optional weight."""

    name: str
    phrases: Tuple[str, ...]
    label: str = ""
    weight: int = 0
    _pattern: Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.phrases:
            raise ValueError(f"Keyword table '{self.name}' has no phrases.")
        object.__setattr__(self, "_pattern", _phrase_pattern(self.phrases))

    def matches(self, text: str) -> bool:
        return bool(text) and self._pattern.search(normalize(text)) is not None

    def first_match(self, text: str) -> Optional[str]:
        """Return the first phrase found in `text`, or None."""
        if not text:
            return None
        found = self._pattern.search(normalize(text))
        return found.group(0) if found else None


@dataclass(frozen=True)
class TriggerRule:
    trigger: InterventionTrigger
    table: KeywordTable


AVAILABILITY = KeywordTable(
    "availability",
    (
        "available", "availability", "start date", "when can you start", "start immediately",
        "when are you free", "when are you available", "timeline", "notice period",
        "ne zaman başlayabilirsin", "müsait misin", "müsait", "ne zaman",
    ),
)

SALARY = KeywordTable(
    "salary",
    (
        "salary", "compensation", "pay", "rate", "rates", "hourly", "budget",
        "maaş", "ücret", "fiyat",
    ),
)

RESUME = KeywordTable(
    "resume",
    (
        "resume", "cv", "curriculum vitae", "send your resume", "can i see your resume",
        "özgeçmiş", "cv gönder",
    ),
)

CONTACT = KeywordTable(
    "contact",
    (
        "email", "e-mail", "phone", "contact", "reach out", "get in touch",
        "iletişim", "telefon", "e-posta",
    ),
)

HIGH_INTEREST = KeywordTable(
    "high_interest",
    (
        "perfect fit", "great match", "interested", "would love to", "sounds great",
        "mükemmel", "harika", "ilgileniyorum",
    ),
)

TECHNICAL = KeywordTable(
    "technical",
    (
        "architecture", "scalability", "performance", "optimization", "framework",
        "frameworks", "library", "libraries", "api", "apis", "database", "databases",
        "system design", "mimari", "performans", "optimizasyon",
    ),
)

# Evaluated in order; the first matching rule wins.
TRIGGER_RULES: Tuple[TriggerRule, ...] = (
    TriggerRule(InterventionTrigger.AVAILABILITY_QUESTION, AVAILABILITY),
    TriggerRule(InterventionTrigger.SALARY_QUESTION, SALARY),
    TriggerRule(InterventionTrigger.RESUME_REQUEST, RESUME),
    TriggerRule(InterventionTrigger.CONTACT_REQUEST, CONTACT),
    TriggerRule(InterventionTrigger.HIGH_INTEREST, HIGH_INTEREST),
)

PREDICTIVE_TABLES: Tuple[KeywordTable, ...] = (
    KeywordTable(
        "requirements", ("we're looking for", "we are looking for", "we need", "we want"),
        label="about to describe requirements",
    ),
    KeywordTable(
        "availability", ("when can you", "are you available", "start date"),
        label="about to ask availability",
    ),
    KeywordTable(
        "compensation", ("what's your", "what is your", "how much", "salary", "rate", "compensation"),
        label="about to ask compensation",
    ),
    KeywordTable(
        "deep_dive", ("tell me more about", "can you explain", "how did you"),
        label="deep dive question coming",
    ),
    KeywordTable(
        "company", ("we have", "our team", "our company"),
        label="about to share company info",
    ),
)

HOT_LEAD_TABLES: Tuple[KeywordTable, ...] = (
    KeywordTable(
        "hiring", ("hiring", "hire", "recruit", "position", "role", "opening", "opportunity"),
        label="Hiring language detected", weight=25,
    ),
    KeywordTable(
        "connect", ("interview", "schedule", "call", "meet", "chat", "connect", "discuss"),
        label="Wants to connect", weight=25,
    ),
    KeywordTable(
        "terms", ("salary", "compensation", "rate", "contract", "offer"),
        label="Discussing terms", weight=25,
    ),
    KeywordTable(
        "availability", ("available", "availability", "start", "when can", "notice period"),
        label="Asking about availability", weight=25,
    ),
    KeywordTable(
        "company", ("looking for", "need", "we need", "our team", "our company"),
        label="Company perspective", weight=25,
    ),
    KeywordTable(
        "seniority", ("senior", "lead", "principal", "staff", "architect"),
        label="Senior role discussion", weight=25,
    ),
    KeywordTable(
        "materials", ("resume", "cv", "portfolio", "linkedin"),
        label="Requesting materials", weight=25,
    ),
)

INTERESTED_TABLES: Tuple[KeywordTable, ...] = (
    KeywordTable(
        "experience", ("experience", "worked", "built", "project", "skill"),
        label="Asking about experience", weight=10,
    ),
    KeywordTable(
        "technical", ("react", "typescript", "node", "python", "ai", "ml", "frontend", "backend"),
        label="Technical discussion", weight=10,
    ),
    KeywordTable(
        "depth", ("how long", "how many", "what kind", "which"),
        label="Deep questions", weight=10,
    ),
    KeywordTable(
        "sentiment", ("impressive", "interesting", "cool", "great", "amazing"),
        label="Positive sentiment", weight=10,
    ),
)
