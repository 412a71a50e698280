"""Rule-based chat classification.

``classify`` is pure and total: no I/O, no shared state, and malformed input
comes back CLEAN instead of raising. Any object with the same method can be
plugged into a session in place of ``RuleBasedClassifier`` (e.g. an ML
model wrapper).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Protocol

from citadel.models import CLEAN_VERDICT, ChatMessage, ModerationVerdict, VerdictCategory

from .lexicon import BANNED_WORDS
from .policy import BANNED_CONTENT_SEVERITY, SPAM_SEVERITY, is_exempt

CAPS_RATIO_THRESHOLD = 0.70
CAPS_MIN_LENGTH = 10
REPETITION_MIN_TOKENS = 5
REPETITION_UNIQUE_RATIO = 0.30


class Classifier(Protocol):
    def classify(self, message: ChatMessage) -> ModerationVerdict: ...


def compile_lexicon(words: Iterable[str]) -> re.Pattern[str]:
    """Build one whole-word, case-insensitive alternation for the lexicon."""
    # Longest first so overlapping terms report the most specific match
    ordered = sorted({w.lower() for w in words if w}, key=len, reverse=True)
    if not ordered:
        return re.compile(r"(?!x)x")  # matches nothing
    return re.compile(r"\b(" + "|".join(map(re.escape, ordered)) + r")\b", re.IGNORECASE)


def caps_ratio(text: str) -> float:
    """Uppercase letters over all letters, 0.0 when there are no letters."""
    letters = [c for c in text if c.isalpha()]
    if not letters:
        return 0.0
    return sum(1 for c in letters if c.isupper()) / len(letters)


def is_excessive_caps(text: str) -> bool:
    return len(text) > CAPS_MIN_LENGTH and caps_ratio(text) > CAPS_RATIO_THRESHOLD


def is_excessive_repetition(text: str) -> bool:
    tokens = text.lower().split()
    if len(tokens) <= REPETITION_MIN_TOKENS:
        return False
    return len(set(tokens)) / len(tokens) < REPETITION_UNIQUE_RATIO


class RuleBasedClassifier:
    """Banned-word lexicon first, then spam heuristics.

    A message that is both banned content and spam is BANNED_CONTENT: the
    more severe category wins.
    """

    def __init__(
        self,
        lexicon: Iterable[str] = BANNED_WORDS,
        exempt_roles: Iterable[str] = ("moderator",),
    ) -> None:
        self._pattern = compile_lexicon(lexicon)
        self.exempt_roles = frozenset(exempt_roles)

    def classify(self, message: ChatMessage) -> ModerationVerdict:
        text = getattr(message, "text", None)
        if not isinstance(text, str) or not text:
            return CLEAN_VERDICT

        if is_exempt(message, self.exempt_roles):
            return CLEAN_VERDICT

        match = self._pattern.search(text)
        if match:
            return ModerationVerdict(
                category=VerdictCategory.BANNED_CONTENT,
                severity=BANNED_CONTENT_SEVERITY,
                reason="banned word",
                matched_term=match.group(1).lower(),
            )

        for rule_name, rule in (
            ("excessive_caps", is_excessive_caps),
            ("excessive_repetition", is_excessive_repetition),
        ):
            if rule(text):
                return ModerationVerdict(
                    category=VerdictCategory.SPAM,
                    severity=SPAM_SEVERITY,
                    reason=rule_name.replace("_", " "),
                    matched_term=rule_name,
                )

        return CLEAN_VERDICT
