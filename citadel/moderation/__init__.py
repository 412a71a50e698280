"""Classification pipeline and moderation action execution."""

from .classifier import Classifier, RuleBasedClassifier
from .executor import ActionExecutor, ModerationAPI
from .lexicon import BANNED_WORDS
from .policy import TIMEOUT_SECONDS, build_actions, is_exempt

__all__ = [
    "Classifier",
    "RuleBasedClassifier",
    "ActionExecutor",
    "ModerationAPI",
    "BANNED_WORDS",
    "TIMEOUT_SECONDS",
    "build_actions",
    "is_exempt",
]
