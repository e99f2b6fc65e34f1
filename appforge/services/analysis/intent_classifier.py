"""
Dual-mode intent classifier for the chat entrypoint.

Decides whether a raw chat message enters the generation pipeline or is
answered as ordinary conversation. Rules run in a fixed order and the
first one that fires decides:

1. messages shorter than ``MIN_MESSAGE_LENGTH`` are conversation
2. conversational / question / edit patterns -> conversation
3. generation keyword phrases -> generation
4. loose verb + noun patterns -> generation
5. otherwise conversation

Negative patterns are checked before positive keywords, so "hey, build me a
landing page" is conversation.
"""
import re
from dataclasses import dataclass
from typing import Optional, Pattern, Tuple

from appforge.utils.logging import get_logger

logger = get_logger(__name__)

MIN_MESSAGE_LENGTH = 8

# -----------------------------------------------------------------------------
# Rule sets
# -----------------------------------------------------------------------------

CONVERSATIONAL_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^(hi|hello|hey|yo|thanks|thank you|ok|okay|cool|great|nice)\b",
        r"^(what|how|why|when|where|who|which)\b",
        r"^(can|could|would|will|should|do|does|is|are)\s+(you|i|we|it|this|that)\b",
        r"^(explain|describe|tell me|show me how)\b",
        r"\b(fix|debug|update|change|rename|edit|remove|delete)\s+(the\s+|this\s+|that\s+|my\s+)?"
        r"(bug|error|issue|file|line|function|component|style|button|text|color)\b",
        r"\?\s*$",
    )
)

GENERATION_KEYWORDS: Tuple[str, ...] = (
    "build app",
    "build an app",
    "build a website",
    "create app",
    "create an app",
    "create a website",
    "new app",
    "new website",
    "new project",
    "landing page",
    "dashboard",
    "todo app",
    "e-commerce",
    "ecommerce",
    "portfolio site",
    "saas",
    "web app",
    "mobile app",
)

LOOSE_GENERATION_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\b(build|create|make|generate|develop|design|scaffold)\b.*\b(app|application|website|site|page|"
        r"platform|store|shop|portfolio|blog|tool|game)\b",
        r"\b(i\s+(want|need)|i'd\s+like|let's)\b.*\b(app|application|website|site|store|portfolio|blog)\b",
        r"\b(app|website|site)\s+(for|that|to|where)\b",
    )
)


@dataclass(frozen=True)
class IntentDecision:
    is_generation: bool
    rule: str
    matched: Optional[str] = None


def classify_message(message: str) -> IntentDecision:
    text = (message or "").strip()
    if len(text) < MIN_MESSAGE_LENGTH:
        return IntentDecision(False, "too_short")

    for pattern in CONVERSATIONAL_PATTERNS:
        match = pattern.search(text)
        if match:
            return IntentDecision(False, "conversational", match.group(0))

    lowered = text.lower()
    for keyword in GENERATION_KEYWORDS:
        if keyword in lowered:
            return IntentDecision(True, "keyword", keyword)

    for pattern in LOOSE_GENERATION_PATTERNS:
        match = pattern.search(text)
        if match:
            return IntentDecision(True, "pattern", match.group(0))

    return IntentDecision(False, "default")


def is_generation_intent(message: str) -> bool:
    decision = classify_message(message)
    logger.debug(
        "intent.classified",
        extra={"is_generation": decision.is_generation, "rule": decision.rule, "matched": decision.matched},
    )
    return decision.is_generation
