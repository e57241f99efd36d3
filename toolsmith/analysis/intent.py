"""
Intent Analyzer — a cheap, LLM-independent read on what the user wants.

Before each user turn reaches the model, the agent asks an IntentStrategy
whether the request looks like it needs a brand-new capability, an update to
an existing one, or neither. The answer only biases the next model call (it
becomes a transient hint message); the model keeps final authority over
whether to call request_tool_creation.

The default strategy, KeywordIntentAnalyzer, is a phrase-table heuristic:

1. EXISTING MATCH: a capability's name (or a configured alias) appears in the
   query, or at least two meaningful words of its description do.
2. EXPLICIT CREATE: a trigger phrase such as "create a tool" or "tool that can".
3. IMPLICIT CREATE: an action verb co-occurring with a domain noun ("convert"
   + "currency"), or a standalone lookup phrase ("stock price"). Only checked
   when step 1 found nothing.
4. UPDATE: an update verb co-occurring with a capability name mention.

Every term matches at a word start, so "api" does not fire inside "capital"
and "change" does not fire inside "exchange", while stems like "generat" still
cover "generate", "generates" and "generating".

The tables live in IntentVocabulary and are plain data. Swap the vocabulary,
or the whole strategy, without touching the agentic loop. This is a
fixture-tuned approximation of intent, not natural-language understanding.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IntentAnalysis:
    """The analyzer's recommendation for one user query."""

    requires_new_tool: bool = False
    should_update_existing: bool = False
    matching_existing_tool: Optional[Any] = None
    suggested_tool_name: Optional[str] = None
    suggested_requirements: Optional[str] = None

    @property
    def operation(self) -> Optional[str]:
        """"update", "create", or None when no synthesis is suggested."""
        if self.should_update_existing:
            return "update"
        if self.requires_new_tool:
            return "create"
        return None


@dataclass(frozen=True)
class IntentVocabulary:
    """Phrase and keyword tables driving KeywordIntentAnalyzer.

    Order matters for ``actions`` and ``domains``: the first action stem found
    in the query is paired with the first domain stem found, so more specific
    entries ("database") must precede more general ones ("data").
    """

    explicit_phrases: tuple[str, ...] = (
        "create a tool",
        "make a tool",
        "build a tool",
        "develop a tool",
        "i need a tool",
        "can you create a tool",
        "could you make a tool",
        "new tool",
        "tool for",
        "tool that can",
    )
    standalone_phrases: tuple[str, ...] = (
        "stock price",
        "exchange rate",
    )
    # action stem -> suffix of the suggested tool name
    actions: tuple[tuple[str, str], ...] = (
        ("convert", "_converter"),
        ("translat", "_translator"),
        ("analy", "_analyzer"),
        ("generat", "_generator"),
        ("calculat", "_calculator"),
        ("fetch", "_fetcher"),
        ("get", "_getter"),
        ("find", "_finder"),
        ("summari", "_summarizer"),
        ("creat", "_creator"),
        ("transform", "_transformer"),
    )
    # domain stem -> prefix of the suggested tool name
    domains: tuple[tuple[str, str], ...] = (
        ("currenc", "currency"),
        ("usd", "currency"),
        ("eur", "currency"),
        ("exchange rate", "currency"),
        ("weather", "weather"),
        ("stock", "stock_price"),
        ("sentiment", "sentiment"),
        ("image", "image"),
        ("picture", "image"),
        ("audio", "audio"),
        ("video", "video"),
        ("translation", "text"),
        ("text", "text"),
        ("database", "database"),
        ("data", "data"),
        ("api", "api"),
        ("chart", "chart"),
        ("graph", "chart"),
        ("plot", "chart"),
        ("file", "file"),
        ("download", "file"),
    )
    update_verbs: tuple[str, ...] = (
        "update",
        "enhance",
        "improve",
        "extend",
        "add to",
        "add support",
        "modify",
        "upgrade",
        "change",
        "make better",
        "add capability",
    )
    # capability name -> extra terms that count as mentioning it
    capability_aliases: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: {
            "weather": ("forecast",),
            "calculator": ("calculat", "computation"),
        }
    )
    stop_words: frozenset[str] = frozenset(
        {"this", "that", "with", "from", "what", "about", "would", "could"}
    )
    min_keyword_length: int = 5
    min_shared_keywords: int = 2
    # categories never offered as a match or an update target
    excluded_categories: frozenset[str] = frozenset({"synthesis"})


class IntentStrategy(Protocol):
    """Anything that can turn a query plus capabilities into an IntentAnalysis."""

    def analyze(self, query: str, capabilities: Sequence[Any]) -> IntentAnalysis:
        ...


_CREATE_BOILERPLATE = re.compile(
    r"(create|make|build|develop) a tool (for|that|to)|i need a tool (for|that|to)",
    re.IGNORECASE,
)
_UPDATE_BOILERPLATE = re.compile(
    r"(update|enhance|improve|modify) the \w+ tool (to|so)",
    re.IGNORECASE,
)
_POLITE_PREFIX = re.compile(r"^\s*((can|could|would) you|please)\s+", re.IGNORECASE)
_SENTENCE_SPLIT = re.compile(r"[.!?]")
_WORD = re.compile(r"[a-z0-9]+")


def _mentions(text: str, term: str) -> bool:
    """True if ``term`` occurs in ``text`` starting at a word boundary."""
    return re.search(r"\b" + re.escape(term), text) is not None


class KeywordIntentAnalyzer:
    """Phrase-table intent heuristic. Stateless apart from its vocabulary."""

    def __init__(self, vocabulary: Optional[IntentVocabulary] = None):
        self.vocabulary = vocabulary or IntentVocabulary()

    def analyze(self, query: str, capabilities: Sequence[Any]) -> IntentAnalysis:
        text = query.lower()
        excluded = self.vocabulary.excluded_categories
        capabilities = [c for c in capabilities if getattr(c, "category", None) not in excluded]

        matched = self._find_matching_capability(text, capabilities)
        explicit = self._detect_explicit_creation(text)
        implicit = matched is None and self._detect_implicit_creation(text)
        update_target = self._detect_update_target(text, capabilities)

        requires_new_tool = (explicit or implicit) and matched is None
        should_update = update_target is not None or (matched is not None and explicit)

        target = matched if matched is not None else update_target
        name: Optional[str] = None
        requirements: Optional[str] = None
        if should_update and target is not None:
            name = target.name
        elif requires_new_tool:
            name = self.suggest_tool_name(query)
        if requires_new_tool or should_update:
            requirements = self.extract_requirements(query)

        analysis = IntentAnalysis(
            requires_new_tool=requires_new_tool,
            should_update_existing=should_update,
            matching_existing_tool=target,
            suggested_tool_name=name,
            suggested_requirements=requirements,
        )
        logger.debug(
            "intent.analyzed",
            query=query,
            operation=analysis.operation,
            matched=getattr(target, "name", None),
            suggested_name=name,
        )
        return analysis

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    def _is_mentioned(self, text: str, capability: Any) -> bool:
        name = str(capability.name).lower()
        if _mentions(text, name):
            return True
        aliases = self.vocabulary.capability_aliases.get(capability.name, ())
        return any(_mentions(text, alias) for alias in aliases)

    def _description_keywords(self, description: str) -> list[str]:
        vocab = self.vocabulary
        keywords = []
        for raw in description.lower().split():
            word = raw.strip(".,;:!?()[]{}\"'")
            if len(word) >= vocab.min_keyword_length and word not in vocab.stop_words:
                keywords.append(word)
        return keywords

    def _find_matching_capability(self, text: str, capabilities: list[Any]) -> Optional[Any]:
        for capability in capabilities:
            if self._is_mentioned(text, capability):
                return capability

        for capability in capabilities:
            keywords = self._description_keywords(getattr(capability, "description", "") or "")
            shared = {kw for kw in keywords if _mentions(text, kw)}
            if len(shared) >= self.vocabulary.min_shared_keywords:
                return capability
        return None

    def _detect_explicit_creation(self, text: str) -> bool:
        return any(_mentions(text, phrase) for phrase in self.vocabulary.explicit_phrases)

    def _detect_implicit_creation(self, text: str) -> bool:
        vocab = self.vocabulary
        if any(_mentions(text, phrase) for phrase in vocab.standalone_phrases):
            return True
        has_action = any(_mentions(text, stem) for stem, _ in vocab.actions)
        has_domain = any(_mentions(text, stem) for stem, _ in vocab.domains)
        return has_action and has_domain

    def _detect_update_target(self, text: str, capabilities: list[Any]) -> Optional[Any]:
        if not any(_mentions(text, verb) for verb in self.vocabulary.update_verbs):
            return None
        for capability in capabilities:
            if self._is_mentioned(text, capability):
                return capability
        return None

    # -------------------------------------------------------------------------
    # Suggestions
    # -------------------------------------------------------------------------

    def suggest_tool_name(self, query: str) -> str:
        """Derive a snake_case capability name from the query."""
        vocab = self.vocabulary
        clean = _CREATE_BOILERPLATE.sub("", query.lower()).strip()

        for stem, suffix in vocab.actions:
            if not _mentions(clean, stem):
                continue
            for domain, prefix in vocab.domains:
                if _mentions(clean, domain):
                    return f"{prefix}{suffix}"
            after = re.search(r"\b" + re.escape(stem) + r"\w*\s+([a-z0-9]+)", clean)
            if after:
                return f"{after.group(1)}{suffix}"

        words = [
            w for w in _WORD.findall(clean)
            if len(w) > 3 and w not in vocab.stop_words
        ]
        if len(words) >= 2:
            return f"{words[0]}_{words[1]}"
        if len(words) == 1:
            return f"{words[0]}_tool"
        return "custom_tool"

    def extract_requirements(self, query: str) -> str:
        """Strip creation/update boilerplate and keep the first one or two sentences."""
        clean = _CREATE_BOILERPLATE.sub("", query)
        clean = _UPDATE_BOILERPLATE.sub("", clean)
        clean = _POLITE_PREFIX.sub("", clean).strip()

        if len(clean.split()) <= 5:
            return clean

        sentences = [s.strip() for s in _SENTENCE_SPLIT.split(clean) if s.strip()]
        if sentences:
            return " ".join(sentences[:2])
        return clean
