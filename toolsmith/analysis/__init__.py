"""Intent analysis — a cheap pre-filter for tool creation and update requests."""
from toolsmith.analysis.intent import (
    IntentAnalysis,
    IntentStrategy,
    IntentVocabulary,
    KeywordIntentAnalyzer,
)

__all__ = ["IntentAnalysis", "IntentStrategy", "IntentVocabulary", "KeywordIntentAnalyzer"]
