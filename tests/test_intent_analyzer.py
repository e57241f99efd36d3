"""
Tests for the keyword intent analyzer.

The analyzer only biases the model, so these tests pin down the documented
query fixtures: explicit and implicit creation, matches against existing
capabilities, update requests, and plain informational questions that must
not trigger anything.
"""

from __future__ import annotations

import pytest

from tests.conftest import ScriptedLLM
from toolsmith.agent import Agent
from toolsmith.analysis.intent import IntentAnalysis, IntentVocabulary, KeywordIntentAnalyzer


@pytest.fixture()
def analyzer() -> KeywordIntentAnalyzer:
    return KeywordIntentAnalyzer()


@pytest.fixture()
def capabilities(weather_stub, calculator_stub):
    return [weather_stub, calculator_stub]


class TestExplicitCreation:
    @pytest.mark.parametrize(
        "query",
        [
            "Create a tool that can generate images",
            "I need a tool for converting currencies",
            "Can you make a tool that analyzes sentiment?",
            "Please build a tool to fetch stock prices",
        ],
    )
    def test_requires_new_tool(self, analyzer, capabilities, query):
        result = analyzer.analyze(query, capabilities)
        assert result.requires_new_tool is True
        assert result.should_update_existing is False
        assert result.matching_existing_tool is None
        assert result.operation == "create"
        assert result.suggested_tool_name
        assert result.suggested_requirements

    @pytest.mark.parametrize(
        "query,expected_name",
        [
            ("Create a tool that can generate images", "image_generator"),
            ("I need a tool for converting currencies", "currency_converter"),
            ("Please build a tool to fetch stock prices", "stock_price_fetcher"),
            ("Make a tool for sentiment analysis", "sentiment_analyzer"),
            ("Create a tool that generates images", "image_generator"),
        ],
    )
    def test_suggested_names(self, analyzer, capabilities, query, expected_name):
        assert analyzer.analyze(query, capabilities).suggested_tool_name == expected_name


class TestImplicitCreation:
    @pytest.mark.parametrize(
        "query",
        [
            "I want to convert 100 USD to EUR",
            "Can you generate an image of a cat?",
            "What's the current stock price of AAPL?",
            "Analyze the sentiment of this tweet",
        ],
    )
    def test_requires_new_tool(self, analyzer, capabilities, query):
        result = analyzer.analyze(query, capabilities)
        assert result.requires_new_tool is True
        assert result.matching_existing_tool is None


class TestExistingMatch:
    @pytest.mark.parametrize(
        "query,expected",
        [
            ("What's the weather in New York?", "weather"),
            ("Calculate 5 * 7", "calculator"),
            ("Tell me the weather forecast for London", "weather"),
        ],
    )
    def test_matches_existing_capability(self, analyzer, capabilities, query, expected):
        result = analyzer.analyze(query, capabilities)
        assert result.requires_new_tool is False
        assert result.should_update_existing is False
        assert result.matching_existing_tool is not None
        assert result.matching_existing_tool.name == expected
        assert result.operation is None


class TestUpdate:
    @pytest.mark.parametrize(
        "query,expected",
        [
            ("Can you update the weather tool to show forecasts for the next 5 days?", "weather"),
            ("Enhance the calculator to handle scientific notation", "calculator"),
            ("Modify the weather tool to include humidity information", "weather"),
            ("Add support for complex numbers to the calculator", "calculator"),
        ],
    )
    def test_should_update_existing(self, analyzer, capabilities, query, expected):
        result = analyzer.analyze(query, capabilities)
        assert result.should_update_existing is True
        assert result.requires_new_tool is False
        assert result.matching_existing_tool.name == expected
        assert result.suggested_tool_name == expected
        assert result.operation == "update"


class TestInformational:
    @pytest.mark.parametrize(
        "query",
        [
            "What is the capital of France?",
            "Tell me about quantum physics",
            "Who was Albert Einstein?",
            "What are the benefits of exercise?",
        ],
    )
    def test_no_synthesis_suggested(self, analyzer, capabilities, query):
        result = analyzer.analyze(query, capabilities)
        assert result == IntentAnalysis()


class TestRequirements:
    def test_extracts_key_details(self, analyzer):
        query = (
            "Create a tool that can convert currencies using current exchange rates. "
            "It should take an amount, source currency, and target currency as input."
        )
        requirements = analyzer.extract_requirements(query).lower()
        for fragment in ("convert currencies", "exchange rates", "amount", "source currency", "target currency"):
            assert fragment in requirements

    def test_short_query_kept_whole(self, analyzer):
        assert analyzer.extract_requirements("Please translate text") == "translate text"


class TestVocabulary:
    def test_custom_vocabulary_changes_matching(self, capabilities):
        vocab = IntentVocabulary(capability_aliases={"weather": ("umbrella",)})
        analyzer = KeywordIntentAnalyzer(vocab)
        result = analyzer.analyze("Do I need an umbrella today?", capabilities)
        assert result.matching_existing_tool is not None
        assert result.matching_existing_tool.name == "weather"

    def test_fallback_name_without_action(self, analyzer):
        assert analyzer.suggest_tool_name("Create a tool for poetry rhymes") == "poetry_rhymes"


class TestSynthesisCapabilityExcluded:
    @pytest.fixture()
    def agent_capabilities(self, tmp_path):
        return Agent(ScriptedLLM(), generated_dir=tmp_path / "generated").registry.get_all()

    def test_creation_request_is_not_an_update_of_the_creation_tool(self, analyzer, agent_capabilities):
        result = analyzer.analyze(
            "Create a tool that can update my calendar after each meeting", agent_capabilities
        )
        assert result.requires_new_tool is True
        assert result.should_update_existing is False
        assert result.matching_existing_tool is None
        assert result.operation == "create"
        assert result.suggested_tool_name == "update_calendar"

    def test_naming_the_creation_tool_does_not_target_it(self, analyzer, agent_capabilities):
        result = analyzer.analyze("Please update the request_tool_creation tool", agent_capabilities)
        assert result.matching_existing_tool is None
        assert result.should_update_existing is False

    def test_exclusion_is_configurable(self, agent_capabilities):
        analyzer = KeywordIntentAnalyzer(IntentVocabulary(excluded_categories=frozenset()))
        result = analyzer.analyze("Please update the request_tool_creation tool", agent_capabilities)
        assert result.matching_existing_tool is not None
        assert result.matching_existing_tool.name == "request_tool_creation"
