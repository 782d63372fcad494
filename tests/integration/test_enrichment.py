import asyncio

import pytest

from conftest import FakeEnrichmentClient
from core.analysis import EnrichmentAdapter, clean_html, naive_summary, truncate_text
from core.exceptions import AnalysisError, AnalysisUnavailableError

PAGE = """
<html><head><script>track()</script><style>p {}</style></head>
<body>
  <nav>Home | World</nav>
  <p>The council approved the plan. Residents were divided.</p>
  <div class="paywall">Subscribe to read more</div>
  <p>Work starts in May. Costs may rise.</p>
  <footer>Copyright</footer>
</body></html>
"""


def test_clean_html_keeps_visible_article_text():
    text = clean_html(PAGE)

    assert text == ("The council approved the plan. Residents were divided. "
                    "Work starts in May. Costs may rise.")


@pytest.mark.parametrize("text,expected", [
    ("One. Two. Three. Four.", "One. Two. Three."),
    ("Only one sentence", "Only one sentence"),
    ("", ""),
    (None, ""),
])
def test_naive_summary(text, expected):
    assert naive_summary(text) == expected


def test_truncate_text_cuts_on_word_boundary():
    assert truncate_text("alpha beta gamma", 100) == "alpha beta gamma"
    assert truncate_text("alpha beta gamma", 12) == "alpha beta"


def test_empty_input_gets_neutral_defaults_without_calls():
    client = FakeEnrichmentClient()
    adapter = EnrichmentAdapter(client)

    normalized = asyncio.run(adapter.normalize(""))
    analysis = asyncio.run(adapter.analyze("   "))

    assert (normalized.content, normalized.summary, normalized.tags) == ("", "", [])
    assert analysis.political_bias == "unknown"
    assert analysis.sentiment == "neutral"
    assert analysis.cognitive_biases == []
    assert analysis.antithesis == ""
    assert analysis.philosophical == ""
    assert client.calls == []


def test_normalize_with_client_summarizes_and_tags():
    client = FakeEnrichmentClient()
    result = asyncio.run(EnrichmentAdapter(client).normalize(PAGE))

    assert result.content.startswith("The council approved the plan.")
    assert result.summary == "A short summary."
    assert result.tags == ["elections", "budget"]
    assert "translate" not in client.calls


def test_normalize_translates_when_language_given():
    client = FakeEnrichmentClient()
    result = asyncio.run(EnrichmentAdapter(client).normalize("Hello there.", target_lang="fr"))

    assert result.content == "(fr) Hello there."
    assert client.calls[0] == "translate"


def test_normalize_step_failures_fall_back():
    client = FakeEnrichmentClient(failing=["translate", "summarize", "extract_tags"])
    text = "First point. Second point. Third point. Fourth point."

    result = asyncio.run(EnrichmentAdapter(client).normalize(text, target_lang="de"))

    assert result.content == text
    assert result.summary == "First point. Second point. Third point."
    assert result.tags == []


def test_normalize_without_client_uses_text_fallbacks():
    result = asyncio.run(EnrichmentAdapter().normalize("<p>A. B. C. D.</p>"))

    assert result.content == "A. B. C. D."
    assert result.summary == "A. B. C."
    assert result.tags == []


def test_analyze_collects_every_step():
    result = asyncio.run(EnrichmentAdapter(FakeEnrichmentClient()).analyze("Some article text."))

    assert result.political_bias == "left"
    assert result.sentiment == "positive"
    assert result.cognitive_biases[0].bias == "anchoring"
    assert result.cognitive_biases[0].severity == "medium"
    assert result.antithesis == "Counterpoint."
    assert result.philosophical == "Utilitarian lens."
    assert result.analysis_timestamp


def test_analyze_partial_failure_keeps_neutral_values():
    client = FakeEnrichmentClient(failing=["political_bias", "cognitive_biases"])
    result = asyncio.run(EnrichmentAdapter(client).analyze("Some article text."))

    assert result.political_bias == "unknown"
    assert result.cognitive_biases == []
    assert result.sentiment == "positive"


def test_analyze_raises_when_every_step_fails():
    client = FakeEnrichmentClient(failing=[
        "political_bias", "sentiment", "cognitive_biases", "antithesis", "philosophical",
    ])
    with pytest.raises(AnalysisError):
        asyncio.run(EnrichmentAdapter(client).analyze("Some article text."))


def test_analysis_and_translation_need_a_backend():
    adapter = EnrichmentAdapter()

    with pytest.raises(AnalysisUnavailableError):
        asyncio.run(adapter.analyze("Some article text."))
    with pytest.raises(AnalysisUnavailableError):
        asyncio.run(adapter.translate_titles(["Title"], "es"))
    assert asyncio.run(adapter.translate_titles([], "es")) == []


def test_translate_titles_preserves_order():
    adapter = EnrichmentAdapter(FakeEnrichmentClient())

    assert asyncio.run(adapter.translate_titles(["One", "Two"], "it")) == ["(it) One", "(it) Two"]
