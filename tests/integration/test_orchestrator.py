import asyncio
from datetime import datetime, timedelta, timezone

from conftest import FakeAdapter, FakeFetcher, article_feed, open_memory_stores
from core.models import Source
from core.orchestrator import BackgroundTasks, SourceFetchOrchestrator
from core.sources.feeds import FEED_PARSERS


def feed_for(prefix: str, count: int = 2) -> str:
    return article_feed(*[
        {"title": f"{prefix} story {i}", "url": f"https://{prefix}.example/story-{i}"}
        for i in range(count)
    ])


def test_fetch_error_becomes_error_entry():
    """A source whose fetch throws yields an error entry and no articles."""
    fetcher = FakeFetcher({"bad-url": RuntimeError("getaddrinfo failed")})
    orchestrator = SourceFetchOrchestrator(fetcher)

    result = asyncio.run(orchestrator.fetch_all([Source(name="bad", endpoint="bad-url", enabled=True)], "en"))

    assert result.articles == []
    assert result.errors == [{"endpoint": "bad-url", "error": "getaddrinfo failed"}]


def test_failing_parser_does_not_affect_other_sources(sources):
    def broken_parser(raw, source):
        raise KeyError("articles")

    sources[1] = Source(name="Wire Two", endpoint="https://two.example/api", parser="broken")
    fetcher = FakeFetcher({s.endpoint: feed_for(s.name.split()[-1].lower()) for s in sources})
    orchestrator = SourceFetchOrchestrator(fetcher, feed_parsers={**FEED_PARSERS, "broken": broken_parser})

    result = asyncio.run(orchestrator.fetch_all(sources, "en"))

    assert len(result.errors) == 1
    assert result.errors[0]["endpoint"] == "https://two.example/api"
    assert {a.url for a in result.articles} == {
        "https://one.example/story-0", "https://one.example/story-1",
        "https://three.example/story-0", "https://three.example/story-1",
    }
    assert fetcher.calls == [s.endpoint for s in sources]


def test_disabled_sources_are_not_fetched(sources):
    sources[0] = Source(name="Wire One", endpoint="https://one.example/api", enabled=False)
    fetcher = FakeFetcher({s.endpoint: feed_for("x") for s in sources})

    asyncio.run(SourceFetchOrchestrator(fetcher).fetch_all(sources, "en"))

    assert "https://one.example/api" not in fetcher.calls


def test_invalid_records_are_dropped_individually():
    raw = article_feed(
        {"title": "Good", "url": "https://ok.example/1"},
        {"title": "No scheme", "url": "ok.example/2"},
        {"title": "Also good", "url": "https://ok.example/3"},
    )
    source = Source(name="Mixed", endpoint="https://mixed.example/api")
    orchestrator = SourceFetchOrchestrator(FakeFetcher({source.endpoint: raw}))

    result = asyncio.run(orchestrator.fetch_all([source], "en"))

    assert [a.url for a in result.articles] == ["https://ok.example/1", "https://ok.example/3"]
    assert len(result.errors) == 1
    assert result.errors[0]["error"].startswith("Invalid article structure from https://mixed.example/api")


def test_malformed_records_do_not_sink_their_batch():
    raw = article_feed(
        {"title": "Good story", "url": "https://ok.example/good"},
        {"title": 123, "url": "https://ok.example/int-title"},
        {"title": "Dict image", "url": "https://ok.example/image", "imageUrl": {"src": "x.png"}},
        {"title": "Text confidence", "url": "https://ok.example/confidence", "confidence": "high"},
        "not an object",
        {"title": "Also good", "url": "https://ok.example/also-good"},
    )
    source = Source(name="Messy", endpoint="https://one.example/api")
    orchestrator = SourceFetchOrchestrator(FakeFetcher({source.endpoint: raw}))

    result = asyncio.run(orchestrator.fetch_all([source], "en"))

    assert [a.url for a in result.articles] == ["https://ok.example/good", "https://ok.example/also-good"]
    assert len(result.errors) == 3
    assert all(e["endpoint"] == source.endpoint for e in result.errors)
    assert all(e["error"].startswith("Invalid article structure") for e in result.errors)


def test_since_filter_drops_older_articles():
    now = datetime.now(timezone.utc)
    raw = article_feed(
        {"title": "Fresh", "url": "https://t.example/fresh", "publishedAt": now.isoformat()},
        {"title": "Stale", "url": "https://t.example/stale", "publishedAt": (now - timedelta(days=3)).isoformat()},
        {"title": "Undated", "url": "https://t.example/undated"},
    )
    source = Source(name="Timed", endpoint="https://t.example/api")
    orchestrator = SourceFetchOrchestrator(FakeFetcher({source.endpoint: raw}))

    result = asyncio.run(orchestrator.fetch_all([source], "en", since=now - timedelta(hours=6)))

    assert [a.title for a in result.articles] == ["Fresh", "Undated"]


def test_titles_translated_only_when_requested():
    source = Source(name="Wire", endpoint="https://w.example/api")
    adapter = FakeAdapter()
    orchestrator = SourceFetchOrchestrator(FakeFetcher({source.endpoint: feed_for("w", 1)}), adapter=adapter)

    skipped = asyncio.run(orchestrator.fetch_all([source], "de"))
    translated = asyncio.run(orchestrator.fetch_all([source], "de", skip_translation=False))

    assert skipped.articles[0].title == "w story 0"
    assert translated.articles[0].title == "[de] w story 0"
    assert adapter.translated == [["w story 0"]]


def test_duplicate_urls_within_a_batch_are_collapsed():
    raw = article_feed(
        {"title": "First", "url": "https://d.example/1"},
        {"title": "Repeat", "url": "https://d.example/1"},
    )
    source = Source(name="Dup", endpoint="https://d.example/api")

    result = asyncio.run(SourceFetchOrchestrator(FakeFetcher({source.endpoint: raw})).fetch_all([source], "en"))

    assert [a.title for a in result.articles] == ["First"]


def test_ingest_inserts_once_and_reports_to_debug_log(sources):
    async def scenario():
        engine, local, _, debug = await open_memory_stores()
        fetcher = FakeFetcher({s.endpoint: feed_for("same") for s in sources[:1]})
        orchestrator = SourceFetchOrchestrator(fetcher, local_store=local, audit=debug)

        first = await orchestrator.ingest(sources, "en")
        await orchestrator.ingest(sources, "en")
        await local.flush_audit()

        stored = await local.all()
        assert len(first.articles) == 2
        assert sorted(a.url for a in stored) == ["https://same.example/story-0", "https://same.example/story-1"]

        messages = [e.message for e in await debug.all()]
        assert messages.count("Background fetch completed") == 2
        assert "Source fetch failed: https://two.example/api" in messages
        await engine.stop()

    asyncio.run(scenario())


def test_background_task_failure_goes_to_debug_log():
    async def scenario():
        engine, _, _, debug = await open_memory_stores()
        tasks = BackgroundTasks(audit=debug)

        async def explode():
            raise RuntimeError("batch exploded")

        tasks.spawn(explode(), name="ingest")
        await tasks.wait_all()

        entries = await debug.all()
        assert any(e.level == "error" and "batch exploded" in e.message for e in entries)
        assert tasks.pending == 0
        await engine.stop()

    asyncio.run(scenario())
