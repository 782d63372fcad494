import asyncio

import pytest

from conftest import FakeAdapter, FakeBlobStore, FakeFetcher, open_memory_stores
from core.exceptions import MissingCollaboratorError
from core.models import Article, ArticleAnalyzed
from core.resolution import ContentResolver
from core.storage import MemoryBlobStore
from core.stores import FederatedPointerStore

ARTICLE_URL = "https://news.example/politics/budget-vote"
ARTICLE_TEXT = "Parliament passed the budget. The vote was close. Markets rose. Critics objected."


class StubRegistry:
    def __init__(self, text: str = ARTICLE_TEXT, fail: bool = False) -> None:
        self.text = text
        self.fail = fail
        self.lookups = []

    def lookup(self, hostname_or_url):
        self.lookups.append(hostname_or_url)

        def _parse(raw_html: str) -> str:
            if self.fail:
                raise ValueError("markup changed")
            return self.text

        return _parse


def make_resolver(local, analyzed, fetcher=None, registry=None, adapter=None, federated=None):
    return ContentResolver(
        local,
        analyzed,
        fetcher or FakeFetcher({ARTICLE_URL: "<html><body>page</body></html>"}),
        registry or StubRegistry(),
        adapter or FakeAdapter(),
        federated_store=federated,
    )


def resolved_article() -> ArticleAnalyzed:
    return ArticleAnalyzed(
        id="analyzed-1",
        url=ARTICLE_URL,
        title="Budget vote",
        content="Full text",
        summary="Summary",
        ipfs_hash="bafyresident",
        original_id="article-1",
    )


def test_resolved_article_is_returned_without_io():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        fetcher = FakeFetcher({ARTICLE_URL: "<p>page</p>"})
        adapter = FakeAdapter()
        blob = FakeBlobStore({"bafyresident": {"content": "other"}})
        resolver = make_resolver(local, analyzed, fetcher=fetcher, adapter=adapter)

        article = resolved_article()
        first = await resolver.resolve(article, blob)
        second = await resolver.resolve(first, blob)

        assert first is article
        assert second is article
        assert fetcher.calls == []
        assert blob.get_calls == []
        assert adapter.normalize_calls == []
        assert await local.all() == []
        await engine.stop()

    asyncio.run(scenario())


def test_blob_tier_serves_article_without_network():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        fetcher = FakeFetcher()
        blob = FakeBlobStore({"bafy123": {"content": "hello", "summary": "hi", "analyzed": True}})
        resolver = make_resolver(local, analyzed, fetcher=fetcher)

        article = Article(id="a-1", url="https://x.com/a", content=None, ipfs_hash="bafy123")
        result = await resolver.resolve(article, blob)

        assert isinstance(result, ArticleAnalyzed)
        assert result.content == "hello"
        assert result.summary == "hi"
        assert result.url == "https://x.com/a"
        assert result.ipfs_hash == "bafy123"
        assert fetcher.calls == []
        assert blob.get_calls == ["bafy123"]

        stored = await local.get("https://x.com/a")
        assert type(stored) is Article
        assert stored.id == "a-1"
        assert stored.content == "hello"
        assert stored.ipfs_hash == "bafy123"

        assert result.id != "a-1"
        assert result.original_id == "a-1"
        assert (await analyzed.get_by_original_id("a-1")).id == result.id
        await engine.stop()

    asyncio.run(scenario())


def test_blob_with_its_own_analyzed_identity_keeps_it():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        blob = FakeBlobStore({"bafy456": {
            "id": "peer-analyzed", "original_id": "peer-local", "content": "hello", "summary": "hi", "analyzed": True,
        }})
        resolver = make_resolver(local, analyzed, fetcher=FakeFetcher())

        result = await resolver.resolve(Article(id="a-2", url="https://x.com/b", ipfs_hash="bafy456"), blob)

        assert (result.id, result.original_id) == ("peer-analyzed", "peer-local")
        assert (await analyzed.get("peer-analyzed")).content == "hello"
        assert (await local.get("https://x.com/b")).id == "a-2"
        await engine.stop()

    asyncio.run(scenario())


@pytest.mark.parametrize("blob", [FakeBlobStore(fail=True), FakeBlobStore({})])
def test_blob_failure_falls_through_to_source(blob):
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        fetcher = FakeFetcher({ARTICLE_URL: "<html>page</html>"})
        resolver = make_resolver(local, analyzed, fetcher=fetcher)

        article = Article(id="article-1", url=ARTICLE_URL, ipfs_hash="bafymissing")
        result = await resolver.resolve(article, blob)

        assert fetcher.calls == [ARTICLE_URL]
        assert result.analyzed is True
        assert result.content == ARTICLE_TEXT
        await engine.stop()

    asyncio.run(scenario())


def test_blob_tier_skipped_without_blob_store():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        fetcher = FakeFetcher({ARTICLE_URL: "<html>page</html>"})
        resolver = make_resolver(local, analyzed, fetcher=fetcher)

        result = await resolver.resolve(Article(id="article-1", url=ARTICLE_URL, ipfs_hash="bafy123"), None)

        assert fetcher.calls == [ARTICLE_URL]
        assert result.ipfs_hash == "bafy123"
        await engine.stop()

    asyncio.run(scenario())


def test_source_tier_enriches_analyzes_and_persists():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        blob = MemoryBlobStore()
        federated = FederatedPointerStore(blob_store=blob)
        registry = StubRegistry()
        resolver = make_resolver(local, analyzed, registry=registry, federated=federated)

        article = Article(id="article-1", url=ARTICLE_URL, title="Budget vote", source="Wire One")
        result = await resolver.resolve(article, blob)

        assert isinstance(result, ArticleAnalyzed)
        assert result.id != "article-1"
        assert result.original_id == "article-1"
        assert result.content == ARTICLE_TEXT
        assert result.summary == "Model summary."
        assert result.tags == ["politics", "economy"]
        assert result.raw == "<html><body>page</body></html>"
        assert result.fetched_at
        assert result.political_bias == "center"
        assert result.sentiment == "negative"
        assert result.cognitive_biases[0].bias == "framing"
        assert registry.lookups == [ARTICLE_URL]

        assert result.ipfs_hash
        from_blob = await blob.get(result.ipfs_hash)
        assert from_blob["content"] == ARTICLE_TEXT
        assert from_blob["analyzed"] is True

        pointers = await federated.all()
        assert [p.cid for p in pointers] == [result.ipfs_hash]
        assert pointers[0].analyzed is True

        local_copy = await local.get(ARTICLE_URL)
        assert local_copy.id == "article-1"
        assert type(local_copy) is Article
        assert local_copy.analyzed is False
        assert local_copy.content == ARTICLE_TEXT
        assert local_copy.summary == "Model summary."
        assert local_copy.tags == ["politics", "economy"]
        assert local_copy.ipfs_hash == result.ipfs_hash
        assert all(not a.analyzed for a in await local.all())

        analyzed_copy = await analyzed.get(result.id)
        assert analyzed_copy.original_id == "article-1"
        assert (await analyzed.get_by_original_id("article-1")).id == result.id
        await engine.stop()

    asyncio.run(scenario())


def test_fetch_failure_returns_article_unchanged():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        adapter = FakeAdapter()
        resolver = make_resolver(local, analyzed, fetcher=FakeFetcher({}), adapter=adapter)

        article = Article(id="article-1", url=ARTICLE_URL, title="Budget vote")
        result = await resolver.resolve(article, MemoryBlobStore())

        assert result is article
        assert result.content is None
        assert adapter.normalize_calls == []
        assert await local.all() == []
        await engine.stop()

    asyncio.run(scenario())


def test_parser_failure_falls_back_to_raw_payload():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        adapter = FakeAdapter()
        fetcher = FakeFetcher({ARTICLE_URL: "Raw body. Still raw."})
        resolver = make_resolver(local, analyzed, fetcher=fetcher, registry=StubRegistry(fail=True), adapter=adapter)

        result = await resolver.resolve(Article(id="article-1", url=ARTICLE_URL))

        assert adapter.normalize_calls == ["Raw body. Still raw."]
        assert result.content == "Raw body. Still raw."
        await engine.stop()

    asyncio.run(scenario())


def test_normalize_failure_uses_first_three_sentences():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        adapter = FakeAdapter(fail_normalize=True)
        resolver = make_resolver(local, analyzed, adapter=adapter)

        result = await resolver.resolve(Article(id="article-1", url=ARTICLE_URL))

        assert result.summary == "Parliament passed the budget. The vote was close. Markets rose."
        assert result.tags == []
        assert result.content == ARTICLE_TEXT
        assert result.analyzed is True
        await engine.stop()

    asyncio.run(scenario())


def test_analysis_failure_keeps_enriched_base():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        resolver = make_resolver(local, analyzed, adapter=FakeAdapter(fail_analyze=True))

        article = Article(id="article-1", url=ARTICLE_URL, title="Budget vote")
        result = await resolver.resolve(article)

        assert type(result) is Article
        assert result.analyzed is False
        assert result.id == "article-1"
        assert result.summary == "Model summary."
        assert not result.is_resolved()
        assert (await local.get(ARTICLE_URL)).summary == "Model summary."
        assert await analyzed.all() == []
        await engine.stop()

    asyncio.run(scenario())


def test_article_without_url_or_blob_is_returned_as_is():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        fetcher = FakeFetcher()
        resolver = make_resolver(local, analyzed, fetcher=fetcher)

        article = Article(id="orphan")
        assert await resolver.resolve(article) is article
        assert fetcher.calls == []
        await engine.stop()

    asyncio.run(scenario())


def test_missing_collaborator_raises():
    async def scenario():
        engine, local, analyzed, _ = await open_memory_stores()
        with pytest.raises(MissingCollaboratorError):
            ContentResolver(local, analyzed, object(), StubRegistry(), FakeAdapter())
        with pytest.raises(MissingCollaboratorError):
            ContentResolver(local, None, FakeFetcher(), StubRegistry(), FakeAdapter())
        await engine.stop()

    asyncio.run(scenario())
