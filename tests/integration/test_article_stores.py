import asyncio

import pytest

from conftest import open_memory_stores
from core.exceptions import StoreOperationError, ValidationError
from core.models import Article, ArticleAnalyzed, FederatedArticlePointer, Source
from core.storage import MemoryBlobStore
from core.stores import FederatedPointerStore


def test_save_without_overwrite_keeps_existing_entry():
    async def scenario():
        engine, local, _, _ = await open_memory_stores()
        await local.save(Article(id="1", url="https://a.example/x", title="Original", summary="enriched"))

        assert await local.save(Article(id="2", url="https://a.example/x", title="Refetched"), overwrite=False) is None
        assert (await local.get("https://a.example/x")).summary == "enriched"

        assert await local.save(Article(id="3", url="https://a.example/x", title="Replaced")) is True
        assert (await local.get("https://a.example/x")).title == "Replaced"
        await engine.stop()

    asyncio.run(scenario())


def test_add_unique_counts_only_new_urls():
    async def scenario():
        engine, local, _, _ = await open_memory_stores()
        batch = [Article(id=str(i), url=f"https://a.example/{i}", title="t") for i in range(3)]

        assert await local.add_unique(batch) == 3
        assert await local.add_unique(batch + [Article(id="9", url="", title="no url")]) == 0
        assert len(await local.all()) == 3
        await engine.stop()

    asyncio.run(scenario())


@pytest.mark.parametrize("identifier,expected_id", [
    ("https://a.example/story", "id-1"),
    ("id-1", "id-1"),
    ("bafyhash", "id-1"),
    ("https://a.example/story/", "id-1"),
    ("https://a.example/other", None),
    ("", None),
])
def test_get_by_any_identifier(identifier, expected_id):
    async def scenario():
        engine, local, _, _ = await open_memory_stores()
        await local.save(Article(id="id-1", url="https://a.example/story", title="t", ipfs_hash="bafyhash"))

        found = await local.get_by_any_identifier(identifier)

        assert (found.id if found else None) == expected_id
        await engine.stop()

    asyncio.run(scenario())


def test_all_filters_by_enabled_sources():
    async def scenario():
        engine, local, _, _ = await open_memory_stores()
        await local.save(Article(id="1", url="https://a.example/1", title="t", source="Wire One"))
        await local.save(Article(id="2", url="https://a.example/2", title="t", source="Wire Two"))
        sources = [Source(name="Wire One", endpoint="https://one.example/api"),
                   Source(name="Wire Two", endpoint="https://two.example/api", enabled=False)]

        assert [a.id for a in await local.all(sources)] == ["1"]
        assert len(await local.all()) == 2
        await engine.stop()

    asyncio.run(scenario())


def test_writes_are_audited_and_closed_store_rejects_writes():
    async def scenario():
        engine, local, analyzed, debug = await open_memory_stores()
        await analyzed.save(ArticleAnalyzed(id="an-1", url="https://a.example/1", original_id="1"))
        await local.save(Article(id="1", url="https://a.example/1", title="t"))
        await local.delete("https://a.example/1")
        await local.flush_audit()
        await analyzed.flush_audit()

        messages = sorted(e.message for e in await debug.all())
        assert messages == ["Deleted article from articles", "Saved article to analyzed", "Saved article to articles"]
        assert (await analyzed.get_by_original_id("1")).id == "an-1"

        await local.close()
        with pytest.raises(StoreOperationError):
            await local.save(Article(id="2", url="https://a.example/2", title="t"))
        assert await local.all() == []
        await engine.stop()

    asyncio.run(scenario())


def test_article_without_key_is_rejected():
    async def scenario():
        engine, local, _, _ = await open_memory_stores()
        with pytest.raises(ValidationError):
            await local.save(Article(id="1", url="", title="t"))
        await engine.stop()

    asyncio.run(scenario())


def test_federated_pointers_load_content_from_blobs():
    async def scenario():
        blobs = MemoryBlobStore()
        store = FederatedPointerStore()
        cid = await blobs.put({"id": "an-1", "url": "https://a.example/1", "content": "text", "analyzed": True})
        await store.append(FederatedArticlePointer(cid=cid, analyzed=True, source="Wire One"))

        assert await store.load_content(cid) is None
        store.attach_blob_store(blobs)
        article = await store.load_content(cid)

        assert isinstance(article, ArticleAnalyzed)
        assert article.ipfs_hash == cid
        assert (await store.get(cid)).source == "Wire One"
        assert await store.query(lambda p: not p.analyzed) == []
        assert await store.load_content("bafy123") is None

    asyncio.run(scenario())


def test_local_store_keeps_analyzed_records_in_plain_form():
    async def scenario():
        engine, local, _, _ = await open_memory_stores()
        await local.save(ArticleAnalyzed(id="an-1", url="https://a.example/1", title="t",
                                         content="text", summary="s", original_id="1"))

        stored = await local.get("https://a.example/1")

        assert type(stored) is Article
        assert stored.analyzed is False
        assert stored.id == "1"
        assert stored.summary == "s"
        await engine.stop()

    asyncio.run(scenario())


def test_undecodable_documents_are_skipped():
    async def scenario():
        engine, local, _, _ = await open_memory_stores()
        await local.save(Article(id="1", url="https://a.example/1", title="t"))
        await local.collection.put({"url": "https://a.example/broken", "source_meta": "not an object"})

        assert [a.url for a in await local.all()] == ["https://a.example/1"]
        assert await local.get("https://a.example/broken") is None
        assert (await local.get_by_any_identifier("1")).url == "https://a.example/1"
        await engine.stop()

    asyncio.run(scenario())


def test_federated_append_audits_without_waiting():
    async def scenario():
        engine, _, _, debug = await open_memory_stores()
        store = FederatedPointerStore(audit=debug)

        await store.append(FederatedArticlePointer(cid="bafy1", analyzed=False))
        before = [e.message for e in await debug.all()]
        await store.close()
        after = [e.message for e in await debug.all()]

        assert "Saved federated pointer" not in before
        assert after.count("Saved federated pointer") == 1
        await engine.stop()

    asyncio.run(scenario())
