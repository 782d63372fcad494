import asyncio
import json

import pytest
from aiohttp import test_utils

from conftest import FakeAdapter, FakeFetcher, article_feed
from core.exceptions import MissingCollaboratorError, StorageDirectoryError
from core.http_api import create_app
from core import lifecycle
from core.lifecycle import NodeLifecycleManager
from core.models import Article
from core.network import PeerNetwork
from core.sources import create_default_registry
from core.storage import MemoryBlobStore, clean_lock_files

STORY_URL = "https://one.example/story-0"
STORY_HTML = "<html><body><nav>menu</nav><main><p>Budget passed. The vote was close.</p></main></body></html>"


def lock_files(root):
    return sorted(str(p.relative_to(root)) for p in root.rglob("LOCK"))


def make_node(config, sources=None, fetcher=None, blob_store=None, terminate=None):
    feed = article_feed(
        {"title": "one story 0", "url": STORY_URL},
        {"title": "one story 1", "url": "https://one.example/story-1"},
    )
    return NodeLifecycleManager(
        config,
        PeerNetwork([], poll_interval=config.network.peer_poll_interval),
        fetcher or FakeFetcher({"https://one.example/api": feed, STORY_URL: STORY_HTML}),
        FakeAdapter(),
        create_default_registry(),
        sources=sources,
        blob_store=blob_store,
        serve_http=False,
        terminate=terminate,
    )


def test_start_and_shutdown_release_everything(node_config):
    data_dir = node_config.storage.data_dir
    terminated = []

    async def scenario():
        node = make_node(node_config, terminate=lambda: terminated.append(True))
        services = await node.start()

        assert node.started
        assert (await services.get_status())['running'] is True
        assert json.loads(node_config.storage.status_file.read_text())['running'] is True
        assert "keystore/LOCK" in lock_files(data_dir)
        assert "blockstore/LOCK" in lock_files(data_dir)
        assert node_config.storage.db_paths_file.exists()
        assert [e['message'] for e in await services.list_log()][:1] == ["Debug log initialized"]

        await node.shutdown()
        await node.shutdown()

        assert not node.started
        assert not node_config.storage.status_file.exists()
        assert node.network.running is False

    asyncio.run(scenario())

    assert lock_files(data_dir) == []
    assert terminated == [True]


def test_missing_data_directory_is_fatal(node_config, tmp_path):
    node_config.storage.data_dir = tmp_path / "nowhere"

    with pytest.raises(StorageDirectoryError):
        asyncio.run(make_node(node_config).start())


def test_stale_locks_are_removed_before_opening(node_config):
    docstore = node_config.storage.docstore_path
    docstore.mkdir(parents=True)
    (docstore / "LOCK").write_text("left by a crash")

    async def scenario():
        node = make_node(node_config, blob_store=MemoryBlobStore())
        await node.start()
        assert node.started
        await node.shutdown()

    asyncio.run(scenario())


def test_failed_startup_shuts_down_what_was_opened(node_config):
    async def scenario():
        node = make_node(node_config, fetcher=object(), blob_store=MemoryBlobStore())
        with pytest.raises(MissingCollaboratorError):
            await node.start()
        assert not node.started

    asyncio.run(scenario())
    assert lock_files(node_config.storage.data_dir) == []


def test_restart_reopens_the_same_collections(node_config):
    async def first_run():
        node = make_node(node_config, blob_store=MemoryBlobStore())
        services = await node.start()
        await services.local_store.save(Article(id="a-1", url="https://kept.example/a", title="Kept"))
        await node.shutdown()

    async def second_run():
        node = make_node(node_config, blob_store=MemoryBlobStore())
        services = await node.start()
        urls = [a['url'] for a in await services.list_local()]
        await node.shutdown()
        return urls

    asyncio.run(first_run())
    assert asyncio.run(second_run()) == ["https://kept.example/a"]


def test_http_api_end_to_end(node_config, sources):
    async def scenario():
        node = make_node(node_config, sources=sources[:1], blob_store=MemoryBlobStore())
        services = await node.start()

        async with test_utils.TestClient(test_utils.TestServer(create_app(services.as_handlers()))) as client:
            resp = await client.get('/status')
            assert (await resp.json())['running'] is True

            resp = await client.post('/articles/local/fetch', json={})
            assert resp.status == 202
            assert await resp.json() == {'status': 'accepted'}
            await services.background.wait_all()

            resp = await client.get('/articles/local')
            assert sorted(a['url'] for a in await resp.json()) == [STORY_URL, "https://one.example/story-1"]

            resp = await client.get('/articles/local', params={'id': 'https://missing.example/x'})
            assert resp.status == 404
            assert await resp.json() == {'error': 'Article not found', 'level': 'warn'}

            resp = await client.post('/articles/local/full', json={'url': STORY_URL})
            resolved = await resp.json()
            assert resp.status == 200
            assert resolved['analyzed'] is True
            assert resolved['content'] == "Budget passed. The vote was close."
            assert resolved['ipfs_hash']

            resp = await client.get('/articles/analyzed', params={'id': resolved['id']})
            assert (await resp.json())['url'] == STORY_URL

            resp = await client.get('/articles/federated')
            assert [p['cid'] for p in await resp.json()] == [resolved['ipfs_hash']]

            resp = await client.get(f"/blocks/{resolved['ipfs_hash']}")
            assert json.loads(await resp.read())['content'] == resolved['content']

            resp = await client.get('/blocks/bafy123')
            assert resp.status == 404

            resp = await client.post('/articles/local/translate',
                                     json={'url': STORY_URL, 'target_language': 'de', 'fields': ['title']})
            assert (await resp.json())['title'] == "[de] one story 0"

            resp = await client.post('/articles/local/translate', json={'url': STORY_URL})
            assert resp.status == 400
            assert (await resp.json())['level'] == 'warn'

            resp = await client.get('/replication/articles', params={'since': '0'})
            body = await resp.json()
            assert body['collection'] == 'articles'
            assert {e['key'] for e in body['entries']} == {STORY_URL, "https://one.example/story-1"}

            resp = await client.get('/replication/unknown')
            assert resp.status == 404
            resp = await client.get('/replication/articles', params={'since': 'yesterday'})
            assert resp.status == 400

            resp = await client.delete('/articles/local')
            assert resp.status == 400
            resp = await client.delete('/articles/local', params={'url': "https://one.example/story-1"})
            assert resp.status == 200

            resp = await client.get('/log')
            messages = [e['message'] for e in await resp.json()]
            assert "Background fetch completed" in messages
            assert "Article not found" in messages

        await node.shutdown()

    asyncio.run(scenario())


def test_missing_service_answers_with_error_body():
    async def scenario():
        async with test_utils.TestClient(test_utils.TestServer(create_app({}))) as client:
            resp = await client.get('/status')
            assert resp.status == 500
            assert await resp.json() == {'error': 'Service not available: get_status', 'level': 'error'}

            resp = await client.post('/articles/local/full', json={'id': 'x'})
            assert resp.status == 500

    asyncio.run(scenario())


def test_shutdown_runs_each_step_once_in_order(node_config, monkeypatch):
    calls = []

    def spy(name, action):
        def _recorded(*args, **kwargs):
            calls.append(name)
            return action(*args, **kwargs)
        return _recorded

    async def scenario():
        node = NodeLifecycleManager(
            node_config,
            PeerNetwork([], poll_interval=node_config.network.peer_poll_interval),
            FakeFetcher(),
            FakeAdapter(),
            create_default_registry(),
            blob_store=MemoryBlobStore(),
            terminate=lambda: calls.append('terminate'),
        )
        await node.start()
        assert node.http.running

        node.network.stop_polling = spy('stop polling', node.network.stop_polling)
        for name, store in (('local', node.local_store), ('analyzed', node.analyzed_store),
                            ('federated', node.federated_store), ('debug', node.debug_log)):
            store.close = spy(f'close {name}', store.close)
        node.engine.stop = spy('stop engine', node.engine.stop)
        node.keystore.close = spy('close keystore', node.keystore.close)
        node.blob_store.stop = spy('stop blob store', node.blob_store.stop)
        node.network.stop = spy('stop transport', node.network.stop)
        node.status_store.delete = spy('delete status file', node.status_store.delete)
        node.http.close = spy('close http', node.http.close)
        monkeypatch.setattr(lifecycle, 'clean_lock_files', spy('clean locks', clean_lock_files))

        await asyncio.gather(node.shutdown(), node.shutdown())
        await node.shutdown()

    asyncio.run(scenario())

    assert calls == [
        'stop polling',
        'close local', 'close analyzed', 'close federated', 'close debug',
        'stop engine', 'close keystore', 'stop blob store', 'stop transport',
        'delete status file', 'close http',
        'clean locks', 'clean locks', 'clean locks',
        'terminate',
    ]


def test_http_save_refetch_and_log_routes(node_config):
    async def scenario():
        node = make_node(node_config, blob_store=MemoryBlobStore())
        services = await node.start()

        async with test_utils.TestClient(test_utils.TestServer(create_app(services.as_handlers()))) as client:
            story = {"url": "https://saved.example/a", "title": "Saved", "content": "First text"}
            resp = await client.post('/articles/local/save', json=story)
            assert await resp.json() == {'success': True, 'url': story['url'], 'saved': True, 'overwritten': False}

            resp = await client.post('/articles/local/save', json={**story, "content": "Second text"})
            assert (await resp.json())['saved'] is False
            assert (await services.local_store.get(story['url'])).content == "First text"

            resp = await client.post('/articles/local/save', params={'overwrite': 'true'},
                                     json={**story, "content": "Second text"})
            assert (await resp.json())['overwritten'] is True
            assert (await services.local_store.get(story['url'])).content == "Second text"

            resp = await client.post('/articles/local/save', json={"url": "https://saved.example/b"})
            assert resp.status == 400
            assert (await resp.json())['level'] == 'warn'

            resp = await client.post('/articles/local/refetch', json=[
                story,
                {"url": "https://saved.example/c", "title": "New"},
                "junk",
            ])
            assert await resp.json() == {'success': True, 'added': 1}

            resp = await client.post('/articles/local/refetch', json={"url": "https://saved.example/d"})
            assert resp.status == 400

            analyzed = {"id": "an-9", "url": "https://saved.example/a", "original_id": "a", "summary": "S"}
            resp = await client.post('/articles/analyzed/save', json=analyzed)
            assert await resp.json() == {'success': True, 'id': 'an-9'}
            assert (await services.analyzed_store.get("an-9")).analyzed is True

            resp = await client.post('/articles/analyzed/save', json={"url": "https://saved.example/a"})
            assert resp.status == 400

            resp = await client.delete('/articles/analyzed/delete/an-9')
            assert await resp.json() == {'success': True, 'id': 'an-9'}
            assert await services.analyzed_store.get("an-9") is None

            resp = await client.post('/debug/log', json={"message": "Client opened", "level": "warn", "meta": {"ui": 1}})
            assert resp.status == 201
            entry = (await resp.json())['entry']
            assert (entry['message'], entry['level'], entry['meta']) == ("Client opened", "warn", {"ui": 1})

            resp = await client.post('/debug/log', json={"level": "info"})
            assert resp.status == 400

            resp = await client.get('/debug/logs')
            assert "Client opened" in [e['message'] for e in await resp.json()]

        await node.shutdown()

    asyncio.run(scenario())
