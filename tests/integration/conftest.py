import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Also add the project root to handle absolute imports
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from core.config import ApplicationConfig, Config, IntegrationConfig, NetworkConfig, StorageConfig  # noqa: E402
from core.exceptions import AnalysisError, SourceConnectionError  # noqa: E402
from core.models import AnalysisResult, CognitiveBias, NormalizedContent, Source  # noqa: E402
from core.storage import DocumentStoreEngine  # noqa: E402
from core.stores import AnalyzedArticleStore, DebugLogStore, LocalArticleStore  # noqa: E402


class FakeFetcher:
    """Answers from a url -> text map; exceptions in the map are raised."""

    def __init__(self, responses: Optional[Dict[str, Union[str, Exception]]] = None) -> None:
        self.responses = responses or {}
        self.calls: List[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise SourceConnectionError(url, RuntimeError("no route to host"))
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class FakeAdapter:
    def __init__(self, fail_normalize: bool = False, fail_analyze: bool = False) -> None:
        self.fail_normalize = fail_normalize
        self.fail_analyze = fail_analyze
        self.normalize_calls: List[str] = []
        self.analyze_calls: List[str] = []
        self.translated: List[List[str]] = []

    async def normalize(self, raw_text: str, target_lang: Optional[str] = None) -> NormalizedContent:
        self.normalize_calls.append(raw_text)
        if self.fail_normalize:
            raise AnalysisError("normalize backend down")
        return NormalizedContent(content=raw_text.strip(), summary="Model summary.", tags=["politics", "economy"])

    async def analyze(self, text: str) -> AnalysisResult:
        self.analyze_calls.append(text)
        if self.fail_analyze:
            raise AnalysisError("analysis backend down")
        return AnalysisResult(
            political_bias="center",
            sentiment="negative",
            cognitive_biases=[CognitiveBias(bias="framing", snippet="crisis", explanation="loaded word")],
            antithesis="Another reading.",
            philosophical="Stoic framing.",
        )

    async def translate_titles(self, titles: List[str], target_lang: str) -> List[str]:
        self.translated.append(list(titles))
        return [f"[{target_lang}] {t}" for t in titles]

    async def translate_texts(self, texts: List[str], target_lang: str) -> List[str]:
        return await self.translate_titles(texts, target_lang)


class FakeBlobStore:
    """Serves fixed objects by CID and counts every access."""

    def __init__(self, objects: Optional[Dict[str, Dict[str, Any]]] = None, fail: bool = False) -> None:
        self.objects = dict(objects or {})
        self.fail = fail
        self.get_calls: List[str] = []
        self.put_calls: List[Dict[str, Any]] = []

    async def get(self, cid: str) -> Optional[Dict[str, Any]]:
        self.get_calls.append(cid)
        if self.fail:
            raise TimeoutError("blob fetch timed out")
        obj = self.objects.get(cid)
        return dict(obj) if obj is not None else None

    async def put(self, obj: Dict[str, Any]) -> str:
        self.put_calls.append(obj)
        cid = f"bafyfake{len(self.put_calls)}"
        self.objects[cid] = obj
        return cid


class FakeEnrichmentClient:
    """Stands in for the OpenAI client behind EnrichmentAdapter."""

    def __init__(self, failing: Optional[List[str]] = None) -> None:
        self.failing = set(failing or [])
        self.calls: List[str] = []

    async def _call(self, name: str, value: Any) -> Any:
        self.calls.append(name)
        if name in self.failing:
            raise AnalysisError(f"{name} failed")
        return value

    async def summarize(self, text: str) -> str:
        return await self._call('summarize', "A short summary.")

    async def extract_tags(self, text: str) -> List[str]:
        return await self._call('extract_tags', ["elections", "budget"])

    async def translate(self, texts: List[str], target_lang: str) -> List[str]:
        return await self._call('translate', [f"({target_lang}) {t}" for t in texts])

    async def political_bias(self, text: str) -> str:
        return await self._call('political_bias', "left")

    async def sentiment(self, text: str) -> str:
        return await self._call('sentiment', "positive")

    async def cognitive_biases(self, text: str) -> List[Dict[str, Any]]:
        return await self._call('cognitive_biases', [{"bias": "anchoring", "severity": "medium"}])

    async def antithesis(self, text: str) -> str:
        return await self._call('antithesis', "Counterpoint.")

    async def philosophical(self, text: str) -> str:
        return await self._call('philosophical', "Utilitarian lens.")


async def open_memory_stores():
    """In-memory engine with the debug, local and analyzed stores opened."""
    engine = DocumentStoreEngine(directory=None, identity_id="test-node")
    await engine.start()
    debug = DebugLogStore(await engine.open('debug', index_by='id'))
    local = LocalArticleStore(await engine.open('articles', index_by='url'), 'articles', audit=debug)
    analyzed = AnalyzedArticleStore(await engine.open('analyzed', index_by='id'), 'analyzed', audit=debug)
    return engine, local, analyzed, debug


def article_feed(*articles: Dict[str, Any]) -> str:
    return json.dumps({"articles": list(articles)})


@pytest.fixture
def fake_fetcher_factory():
    def _factory(responses: Optional[Dict[str, Union[str, Exception]]] = None) -> FakeFetcher:
        return FakeFetcher(responses)

    return _factory


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def sources() -> List[Source]:
    return [
        Source(name="Wire One", endpoint="https://one.example/api"),
        Source(name="Wire Two", endpoint="https://two.example/api"),
        Source(name="Wire Three", endpoint="https://three.example/api"),
    ]


@pytest.fixture
def node_config(tmp_path) -> Config:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    storage = StorageConfig(
        data_dir=data_dir,
        keystore_path=data_dir / "keystore",
        docstore_path=data_dir / "docstore",
        blockstore_path=data_dir / "blockstore",
        status_file=data_dir / "status.json",
        db_paths_file=data_dir / "db-paths.json",
        sources_file=tmp_path / "sources.json",
    )
    return Config(
        storage=storage,
        network=NetworkConfig(http_host="127.0.0.1", http_port=0, peers=[], peer_poll_interval=60),
        integrations=IntegrationConfig(),
        app=ApplicationConfig(target_language=None, identity_id="node-under-test"),
    )
