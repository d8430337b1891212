import base64
import json
from typing import Any

import pytest
import requests

from btc_signal_engine.settings import Settings
from btc_signal_engine.store import (
    GitHubContentsStore,
    InMemoryStore,
    JsonFileStore,
    StoreError,
    VersionConflictError,
    build_store,
)


class FakeResponse:
    def __init__(self, status_code: int, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        return self._body


class FakeSession:
    def __init__(self, responses: list[FakeResponse]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(("GET", url, kwargs))
        return self.responses.pop(0)

    def put(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(("PUT", url, kwargs))
        return self.responses.pop(0)


class BrokenSession:
    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        raise requests.ConnectionError("connection refused")


def test_in_memory_create_update_and_conflict() -> None:
    store = InMemoryStore()
    assert store.get("k") is None

    v1 = store.put("k", {"a": 1}, None)
    doc = store.get("k")
    assert doc is not None
    assert doc.payload == {"a": 1}
    assert doc.version == v1

    v2 = store.put("k", {"a": 2}, v1)
    assert v2 != v1
    with pytest.raises(VersionConflictError):
        store.put("k", {"a": 3}, v1)
    with pytest.raises(VersionConflictError):
        store.put("k", {"a": 3}, None)


def test_in_memory_returns_copies() -> None:
    store = InMemoryStore()
    store.put("k", {"items": [1]}, None)
    store.get("k").payload["items"].append(2)
    assert store.get("k").payload == {"items": [1]}


def test_json_file_store_round_trip(tmp_path) -> None:
    store = JsonFileStore(tmp_path / "data")
    version = store.put("signal-history", {"signals": []}, None)

    assert (tmp_path / "data" / "signal-history.json").exists()
    doc = store.get("signal-history")
    assert doc is not None
    assert doc.payload == {"signals": []}
    assert doc.version == version

    with pytest.raises(VersionConflictError):
        store.put("signal-history", {"signals": [1]}, "stale")


def test_json_file_store_corrupt_document(tmp_path) -> None:
    (tmp_path / "bad.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError):
        JsonFileStore(tmp_path).get("bad")


def test_github_get_decodes_content() -> None:
    content = base64.b64encode(json.dumps({"signals": []}).encode("utf-8")).decode("ascii")
    session = FakeSession([FakeResponse(200, {"content": content, "sha": "abc"})])
    store = GitHubContentsStore("owner/repo", "token", session=session)

    doc = store.get("signal-history")
    assert doc is not None
    assert doc.payload == {"signals": []}
    assert doc.version == "abc"

    method, url, kwargs = session.calls[0]
    assert url == "https://api.github.com/repos/owner/repo/contents/data/signal-history.json"
    assert kwargs["params"] == {"ref": "main"}
    assert kwargs["headers"]["Authorization"] == "Bearer token"
    assert kwargs["timeout"] == 30


def test_github_missing_document_is_none() -> None:
    store = GitHubContentsStore("owner/repo", "token", session=FakeSession([FakeResponse(404)]))
    assert store.get("signal-history") is None


def test_github_server_error_raises() -> None:
    store = GitHubContentsStore("owner/repo", "token", session=FakeSession([FakeResponse(500)]))
    with pytest.raises(StoreError):
        store.get("signal-history")


def test_github_network_error_raises_store_error() -> None:
    store = GitHubContentsStore("owner/repo", "token", session=BrokenSession())
    with pytest.raises(StoreError):
        store.get("signal-history")


def test_github_put_sends_sha_and_returns_new_one() -> None:
    session = FakeSession([FakeResponse(200, {"content": {"sha": "def"}})])
    store = GitHubContentsStore("owner/repo", "token", session=session)

    assert store.put("signal-history", {"signals": []}, "abc") == "def"
    body = session.calls[0][2]["json"]
    assert body["sha"] == "abc"
    assert body["branch"] == "main"
    assert json.loads(base64.b64decode(body["content"])) == {"signals": []}


def test_github_put_conflict() -> None:
    store = GitHubContentsStore("owner/repo", "token", session=FakeSession([FakeResponse(409)]))
    with pytest.raises(VersionConflictError):
        store.put("signal-history", {}, "stale")


def test_build_store_backends(tmp_path) -> None:
    assert isinstance(build_store(Settings(SIGNAL_STORE_BACKEND="memory")), InMemoryStore)
    file_store = build_store(Settings(SIGNAL_STORE_BACKEND="file", SIGNAL_STORE_DIR=str(tmp_path)))
    assert isinstance(file_store, JsonFileStore)
    github = build_store(Settings(SIGNAL_STORE_BACKEND="github", GITHUB_REPO="owner/repo"))
    assert isinstance(github, GitHubContentsStore)
    with pytest.raises(ValueError):
        build_store(Settings(SIGNAL_STORE_BACKEND="s3"))
