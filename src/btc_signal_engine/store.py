from __future__ import annotations

import base64
import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import requests
import structlog

if TYPE_CHECKING:
    from .settings import Settings

log = structlog.get_logger(__name__)

GITHUB_API_BASE = "https://api.github.com"
USER_AGENT = "btc-signal-engine/0.1"


class StoreError(RuntimeError):
    pass


class VersionConflictError(StoreError):
    pass


@dataclass(frozen=True)
class StoredDocument:
    payload: Any
    version: str


class DocumentStore(Protocol):
    """Whole-document key/value store with optimistic concurrency.

    `put` with `version=None` means "create"; otherwise the version must match
    the stored one or VersionConflictError is raised. It returns the new version.
    """

    def get(self, key: str) -> StoredDocument | None: ...

    def put(self, key: str, payload: Any, version: str | None) -> str: ...


def _check_version(key: str, current: str | None, expected: str | None) -> None:
    if current != expected:
        log.warning("store.version_conflict", key=key, expected=expected, current=current)
        raise VersionConflictError(f"Version conflict on {key}: expected {expected}, found {current}")


class InMemoryStore:
    def __init__(self) -> None:
        self._docs: dict[str, tuple[str, int]] = {}

    def get(self, key: str) -> StoredDocument | None:
        if key not in self._docs:
            return None
        raw, version = self._docs[key]
        return StoredDocument(payload=json.loads(raw), version=str(version))

    def put(self, key: str, payload: Any, version: str | None) -> str:
        current = self._docs.get(key)
        _check_version(key, str(current[1]) if current else None, version)
        new_version = current[1] + 1 if current else 1
        self._docs[key] = (json.dumps(payload), new_version)
        return str(new_version)


class JsonFileStore:
    """One `<key>.json` file per document; the version is the SHA-256 of its bytes."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def _read(self, key: str) -> tuple[bytes, str] | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise StoreError(f"Failed to read {path}: {exc}") from exc
        return raw, hashlib.sha256(raw).hexdigest()

    def get(self, key: str) -> StoredDocument | None:
        found = self._read(key)
        if found is None:
            return None
        raw, version = found
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StoreError(f"Corrupt document at {self._path(key)}: {exc}") from exc
        return StoredDocument(payload=payload, version=version)

    def put(self, key: str, payload: Any, version: str | None) -> str:
        found = self._read(key)
        _check_version(key, found[1] if found else None, version)

        raw = json.dumps(payload, indent=2).encode("utf-8")
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(raw)
            os.replace(tmp, path)
        except OSError as exc:
            raise StoreError(f"Failed to write {path}: {exc}") from exc
        log.debug("store.saved", backend="file", key=key, path=str(path))
        return hashlib.sha256(raw).hexdigest()


class GitHubContentsStore:
    """Documents stored as JSON files in a GitHub repo via the contents API.

    The blob SHA is the version token, so GitHub itself rejects a stale write.
    """

    def __init__(
        self,
        repo: str,
        token: str,
        branch: str = "main",
        data_dir: str = "data",
        session: requests.Session | None = None,
        api_base: str = GITHUB_API_BASE,
    ) -> None:
        if not repo:
            raise ValueError("GitHubContentsStore requires a repo in owner/name form")
        self.repo = repo
        self.token = token
        self.branch = branch
        self.data_dir = data_dir.strip("/")
        self.session = session or requests.Session()
        self.api_base = api_base.rstrip("/")

    def _url(self, key: str) -> str:
        path = f"{self.data_dir}/{key}.json" if self.data_dir else f"{key}.json"
        return f"{self.api_base}/repos/{self.repo}/contents/{path}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json", "User-Agent": USER_AGENT}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get(self, key: str) -> StoredDocument | None:
        try:
            resp = self.session.get(self._url(key), params={"ref": self.branch}, headers=self._headers(), timeout=30)
        except requests.RequestException as exc:
            raise StoreError(f"GitHub request failed for {key}: {exc}") from exc

        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise StoreError(f"GitHub API error {resp.status_code} reading {key}")

        body = resp.json()
        try:
            content = base64.b64decode(body["content"]).decode("utf-8")
            payload = json.loads(content)
        except (KeyError, ValueError) as exc:
            raise StoreError(f"Malformed GitHub content for {key}: {exc}") from exc
        return StoredDocument(payload=payload, version=body["sha"])

    def put(self, key: str, payload: Any, version: str | None) -> str:
        content = json.dumps(payload, indent=2)
        body: dict[str, Any] = {
            "message": f"Update {key}",
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.branch,
        }
        if version is not None:
            body["sha"] = version

        try:
            resp = self.session.put(self._url(key), json=body, headers=self._headers(), timeout=30)
        except requests.RequestException as exc:
            raise StoreError(f"GitHub request failed for {key}: {exc}") from exc

        # 409: sha mismatch, 422: sha missing for an existing file
        if resp.status_code in (409, 422):
            log.warning("store.version_conflict", backend="github", key=key, status=resp.status_code)
            raise VersionConflictError(f"GitHub rejected write to {key} (status {resp.status_code})")
        if not resp.ok:
            raise StoreError(f"GitHub API error {resp.status_code} writing {key}")

        new_sha = resp.json()["content"]["sha"]
        log.info("store.saved", backend="github", key=key, sha=new_sha)
        return new_sha


def build_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == "memory":
        return InMemoryStore()
    if settings.store_backend == "github":
        return GitHubContentsStore(
            repo=settings.github_repo,
            token=settings.github_token,
            branch=settings.github_branch,
            data_dir=settings.github_data_dir,
        )
    if settings.store_backend == "file":
        return JsonFileStore(settings.store_dir)
    raise ValueError(f"Unknown store backend: {settings.store_backend}")
