"""
Remote store interface and a JSON-over-HTTP reference adapter.

Every call is scoped to one owner. Adapters raise SyncFailure for any
transport or server problem; a missing document is not an error.
"""

import asyncio
import os
import urllib.parse
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiofiles
import aiohttp

from ..config import Config
from ..errors import SyncFailure
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

# Remote collection names
SETTINGS_COLLECTION = "Fast_Settings"
SETTINGS_DOCUMENT = "current"
FAVOURITES_COLLECTION = "Favourites"
CATEGORIES_COLLECTION = "Custom_Categories"
CUSTOM_WORDS_COLLECTION = "Custom_Words"
HISTORY_COLLECTION = "History"


class RemoteStore(ABC):
    """Abstract base class for owner-scoped remote document storage."""

    @abstractmethod
    async def read(self, owner_id: str, collection: str, key: str) -> Optional[Dict[str, Any]]:
        """Get a document, or None when it does not exist."""
        pass

    @abstractmethod
    async def write(self, owner_id: str, collection: str, key: str, data: Dict[str, Any]) -> None:
        """Create or replace a document."""
        pass

    @abstractmethod
    async def delete(self, owner_id: str, collection: str, key: str) -> None:
        """Delete a document (no-op if missing)."""
        pass

    @abstractmethod
    async def list(self, owner_id: str, collection: str) -> List[Dict[str, Any]]:
        """Get every document of a collection."""
        pass

    @abstractmethod
    async def upload(self, owner_id: str, remote_path: str, local_path: str) -> str:
        """Upload a file and return its download URL."""
        pass

    @abstractmethod
    async def download(self, url: str, local_path: str) -> None:
        """Save the file behind a download URL to ``local_path``."""
        pass

    async def exists(self, owner_id: str, collection: str, key: str) -> bool:
        return await self.read(owner_id, collection, key) is not None

    async def close(self) -> None:
        """Close any open resources."""
        pass

    async def __aenter__(self) -> "RemoteStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class HttpRemoteStore(RemoteStore):
    """
    Remote store backed by a REST document API.

    Layout: ``{base}/users/{owner}/{collection}/{key}`` for documents and
    ``{base}/users/{owner}/files/{path}`` for uploads.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        retries: Optional[int] = None,
    ):
        self.base_url = (base_url or Config.REMOTE_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else Config.REMOTE_API_KEY
        self.timeout = timeout or Config.TIMEOUT
        self.retries = retries or Config.RETRIES
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create a shared aiohttp session."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                headers = {"Accept": "application/json"}
                if self.api_key:
                    headers["Authorization"] = f"Bearer {self.api_key}"
                self._session = aiohttp.ClientSession(
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                )
            return self._session

    async def close(self) -> None:
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
                self._session = None

    def document_url(self, owner_id: str, collection: str, key: Optional[str] = None) -> str:
        parts = ["users", owner_id, collection] + ([key] if key is not None else [])
        return "/".join([self.base_url] + [urllib.parse.quote(str(p), safe="") for p in parts])

    def file_url(self, owner_id: str, remote_path: str) -> str:
        quoted = "/".join(urllib.parse.quote(p, safe="") for p in remote_path.split("/") if p)
        return f"{self.base_url}/users/{urllib.parse.quote(owner_id, safe='')}/files/{quoted}"

    async def _request(self, method: str, url: str, key: str, raw: bool = False, **kwargs) -> Any:
        """
        Send a request with retries on timeouts and server errors.

        Returns the decoded JSON body (the raw bytes when ``raw`` is set),
        or None for 404 and empty bodies.
        """
        if not self.base_url:
            raise SyncFailure(key, "no remote URL configured")

        session = await self._get_session()
        last_error = "request failed"

        for attempt in range(self.retries):
            try:
                async with session.request(method, url, **kwargs) as response:
                    if response.status == 404:
                        return None
                    if response.status >= 500:
                        last_error = f"server error {response.status}"
                    elif response.status >= 400:
                        body = await response.text()
                        raise SyncFailure(key, f"HTTP {response.status}: {body[:200]}")
                    else:
                        if raw:
                            return await response.read()
                        if response.status == 204 or response.content_length == 0:
                            return None
                        return await response.json(content_type=None)
            except asyncio.TimeoutError:
                last_error = "timeout"
            except aiohttp.ClientError as e:
                last_error = str(e) or e.__class__.__name__
            except ValueError as e:
                raise SyncFailure(key, f"invalid JSON response: {e}")

            if attempt < self.retries - 1:
                await asyncio.sleep(2 ** attempt * 0.5)

        raise SyncFailure(key, last_error)

    async def read(self, owner_id: str, collection: str, key: str) -> Optional[Dict[str, Any]]:
        data = await self._request("GET", self.document_url(owner_id, collection, key), key)
        return data if isinstance(data, dict) else None

    async def write(self, owner_id: str, collection: str, key: str, data: Dict[str, Any]) -> None:
        await self._request("PUT", self.document_url(owner_id, collection, key), key, json=data)

    async def delete(self, owner_id: str, collection: str, key: str) -> None:
        await self._request("DELETE", self.document_url(owner_id, collection, key), key)

    async def list(self, owner_id: str, collection: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", self.document_url(owner_id, collection), collection)
        if isinstance(data, dict):
            data = data.get("documents", [])
        return [doc for doc in (data or []) if isinstance(doc, dict)]

    async def upload(self, owner_id: str, remote_path: str, local_path: str) -> str:
        if not os.path.exists(local_path):
            raise SyncFailure(remote_path, f"file not found: {local_path}")

        try:
            async with aiofiles.open(local_path, 'rb') as f:
                content = await f.read()
        except OSError as e:
            raise SyncFailure(remote_path, f"cannot read {local_path}: {e}")

        url = self.file_url(owner_id, remote_path)
        data = await self._request(
            "PUT", url, remote_path,
            data=content,
            headers={"Content-Type": "application/octet-stream"},
        )
        if isinstance(data, dict) and data.get("url"):
            return str(data["url"])
        return url

    async def download(self, url: str, local_path: str) -> None:
        content = await self._request("GET", url, url, raw=True)
        if content is None:
            raise SyncFailure(url, "file not found")

        try:
            os.makedirs(os.path.dirname(local_path) or ".", exist_ok=True)
            async with aiofiles.open(local_path, 'wb') as f:
                await f.write(content)
        except OSError as e:
            raise SyncFailure(url, f"cannot write {local_path}: {e}")
