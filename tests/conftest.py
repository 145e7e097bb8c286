import asyncio
import copy
import os
import sys
from typing import Any, Dict, List, Optional

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tapboard.catalog import Catalog, MappingCardSource, build_catalog
from tapboard.errors import PredictionError, SyncFailure
from tapboard.models import Card
from tapboard.predictors import BaseSuggestionPredictor, ConversationMessage
from tapboard.services import RemoteStore, SQLiteLocalStore


class FakeRemoteStore(RemoteStore):
    """In-memory remote store with switchable failures."""

    def __init__(self):
        self.documents: Dict[tuple, Dict[str, Dict[str, Any]]] = {}
        self.files: Dict[str, str] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.fail_deletes = False
        self.fail_uploads = False
        self.fail_downloads = False
        self.blobs: Dict[str, bytes] = {}
        self.writes: List[tuple] = []

    def _collection(self, owner_id: str, collection: str) -> Dict[str, Dict[str, Any]]:
        return self.documents.setdefault((owner_id, collection), {})

    async def read(self, owner_id, collection, key):
        if self.fail_reads:
            raise SyncFailure(key, "offline")
        doc = self._collection(owner_id, collection).get(key)
        return copy.deepcopy(doc) if doc is not None else None

    async def write(self, owner_id, collection, key, data):
        if self.fail_writes:
            raise SyncFailure(key, "offline")
        self.writes.append((owner_id, collection, key))
        self._collection(owner_id, collection)[key] = copy.deepcopy(data)

    async def delete(self, owner_id, collection, key):
        if self.fail_deletes:
            raise SyncFailure(key, "offline")
        self._collection(owner_id, collection).pop(key, None)

    async def list(self, owner_id, collection):
        if self.fail_reads:
            raise SyncFailure(collection, "offline")
        return [copy.deepcopy(doc) for doc in self._collection(owner_id, collection).values()]

    async def upload(self, owner_id, remote_path, local_path):
        if self.fail_uploads:
            raise SyncFailure(remote_path, "storage unavailable")
        url = f"https://files.example/{owner_id}/{remote_path}"
        self.files[url] = local_path
        if os.path.exists(local_path):
            with open(local_path, "rb") as f:
                self.blobs[url] = f.read()
        return url

    async def download(self, url, local_path):
        if self.fail_downloads or url not in self.blobs:
            raise SyncFailure(url, "file not found")
        os.makedirs(os.path.dirname(local_path), exist_ok=True)
        with open(local_path, "wb") as f:
            f.write(self.blobs[url])

    def docs(self, owner_id: str, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collection(owner_id, collection)


class FakePredictor(BaseSuggestionPredictor):
    """Returns canned replies, optionally after a per-sentence delay."""

    def __init__(self, replies=None, delays: Optional[Dict[str, float]] = None, error: Optional[str] = None):
        self.replies = replies or []
        self.delays = delays or {}
        self.error = error
        self.histories: List[List[ConversationMessage]] = []
        self.closed = False

    async def predict(self, history):
        self.histories.append(list(history))
        current = history[-1].text
        delay = self.delays.get(current, 0)
        if delay:
            await asyncio.sleep(delay)
        if self.error:
            raise PredictionError(self.error)
        if isinstance(self.replies, dict):
            return list(self.replies.get(current, []))
        return list(self.replies)

    async def close(self):
        self.closed = True


BOARD_TREE = {
    "ACC_board": {
        "verbs": {
            "go_B1.png": None,
            "eat_A1.png": None,
            "drink_A1.png": None,
            "sleep_A1.png": None,
            "analyse_C1.png": None,
        },
        "nouns": {
            "food": {
                "food_A1.png": None,
                "water_A1.png": None,
                "cup_A1.png": None,
            },
            "mouse_A2.png": None,
            "box_A1.png": None,
        },
        "social": {
            "hello_A1.png": None,
            "thanks_A1.png": None,
            "ok_A1.png": None,
            "will_A1.png": None,
            "readme.txt": None,
        },
        "questions": {
            "what_A1.png": None,
            "I_A1.png": None,
        },
    },
}

CATEGORY_TREE = {
    "ACC_board": {
        "categories": {
            "verbs_category.png": None,
            "zoo_category.png": None,
            "home_category.png": None,
            "favourites_category.png": None,
            "notes.txt": None,
        },
    },
}


@pytest.fixture
def board_source():
    return MappingCardSource(BOARD_TREE, uri_prefix="file:///android_asset/", name="bundled")


@pytest.fixture
def category_source():
    return MappingCardSource(
        CATEGORY_TREE,
        roots=("ACC_board/categories",),
        uri_prefix="file:///android_asset/",
        name="categories",
    )


@pytest.fixture
def catalog(board_source) -> Catalog:
    return build_catalog([board_source])


@pytest.fixture
def local_store(tmp_path):
    return SQLiteLocalStore(str(tmp_path / "tapboard.db"))


@pytest.fixture
def remote_store():
    return FakeRemoteStore()


@pytest.fixture
def make_card():
    def _make(file_name: str, folder: str = "verbs", label: Optional[str] = None) -> Card:
        label = label or file_name.split("_")[0].split(".")[0].capitalize()
        return Card(file_name=file_name, label=label, path=f"file:///{folder}/{file_name}", folder=folder)
    return _make
