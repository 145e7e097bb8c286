"""
Sync Service - offline-first persistence of user records.

Every change is written to the local store first and then pushed to the
remote store. Each record carries a SyncState:

    LOCAL_UNSYNCED -> SYNC_PENDING -> SYNCED -> (local change) LOCAL_UNSYNCED

A failed push puts the record back in the state it had before the attempt
so retry_unsynced() can pick it up later. Writes to one record are
serialised with a per-key lock; different records never wait on each other.

Usage:
    service = SyncService(SQLiteLocalStore(), HttpRemoteStore(), owner_id="u1")
    settings = await service.load_settings()
    added = await service.toggle_favourite(card)
"""

import asyncio
import os
import urllib.parse
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence

import aiofiles

from ..config import Config
from ..errors import SyncFailure
from ..models.card import Card
from ..models.settings import UserGridSettings
from ..models.sync import RecordKind, SyncableRecord, SyncState, describe
from ..predictors.base import now_millis
from ..utils.labels import LabelNormalizer
from ..utils.locks import KeyedLock
from ..utils.logger import setup_logger
from .remote import (
    CATEGORIES_COLLECTION,
    CUSTOM_WORDS_COLLECTION,
    FAVOURITES_COLLECTION,
    HISTORY_COLLECTION,
    SETTINGS_COLLECTION,
    SETTINGS_DOCUMENT,
    RemoteStore,
)
from .repository import HistoryEntry, LocalStore

logger = setup_logger(__name__)

NOT_LOGGED_IN = "User not logged in."

COLLECTIONS = {
    RecordKind.SETTINGS.value: SETTINGS_COLLECTION,
    RecordKind.FAVOURITE.value: FAVOURITES_COLLECTION,
    RecordKind.CATEGORY.value: CATEGORIES_COLLECTION,
    RecordKind.CUSTOM_WORD.value: CUSTOM_WORDS_COLLECTION,
}

# Status messages per uploadable kind: (saved, synced, upload failed, metadata failed)
STATUS_MESSAGES = {
    RecordKind.CATEGORY.value: (
        "Category saved locally (syncing with cloud...)",
        "Category synced with cloud",
        "Category icon upload failed: {error}",
        "Category metadata upload failed: {error}",
    ),
    RecordKind.CUSTOM_WORD.value: (
        "Word saved locally (syncing with cloud...)",
        "Word synced with cloud",
        "Word image upload failed: {error}",
        "Word metadata upload failed: {error}",
    ),
}

# (deleted, delete failed)
DELETE_MESSAGES = {
    RecordKind.CATEGORY.value: ("Category deleted", "Failed to delete category: {error}"),
    RecordKind.CUSTOM_WORD.value: ("Word deleted", "Failed to delete word: {error}"),
}


def safe_file_name(name: str) -> str:
    """Make a label usable as a single path segment."""
    return (name or "").replace("/", "_").replace("\\", "_").strip()


async def copy_file(source: str, destination: str) -> None:
    """Copy a file with aiofiles, creating the destination directory."""
    async with aiofiles.open(source, 'rb') as src:
        content = await src.read()
    os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
    async with aiofiles.open(destination, 'wb') as dst:
        await dst.write(content)


def move_file(source: str, destination: str) -> None:
    os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
    os.replace(source, destination)


class SyncService:
    """Local-first storage of settings, favourites, custom content and history."""

    # Thread pool for blocking local store calls
    _executor = ThreadPoolExecutor(max_workers=2)

    def __init__(
        self,
        local: LocalStore,
        remote: Optional[RemoteStore],
        owner_id: Optional[str],
        status_callback: Optional[Callable[[Dict[str, Any]], None]] = None,
        custom_words_dir: Optional[str] = None
    ):
        """
        Initialize sync service.

        Args:
            local: Local record store
            remote: Remote store (None keeps everything local and unsynced)
            owner_id: Signed-in user; None disables every remote operation
            status_callback: Optional callback for status updates.
                             Payload schema: {"event": "status"|"error", "message": str, "key": str}
            custom_words_dir: Where custom word images are kept, one
                              directory per folder (defaults to Config.CUSTOM_WORDS_DIR)
        """
        self.local = local
        self.remote = remote
        self.owner_id = owner_id
        self.status_callback = status_callback
        self.custom_words_dir = custom_words_dir or Config.CUSTOM_WORDS_DIR
        self._locks = KeyedLock()

    # ==================== Helpers ====================

    def _emit(self, event: str, message: str, key: str = "") -> None:
        if event == "error":
            logger.error(message)
        else:
            logger.info(message)
        if self.status_callback:
            try:
                self.status_callback({"event": event, "message": message, "key": key})
            except Exception as e:
                logger.warning(f"Status callback raised: {e}")

    async def _run(self, func: Callable, *args, **kwargs) -> Any:
        """Run a blocking local store call in the thread pool."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self._executor, partial(func, *args, **kwargs))

    @staticmethod
    def _lock_key(kind: str, key: str) -> str:
        return f"{kind}:{key.lower()}"

    def _document_for(self, record: SyncableRecord) -> Dict[str, Any]:
        """Remote document for a record."""
        payload = dict(record.payload or {})
        if record.kind == RecordKind.SETTINGS.value:
            return payload
        payload.pop("imagePath", None)
        payload["timestamp"] = now_millis()
        return payload

    def _remote_key(self, record: SyncableRecord) -> str:
        if record.kind == RecordKind.SETTINGS.value:
            return SETTINGS_DOCUMENT
        return record.key

    async def _push(self, record: SyncableRecord) -> bool:
        """
        Push one record; caller holds the record's lock.

        Returns True once the record is SYNCED.
        """
        if self.remote is None or self.owner_id is None:
            return False

        previous = record.begin_push()
        await self._run(self.local.put, record)
        try:
            await self.remote.write(
                self.owner_id,
                COLLECTIONS[record.kind],
                self._remote_key(record),
                self._document_for(record),
            )
        except SyncFailure as e:
            record.restore(previous)
            await self._run(self.local.put, record)
            logger.error(f"Push failed for {describe(record)}: {e}")
            raise

        record.mark_synced()
        await self._run(self.local.put, record)
        logger.debug(f"Pushed {describe(record)}")
        return True

    async def _try_push(self, record: SyncableRecord) -> bool:
        try:
            return await self._push(record)
        except SyncFailure:
            return False

    # ==================== Settings ====================

    async def load_settings(self) -> UserGridSettings:
        """
        Resolve the settings to start with.

        A remote snapshot wins and is stored as SYNCED; otherwise the local
        record is pushed; with neither, defaults are stored and pushed.
        """
        if self.owner_id is None:
            return UserGridSettings()

        kind = RecordKind.SETTINGS.value
        async with self._locks.hold(self._lock_key(kind, SETTINGS_DOCUMENT)):
            record = await self._run(self.local.get, self.owner_id, kind, SETTINGS_DOCUMENT)
            local_settings = UserGridSettings.from_dict(record.payload) if record else None

            snapshot = None
            remote_ok = self.remote is not None
            if self.remote is not None:
                try:
                    snapshot = await self.remote.read(self.owner_id, SETTINGS_COLLECTION, SETTINGS_DOCUMENT)
                except SyncFailure as e:
                    remote_ok = False
                    logger.error(f"Failed to load settings: {e}")

            if snapshot:
                settings = UserGridSettings.from_dict(snapshot, base=local_settings)
                if record is None:
                    record = SyncableRecord(SETTINGS_DOCUMENT, settings.to_dict(), self.owner_id, kind)
                record.apply_remote(settings.to_dict())
                await self._run(self.local.put, record)
                return settings

            if record is None:
                settings = UserGridSettings()
                record = SyncableRecord(SETTINGS_DOCUMENT, settings.to_dict(), self.owner_id, kind)
                await self._run(self.local.put, record)
            else:
                settings = local_settings
                if record.synced:
                    # Remote copy is gone; it has to be written again
                    record.mutate(record.payload)
                    await self._run(self.local.put, record)

            if remote_ok:
                await self._try_push(record)
            return settings

    async def save_settings(self, settings: UserGridSettings) -> bool:
        """Store new settings locally and push them. Returns True when synced."""
        if self.owner_id is None:
            return False

        kind = RecordKind.SETTINGS.value
        async with self._locks.hold(self._lock_key(kind, SETTINGS_DOCUMENT)):
            record = await self._run(self.local.get, self.owner_id, kind, SETTINGS_DOCUMENT)
            if record is None:
                record = SyncableRecord(SETTINGS_DOCUMENT, settings.to_dict(), self.owner_id, kind)
            else:
                record.mutate(settings.to_dict())
            await self._run(self.local.put, record)
            return await self._try_push(record)

    async def settings_state(self) -> Optional[SyncState]:
        if self.owner_id is None:
            return None
        record = await self._run(self.local.get, self.owner_id, RecordKind.SETTINGS.value, SETTINGS_DOCUMENT)
        return record.state if record else None

    # ==================== Favourites ====================

    async def toggle_favourite(self, card: Card) -> bool:
        """
        Flip a favourite based on whether the remote document exists.

        Returns True when the card was added, False when it was removed or
        the toggle failed (a status event describes the failure).
        """
        if self.owner_id is None or self.remote is None:
            self._emit("error", NOT_LOGGED_IN if self.owner_id is None else "No remote store configured",
                       card.label)
            return False

        kind = RecordKind.FAVOURITE.value
        async with self._locks.hold(self._lock_key(kind, card.label)):
            try:
                exists = await self.remote.exists(self.owner_id, FAVOURITES_COLLECTION, card.label)
                if exists:
                    await self.remote.delete(self.owner_id, FAVOURITES_COLLECTION, card.label)
                    await self._run(self.local.delete, self.owner_id, kind, card.label)
                    self._emit("status", f"Removed {card.label} from favourites", card.label)
                    return False

                record = SyncableRecord(card.label, card.to_dict(), self.owner_id, kind)
                await self._run(self.local.put, record)
                await self._push(record)
                self._emit("status", f"Added {card.label} to favourites", card.label)
                return True
            except SyncFailure as e:
                self._emit("error", f"Failed to toggle favourite: {e}", card.label)
                return False

    async def refresh_favourites(self) -> List[Card]:
        """
        Current favourites from the remote store.

        The local copy is replaced on success and used when the remote
        store cannot be reached.
        """
        if self.owner_id is None:
            return []

        kind = RecordKind.FAVOURITE.value
        if self.remote is not None:
            try:
                documents = await self.remote.list(self.owner_id, FAVOURITES_COLLECTION)
            except SyncFailure as e:
                logger.error(f"Failed to load favourites: {e}")
            else:
                cards = [card for card in (Card.from_dict(doc) for doc in documents) if card is not None]
                await self._replace_local_favourites(cards)
                return cards

        records = await self._run(self.local.list_records, self.owner_id, kind)
        return [card for card in (Card.from_dict(r.payload or {}) for r in records) if card is not None]

    async def _replace_local_favourites(self, cards: Sequence[Card]) -> None:
        kind = RecordKind.FAVOURITE.value
        current = await self._run(self.local.list_records, self.owner_id, kind)
        remote_labels = {card.label for card in cards}
        for record in current:
            if record.key not in remote_labels and record.synced:
                await self._run(self.local.delete, self.owner_id, kind, record.key)
        for card in cards:
            record = SyncableRecord(card.label, card.to_dict(), self.owner_id, kind, SyncState.SYNCED)
            await self._run(self.local.put, record)

    # ==================== Custom categories and words ====================

    async def save_category(
        self,
        name: str,
        color_hex: str = "#FFFFFF",
        card_file_names: Sequence[str] = (),
        image_path: Optional[str] = None,
    ) -> Optional[SyncableRecord]:
        """Save a user category locally, then upload its icon and metadata."""
        payload = {
            "name": name,
            "colorHex": color_hex,
            "cardFileNames": list(card_file_names),
        }
        if image_path:
            payload["imagePath"] = image_path
        return await self._save_uploadable(RecordKind.CATEGORY.value, name, payload)

    async def save_custom_word(
        self,
        label: str,
        folder: str,
        image_path: Optional[str] = None,
    ) -> Optional[SyncableRecord]:
        """
        Save a user-created word locally, then upload its image and metadata.

        The image is copied into the custom words directory as
        ``<folder>/<label>.<ext>`` so the custom words card source lists it.
        """
        if self.owner_id is None:
            self._emit("error", NOT_LOGGED_IN, label)
            return None

        payload = {"label": label, "folder": folder}
        if image_path:
            stored = await self._store_word_image(label, folder, image_path)
            payload["imagePath"] = stored or image_path
        return await self._save_uploadable(RecordKind.CUSTOM_WORD.value, label, payload)

    def word_image_path(self, label: str, folder: str, source_name: str = "") -> str:
        """Local image file for a custom word; keeps .png, anything else becomes .jpg."""
        ext = os.path.splitext(source_name)[1].lower()
        if ext not in LabelNormalizer.IMAGE_EXTENSIONS:
            ext = ".jpg"
        parts = [self.custom_words_dir]
        if safe_file_name(folder):
            parts.append(safe_file_name(folder))
        return os.path.join(*parts, safe_file_name(label) + ext)

    def _is_stored_image(self, path: Optional[str]) -> bool:
        if not path:
            return False
        root = os.path.abspath(self.custom_words_dir)
        return os.path.commonpath([os.path.abspath(path), root]) == root

    async def _store_word_image(self, label: str, folder: str, source: str) -> Optional[str]:
        destination = self.word_image_path(label, folder, source)
        if os.path.abspath(source) == os.path.abspath(destination):
            return destination
        try:
            await copy_file(source, destination)
        except OSError as e:
            self._emit("error", f"Word image could not be stored: {e}", label)
            return None
        logger.debug(f"Stored word image {destination}")
        return destination

    async def _download_word_image(self, label: str, folder: str, url: str) -> Optional[str]:
        destination = self.word_image_path(label, folder, urllib.parse.urlparse(url).path)
        try:
            await self.remote.download(url, destination)
        except SyncFailure as e:
            self._emit("error", f"Word image download failed: {e}", label)
            return None
        return destination

    async def _remove_word_image(self, payload: Dict[str, Any]) -> None:
        path = (payload or {}).get("imagePath")
        if not self._is_stored_image(path) or not os.path.exists(path):
            return
        try:
            await self._run(os.remove, path)
        except OSError as e:
            logger.warning(f"Could not remove word image {path}: {e}")

    async def _save_uploadable(self, kind: str, key: str, payload: Dict[str, Any]) -> Optional[SyncableRecord]:
        if self.owner_id is None:
            self._emit("error", NOT_LOGGED_IN, key)
            return None

        saved_message = STATUS_MESSAGES[kind][0]
        async with self._locks.hold(self._lock_key(kind, key)):
            record = await self._run(self.local.get, self.owner_id, kind, key)
            if record is None:
                record = SyncableRecord(key, payload, self.owner_id, kind)
            else:
                record.mutate(payload)
            await self._run(self.local.put, record)
            self._emit("status", saved_message, key)

            await self._upload_and_push(record)
            return record

    async def _upload_and_push(self, record: SyncableRecord) -> bool:
        """
        Upload the record's image (if any), then write its metadata.

        The two steps are independent: a failed upload still writes the
        metadata without an image URL. Caller holds the record's lock.
        """
        _, synced_message, upload_failed, metadata_failed = STATUS_MESSAGES[record.kind]
        if self.remote is None:
            return False

        image_path = (record.payload or {}).get("imagePath")
        if image_path and not record.payload.get("imageUrl"):
            remote_path = f"{COLLECTIONS[record.kind]}/{record.key}.jpg"
            try:
                url = await self.remote.upload(self.owner_id, remote_path, image_path)
                record.payload = {**record.payload, "imageUrl": url}
            except SyncFailure as e:
                self._emit("error", upload_failed.format(error=e), record.key)

        try:
            await self._push(record)
        except SyncFailure as e:
            self._emit("error", metadata_failed.format(error=e), record.key)
            return False

        self._emit("status", synced_message, record.key)
        return True

    async def move_custom_word(self, label: str, new_folder: str) -> Optional[SyncableRecord]:
        """
        Move a custom word to another folder.

        The image file follows the word; the metadata is pushed again.
        """
        if self.owner_id is None:
            self._emit("error", NOT_LOGGED_IN, label)
            return None

        kind = RecordKind.CUSTOM_WORD.value
        async with self._locks.hold(self._lock_key(kind, label)):
            record = await self._run(self.local.get, self.owner_id, kind, label)
            if record is None:
                self._emit("error", f"Word not found: {label}", label)
                return None

            payload = dict(record.payload or {})
            old_path = payload.get("imagePath")
            if self._is_stored_image(old_path) and os.path.exists(old_path):
                new_path = self.word_image_path(label, new_folder, old_path)
                try:
                    await self._run(move_file, old_path, new_path)
                except OSError as e:
                    self._emit("error", f"Word image could not be moved: {e}", label)
                    return None
                payload["imagePath"] = new_path

            payload["folder"] = new_folder
            record.mutate(payload)
            await self._run(self.local.put, record)
            self._emit("status", f"Moved {label} to {new_folder}", label)

            await self._upload_and_push(record)
            return record

    async def delete_custom_word(self, label: str) -> bool:
        """Delete a custom word remotely and locally, image file included."""
        return await self._delete_uploadable(RecordKind.CUSTOM_WORD.value, label)

    async def delete_category(self, name: str) -> bool:
        """Delete a user category remotely and locally."""
        return await self._delete_uploadable(RecordKind.CATEGORY.value, name)

    async def _delete_uploadable(self, kind: str, key: str) -> bool:
        """
        Remote document first, then the local record.

        A failed remote delete leaves the local record in place.
        """
        if self.owner_id is None:
            self._emit("error", NOT_LOGGED_IN, key)
            return False

        deleted_message, failed_message = DELETE_MESSAGES[kind]
        async with self._locks.hold(self._lock_key(kind, key)):
            record = await self._run(self.local.get, self.owner_id, kind, key)
            if self.remote is not None:
                try:
                    await self.remote.delete(self.owner_id, COLLECTIONS[kind], key)
                except SyncFailure as e:
                    self._emit("error", failed_message.format(error=e), key)
                    return False

            if record is not None:
                await self._run(self.local.delete, self.owner_id, kind, key)
                if kind == RecordKind.CUSTOM_WORD.value:
                    await self._remove_word_image(record.payload)

            self._emit("status", deleted_message, key)
            return True

    async def list_categories(self) -> List[Dict[str, Any]]:
        """Locally stored user categories (payload dicts)."""
        if self.owner_id is None:
            return []
        records = await self._run(self.local.list_records, self.owner_id, RecordKind.CATEGORY.value)
        return [dict(r.payload) for r in records]

    async def list_custom_words(self) -> List[Dict[str, Any]]:
        if self.owner_id is None:
            return []
        records = await self._run(self.local.list_records, self.owner_id, RecordKind.CUSTOM_WORD.value)
        return [dict(r.payload) for r in records]

    async def restore_categories(self) -> int:
        """Pull remote user categories into the local store as SYNCED."""
        return await self._restore(RecordKind.CATEGORY.value, "name", {"colorHex": "#FFFFFF", "cardFileNames": []})

    async def restore_custom_words(self) -> int:
        """Pull remote custom words into the local store as SYNCED."""
        return await self._restore(RecordKind.CUSTOM_WORD.value, "label", {"folder": ""})

    async def _restore(self, kind: str, key_field: str, defaults: Dict[str, Any]) -> int:
        if self.owner_id is None or self.remote is None:
            return 0

        try:
            documents = await self.remote.list(self.owner_id, COLLECTIONS[kind])
        except SyncFailure as e:
            self._emit("error", f"Restore of {COLLECTIONS[kind]} failed: {e}", kind)
            return 0

        restored = 0
        for doc in documents:
            key = doc.get(key_field)
            if not isinstance(key, str) or not key:
                continue
            payload = {**defaults, **{k: v for k, v in doc.items() if k != "timestamp"}}
            async with self._locks.hold(self._lock_key(kind, key)):
                url = payload.get("imageUrl")
                if kind == RecordKind.CUSTOM_WORD.value and isinstance(url, str) and url:
                    stored = await self._download_word_image(key, str(payload.get("folder") or ""), url)
                    if stored:
                        payload["imagePath"] = stored
                record = SyncableRecord(key, payload, self.owner_id, kind, SyncState.SYNCED)
                if await self._run(self.local.put, record):
                    restored += 1

        logger.info(f"Restored {restored} {kind} records")
        return restored

    # ==================== Retry ====================

    async def retry_unsynced(self) -> int:
        """
        Push every record that is not SYNCED.

        Returns:
            Number of records that reached SYNCED
        """
        if self.owner_id is None or self.remote is None:
            return 0

        pending = await self._run(self.local.list_unsynced, self.owner_id)
        synced = 0
        for stale in pending:
            async with self._locks.hold(self._lock_key(stale.kind, stale.key)):
                # Re-read under the lock; the record may have changed meanwhile
                record = await self._run(self.local.get, self.owner_id, stale.kind, stale.key)
                if record is None or record.synced:
                    continue
                if record.state is SyncState.SYNC_PENDING:
                    record.restore(SyncState.LOCAL_UNSYNCED)
                if record.kind in STATUS_MESSAGES:
                    ok = await self._upload_and_push(record)
                else:
                    ok = await self._try_push(record)
                synced += 1 if ok else 0

        logger.info(f"Retried {len(pending)} unsynced records, {synced} synced")
        return synced

    # ==================== History ====================

    async def record_sentence(self, sentence: str, timestamp: Optional[int] = None) -> bool:
        """Store a spoken sentence locally and push pending history."""
        sentence = (sentence or "").strip()
        if not sentence or self.owner_id is None:
            return False

        row_id = await self._run(self.local.add_history, self.owner_id, sentence, timestamp or now_millis())
        if row_id < 0:
            return False
        await self.push_history()
        return True

    async def push_history(self) -> int:
        """Push history rows not yet on the remote store."""
        if self.owner_id is None or self.remote is None:
            return 0

        async with self._locks.hold(self._lock_key("history", self.owner_id)):
            entries: List[HistoryEntry] = await self._run(self.local.unsynced_history, self.owner_id)
            pushed: List[int] = []
            for entry in entries:
                try:
                    await self.remote.write(self.owner_id, HISTORY_COLLECTION, str(entry.timestamp), entry.to_dict())
                except SyncFailure as e:
                    logger.error(f"History sync failed: {e}")
                    break
                pushed.append(entry.id)
            if pushed:
                await self._run(self.local.mark_history_synced, pushed)
            return len(pushed)

    async def recent_history(self, limit: Optional[int] = None) -> List[HistoryEntry]:
        """Most recent sentences, oldest first."""
        if self.owner_id is None:
            return []
        limit = Config.HISTORY_LIMIT if limit is None else limit
        return await self._run(self.local.recent_history, self.owner_id, limit)
