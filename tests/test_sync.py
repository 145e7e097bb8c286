"""
Tests for the sync service.

Tests cover:
- Favourite toggling against remote existence
- Settings resolution on start and on save
- Custom categories and words with image uploads
- Storing, moving and deleting custom word images
- Retrying unsynced records
- Sentence history
- Per-key locking
"""

import asyncio
import os

import pytest

from tapboard.catalog import CustomWordsSource, build_catalog
from tapboard.models import Card, RecordKind, SyncState, UserGridSettings
from tapboard.services import SyncService
from tapboard.services.remote import (
    CATEGORIES_COLLECTION,
    CUSTOM_WORDS_COLLECTION,
    FAVOURITES_COLLECTION,
    HISTORY_COLLECTION,
    SETTINGS_COLLECTION,
)
from tapboard.services.sync_service import NOT_LOGGED_IN
from tapboard.config import GridSize
from tapboard.utils import KeyedLock

OWNER = "user-1"


@pytest.fixture
def events():
    return []


@pytest.fixture
def words_dir(tmp_path):
    return str(tmp_path / "custom_words")


@pytest.fixture
def service(local_store, remote_store, events, words_dir):
    return SyncService(local_store, remote_store, OWNER, status_callback=events.append, custom_words_dir=words_dir)


@pytest.fixture
def go_card():
    return Card("go_B1.png", "Go", "file:///android_asset/ACC_board/verbs/go_B1.png", "verbs")


def _messages(events, event=None):
    return [e["message"] for e in events if event is None or e["event"] == event]


class TestToggleFavourite:
    """Test favourite toggling."""

    def test_toggle_flips(self, service, remote_store, local_store, go_card):
        assert asyncio.run(service.toggle_favourite(go_card)) is True
        doc = remote_store.docs(OWNER, FAVOURITES_COLLECTION)["Go"]
        assert doc["path"] == go_card.path
        assert "timestamp" in doc
        assert local_store.get(OWNER, "favourite", "Go").synced

        assert asyncio.run(service.toggle_favourite(go_card)) is False
        assert "Go" not in remote_store.docs(OWNER, FAVOURITES_COLLECTION)
        assert local_store.get(OWNER, "favourite", "Go") is None

        assert asyncio.run(service.toggle_favourite(go_card)) is True

    def test_toggle_follows_remote_state(self, service, remote_store, go_card):
        # Added from another device
        remote_store.docs(OWNER, FAVOURITES_COLLECTION)["Go"] = go_card.to_dict()
        assert asyncio.run(service.toggle_favourite(go_card)) is False

    def test_status_messages(self, service, events, go_card):
        asyncio.run(service.toggle_favourite(go_card))
        asyncio.run(service.toggle_favourite(go_card))
        assert _messages(events, "status") == ["Added Go to favourites", "Removed Go from favourites"]

    def test_no_owner(self, local_store, remote_store, go_card):
        events = []
        service = SyncService(local_store, remote_store, None, status_callback=events.append)

        assert asyncio.run(service.toggle_favourite(go_card)) is False
        assert events == [{"event": "error", "message": NOT_LOGGED_IN, "key": "Go"}]

    def test_remote_failure_keeps_local_record_unsynced(self, service, remote_store, local_store, events, go_card):
        remote_store.fail_writes = True

        assert asyncio.run(service.toggle_favourite(go_card)) is False

        assert _messages(events, "error")[0].startswith("Failed to toggle favourite")
        assert local_store.get(OWNER, "favourite", "Go").state is SyncState.LOCAL_UNSYNCED

        remote_store.fail_writes = False
        assert asyncio.run(service.retry_unsynced()) == 1
        assert "Go" in remote_store.docs(OWNER, FAVOURITES_COLLECTION)

    def test_concurrent_toggles_are_serialised(self, service, remote_store, go_card):
        async def toggle_twice():
            return await asyncio.gather(service.toggle_favourite(go_card), service.toggle_favourite(go_card))

        results = asyncio.run(toggle_twice())

        assert sorted(results) == [False, True]
        assert "Go" not in remote_store.docs(OWNER, FAVOURITES_COLLECTION)


class TestRefreshFavourites:
    """Test reading favourites."""

    def test_remote_replaces_local(self, service, remote_store, local_store, go_card):
        asyncio.run(service.toggle_favourite(go_card))
        remote_store.docs(OWNER, FAVOURITES_COLLECTION).clear()
        remote_store.docs(OWNER, FAVOURITES_COLLECTION)["Eat"] = {"label": "Eat", "path": "/eat.png", "folder": "verbs"}

        cards = asyncio.run(service.refresh_favourites())

        assert [c.label for c in cards] == ["Eat"]
        assert [r.key for r in local_store.list_records(OWNER, "favourite")] == ["Eat"]

    def test_local_fallback(self, service, remote_store, go_card):
        asyncio.run(service.toggle_favourite(go_card))
        remote_store.fail_reads = True

        cards = asyncio.run(service.refresh_favourites())

        assert cards == [go_card]

    def test_incomplete_documents_skipped(self, service, remote_store):
        remote_store.docs(OWNER, FAVOURITES_COLLECTION)["x"] = {"label": "x"}
        assert asyncio.run(service.refresh_favourites()) == []


class TestSettings:
    """Test settings resolution."""

    def test_remote_snapshot_wins(self, service, remote_store, local_store):
        local_settings = UserGridSettings(grid_size=GridSize.SMALL, selected_voice="Amy")
        asyncio.run(service.save_settings(local_settings))
        remote_store.docs(OWNER, SETTINGS_COLLECTION)["current"] = {"gridSize": "Large", "aiSupport": False}

        settings = asyncio.run(service.load_settings())

        assert settings.grid_size is GridSize.LARGE
        assert settings.ai_support is False
        assert settings.selected_voice == "Amy"
        assert asyncio.run(service.settings_state()) is SyncState.SYNCED

    def test_defaults_created_and_pushed(self, service, remote_store):
        settings = asyncio.run(service.load_settings())

        assert settings == UserGridSettings()
        assert remote_store.docs(OWNER, SETTINGS_COLLECTION)["current"] == UserGridSettings().to_dict()
        assert asyncio.run(service.settings_state()) is SyncState.SYNCED

    def test_local_record_pushed_when_remote_missing(self, service, remote_store):
        remote_store.fail_writes = True
        asyncio.run(service.save_settings(UserGridSettings(grid_size=GridSize.SMALL)))
        remote_store.fail_writes = False

        settings = asyncio.run(service.load_settings())

        assert settings.grid_size is GridSize.SMALL
        assert remote_store.docs(OWNER, SETTINGS_COLLECTION)["current"]["gridSize"] == "Small"
        assert asyncio.run(service.settings_state()) is SyncState.SYNCED

    def test_synced_record_rewritten_when_remote_deleted(self, service, remote_store):
        asyncio.run(service.save_settings(UserGridSettings(dark_mode=True)))
        remote_store.docs(OWNER, SETTINGS_COLLECTION).clear()

        settings = asyncio.run(service.load_settings())

        assert settings.dark_mode is True
        assert remote_store.docs(OWNER, SETTINGS_COLLECTION)["current"]["darkMode"] is True

    def test_unreachable_remote_uses_local(self, service, remote_store):
        remote_store.fail_writes = True
        asyncio.run(service.save_settings(UserGridSettings(volume=10.0)))
        remote_store.fail_reads = True

        settings = asyncio.run(service.load_settings())

        assert settings.volume == 10.0
        assert asyncio.run(service.settings_state()) is SyncState.LOCAL_UNSYNCED

    def test_failed_save_is_retried(self, service, remote_store):
        remote_store.fail_writes = True
        assert asyncio.run(service.save_settings(UserGridSettings(auto_speak=False))) is False
        assert asyncio.run(service.settings_state()) is SyncState.LOCAL_UNSYNCED

        remote_store.fail_writes = False
        assert asyncio.run(service.retry_unsynced()) == 1
        assert asyncio.run(service.settings_state()) is SyncState.SYNCED

    def test_no_owner_gives_defaults(self, local_store, remote_store):
        service = SyncService(local_store, remote_store, None)
        assert asyncio.run(service.load_settings()) == UserGridSettings()
        assert asyncio.run(service.save_settings(UserGridSettings())) is False


class TestCustomContent:
    """Test user categories and custom words."""

    def test_category_with_icon(self, service, remote_store, events, tmp_path):
        icon = tmp_path / "family.jpg"
        icon.write_bytes(b"jpg")

        record = asyncio.run(service.save_category("Family", "#FF0000", ["mum.png"], str(icon)))

        assert record.synced
        assert _messages(events) == ["Category saved locally (syncing with cloud...)", "Category synced with cloud"]
        doc = remote_store.docs(OWNER, CATEGORIES_COLLECTION)["Family"]
        assert doc["imageUrl"] == f"https://files.example/{OWNER}/Custom_Categories/Family.jpg"
        assert doc["cardFileNames"] == ["mum.png"]
        assert "imagePath" not in doc
        assert asyncio.run(service.list_categories())[0]["imagePath"] == str(icon)

    def test_upload_failure_still_writes_metadata(self, service, remote_store, events):
        remote_store.fail_uploads = True

        record = asyncio.run(service.save_category("Family", image_path="/missing.jpg"))

        assert record.synced
        assert _messages(events, "error")[0].startswith("Category icon upload failed")
        assert "imageUrl" not in remote_store.docs(OWNER, CATEGORIES_COLLECTION)["Family"]

    def test_metadata_failure_then_retry(self, service, remote_store, events, tmp_path):
        image = tmp_path / "dog.jpg"
        image.write_bytes(b"jpg")
        remote_store.fail_writes = True

        record = asyncio.run(service.save_custom_word("My dog", "animals", str(image)))

        assert record.state is SyncState.LOCAL_UNSYNCED
        assert _messages(events, "error")[0].startswith("Word metadata upload failed")

        remote_store.fail_writes = False
        events.clear()
        assert asyncio.run(service.retry_unsynced()) == 1
        assert _messages(events) == ["Word synced with cloud"]
        assert remote_store.docs(OWNER, CUSTOM_WORDS_COLLECTION)["My dog"]["folder"] == "animals"

    def test_save_without_owner(self, local_store, remote_store):
        service = SyncService(local_store, remote_store, None)
        assert asyncio.run(service.save_custom_word("Dog", "animals")) is None

    def test_restore(self, service, remote_store, local_store):
        remote_store.docs(OWNER, CATEGORIES_COLLECTION).update({
            "Family": {"name": "Family", "imageUrl": "https://x/family.jpg", "timestamp": 1},
            "broken": {"colorHex": "#000000"},
        })

        assert asyncio.run(service.restore_categories()) == 1

        categories = asyncio.run(service.list_categories())
        assert categories == [{"colorHex": "#FFFFFF", "cardFileNames": [], "name": "Family",
                               "imageUrl": "https://x/family.jpg"}]
        assert local_store.get(OWNER, RecordKind.CATEGORY.value, "Family").synced

    def test_restore_custom_words(self, service, remote_store):
        remote_store.docs(OWNER, CUSTOM_WORDS_COLLECTION)["Dog"] = {"label": "Dog"}
        assert asyncio.run(service.restore_custom_words()) == 1
        assert asyncio.run(service.list_custom_words()) == [{"folder": "", "label": "Dog"}]


class TestCustomWordFiles:
    """Test custom word images, moves and deletes."""

    @pytest.fixture
    def dog_image(self, tmp_path):
        image = tmp_path / "upload.png"
        image.write_bytes(b"png")
        return str(image)

    def test_saved_word_becomes_a_card(self, service, words_dir, dog_image):
        record = asyncio.run(service.save_custom_word("Dog", "animals", dog_image))

        assert record.payload["imagePath"] == os.path.join(words_dir, "animals", "Dog.png")
        card = build_catalog([CustomWordsSource(words_dir)]).find_label("dog")
        assert card.folder == "animals"
        assert card.path == os.path.abspath(record.payload["imagePath"])

    def test_missing_image_is_reported(self, service, events, words_dir):
        record = asyncio.run(service.save_custom_word("Dog", "animals", "/missing/dog.jpg"))

        assert _messages(events, "error")[0].startswith("Word image could not be stored")
        assert record.payload["imagePath"] == "/missing/dog.jpg"
        assert len(build_catalog([CustomWordsSource(words_dir)])) == 0

    def test_restore_downloads_images(self, service, remote_store, words_dir):
        url = f"https://files.example/{OWNER}/Custom_Words/Cat.png"
        remote_store.blobs[url] = b"png"
        remote_store.docs(OWNER, CUSTOM_WORDS_COLLECTION)["Cat"] = {"label": "Cat", "folder": "animals", "imageUrl": url}

        assert asyncio.run(service.restore_custom_words()) == 1

        assert build_catalog([CustomWordsSource(words_dir)]).find_label("cat").folder == "animals"
        assert asyncio.run(service.list_custom_words())[0]["imagePath"] == os.path.join(words_dir, "animals", "Cat.png")

    def test_failed_download_still_restores_record(self, service, remote_store, events):
        remote_store.docs(OWNER, CUSTOM_WORDS_COLLECTION)["Cat"] = {"label": "Cat", "imageUrl": "https://x/cat.jpg"}

        assert asyncio.run(service.restore_custom_words()) == 1

        assert _messages(events, "error")[0].startswith("Word image download failed")
        assert "imagePath" not in asyncio.run(service.list_custom_words())[0]

    def test_move_word(self, service, remote_store, words_dir, dog_image):
        asyncio.run(service.save_custom_word("Dog", "animals", dog_image))

        record = asyncio.run(service.move_custom_word("Dog", "pets"))

        assert record.synced
        assert not os.path.exists(os.path.join(words_dir, "animals", "Dog.png"))
        assert os.path.exists(os.path.join(words_dir, "pets", "Dog.png"))
        assert remote_store.docs(OWNER, CUSTOM_WORDS_COLLECTION)["Dog"]["folder"] == "pets"
        assert build_catalog([CustomWordsSource(words_dir)]).find_label("dog").folder == "pets"

    def test_move_unknown_word(self, service, events):
        assert asyncio.run(service.move_custom_word("Ghost", "pets")) is None
        assert _messages(events, "error") == ["Word not found: Ghost"]

    def test_move_keeps_local_change_when_offline(self, service, remote_store, local_store, dog_image):
        asyncio.run(service.save_custom_word("Dog", "animals", dog_image))
        remote_store.fail_writes = True

        record = asyncio.run(service.move_custom_word("Dog", "pets"))

        assert record.state is SyncState.LOCAL_UNSYNCED
        assert local_store.get(OWNER, RecordKind.CUSTOM_WORD.value, "Dog").payload["folder"] == "pets"

    def test_delete_word(self, service, remote_store, local_store, events, words_dir, dog_image):
        asyncio.run(service.save_custom_word("Dog", "animals", dog_image))

        assert asyncio.run(service.delete_custom_word("Dog")) is True

        assert "Dog" not in remote_store.docs(OWNER, CUSTOM_WORDS_COLLECTION)
        assert local_store.get(OWNER, RecordKind.CUSTOM_WORD.value, "Dog") is None
        assert not os.path.exists(os.path.join(words_dir, "animals", "Dog.png"))
        assert os.path.exists(dog_image)
        assert _messages(events)[-1] == "Word deleted"

    def test_failed_delete_keeps_word(self, service, remote_store, local_store, events, words_dir, dog_image):
        asyncio.run(service.save_custom_word("Dog", "animals", dog_image))
        remote_store.fail_deletes = True

        assert asyncio.run(service.delete_custom_word("Dog")) is False

        assert _messages(events, "error")[0].startswith("Failed to delete word")
        assert local_store.get(OWNER, RecordKind.CUSTOM_WORD.value, "Dog") is not None
        assert os.path.exists(os.path.join(words_dir, "animals", "Dog.png"))

    def test_delete_category(self, service, remote_store, events):
        asyncio.run(service.save_category("Family"))

        assert asyncio.run(service.delete_category("Family")) is True

        assert "Family" not in remote_store.docs(OWNER, CATEGORIES_COLLECTION)
        assert asyncio.run(service.list_categories()) == []
        assert _messages(events)[-1] == "Category deleted"

    def test_delete_without_owner(self, local_store, remote_store):
        service = SyncService(local_store, remote_store, None)
        assert asyncio.run(service.delete_category("Family")) is False
        assert asyncio.run(service.move_custom_word("Dog", "pets")) is None

    def test_delete_waits_for_move(self, service, remote_store, dog_image):
        asyncio.run(service.save_custom_word("Dog", "animals", dog_image))

        async def move_and_delete():
            return await asyncio.gather(service.move_custom_word("Dog", "pets"), service.delete_custom_word("Dog"))

        moved, deleted = asyncio.run(move_and_delete())

        assert moved.synced and deleted is True
        assert "Dog" not in remote_store.docs(OWNER, CUSTOM_WORDS_COLLECTION)


class TestHistory:
    """Test sentence history."""

    def test_recent_history_is_bounded_and_ascending(self, service, remote_store):
        for i in range(20):
            asyncio.run(service.record_sentence(f"sentence {i}", timestamp=1000 + i))

        entries = asyncio.run(service.recent_history())

        assert len(entries) == 15
        assert [e.sentence for e in entries][:2] == ["sentence 5", "sentence 6"]
        assert len(remote_store.docs(OWNER, HISTORY_COLLECTION)) == 20
        assert remote_store.docs(OWNER, HISTORY_COLLECTION)["1019"] == {"sentence": "sentence 19", "timestamp": 1019}

    def test_failed_push_is_retried(self, service, remote_store, local_store):
        remote_store.fail_writes = True
        asyncio.run(service.record_sentence("hello", timestamp=1))
        assert len(local_store.unsynced_history(OWNER)) == 1

        remote_store.fail_writes = False
        assert asyncio.run(service.push_history()) == 1
        assert local_store.unsynced_history(OWNER) == []

    def test_blank_sentence_ignored(self, service):
        assert asyncio.run(service.record_sentence("   ")) is False


class TestKeyedLock:
    """Test per-key locking."""

    def test_same_key_is_serialised(self):
        lock = KeyedLock()
        order = []

        async def worker(name, delay):
            async with lock.hold("settings"):
                order.append(f"{name}-start")
                await asyncio.sleep(delay)
                order.append(f"{name}-end")

        async def main():
            await asyncio.gather(worker("a", 0.02), worker("b", 0))

        asyncio.run(main())

        assert order == ["a-start", "a-end", "b-start", "b-end"]
        assert len(lock) == 0

    def test_different_keys_do_not_wait(self):
        lock = KeyedLock()

        async def main():
            async with lock.hold("a"):
                async with lock.hold("b"):
                    return lock.is_locked("a") and lock.is_locked("b")

        assert asyncio.run(main()) is True
