"""Global settings and configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load from project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)


def _env_list(name: str, default: str) -> tuple:
    raw = os.environ.get(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass
class Config:
    """Application-wide configuration."""

    # Cross-platform paths using pathlib
    # BASE_DIR is the project root (parent of tapboard/)
    BASE_DIR: Path = Path(__file__).parent.parent.parent.resolve()

    # Bundled board assets
    ASSET_DIR: str = os.environ.get("TAPBOARD_ASSET_DIR", str(BASE_DIR / "assets"))
    ASSET_ROOTS: tuple = _env_list("TAPBOARD_ASSET_ROOTS", "ACC_board,categories")
    ASSET_URI_PREFIX: str = "file:///android_asset/"
    CATEGORY_ICON_DIR: str = "ACC_board/categories"

    # User-created content
    CUSTOM_WORDS_DIR: str = os.environ.get("TAPBOARD_CUSTOM_WORDS_DIR", str(BASE_DIR / "data" / "Custom_Words"))
    CUSTOM_CATEGORY_ICON: str = "file:///android_asset/icons/custom_folder.png"

    # Irregular verb / plural tables
    OVERRIDES_DIR: str = os.environ.get("TAPBOARD_OVERRIDES_DIR", str(BASE_DIR / "assets"))
    IRREGULAR_VERBS_FILE: str = "irregular_verbs.json"
    IRREGULAR_NOUNS_FILE: str = "irregular_nouns.json"
    NEGATION_ICON_BASE: str = "file:///android_asset/tenses/"

    # Local persistence
    DB_PATH: str = os.environ.get("TAPBOARD_DB_PATH", str(BASE_DIR / "data" / "cache" / "tapboard.db"))
    HISTORY_LIMIT: int = 15

    # Remote store
    # Store the key in environment variable or .env file: TAPBOARD_REMOTE_API_KEY
    REMOTE_BASE_URL: str = os.environ.get("TAPBOARD_REMOTE_URL", "")
    REMOTE_API_KEY: str = os.environ.get("TAPBOARD_REMOTE_API_KEY", "")

    # External suggestion predictor
    PREDICTOR_PROVIDER: str = os.environ.get("TAPBOARD_PREDICTOR", "openai")
    PREDICTOR_MODEL: str = os.environ.get("TAPBOARD_PREDICTOR_MODEL", "")
    PREDICTOR_API_KEY: str = os.environ.get("OPENAI_API_KEY", "")
    PREDICTOR_BASE_URL: str = os.environ.get("TAPBOARD_PREDICTOR_URL", "")
    MAX_SUGGESTIONS: int = 3
    IGNORED_REPLIES: tuple = ("nice", "ok", "okay", "thanks")

    # Async settings
    RETRIES: int = 3
    TIMEOUT: int = 30

    # Sentence bar
    MAX_SENTENCE_CARDS: int = 14
