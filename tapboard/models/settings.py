"""User-facing board settings."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable

from ..config.grid import ALL_LEVELS, DEFAULT_VISIBLE_LEVELS, GridSize


def _clean_levels(levels: Iterable[str]) -> FrozenSet[str]:
    cleaned = frozenset(
        str(level).strip().upper() for level in (levels or ())
        if str(level).strip().upper() in ALL_LEVELS
    )
    return cleaned or frozenset(DEFAULT_VISIBLE_LEVELS)


@dataclass(frozen=True)
class UserGridSettings:
    """
    Board settings for one user.

    Always valid: an unknown grid size becomes Medium and an empty or
    unrecognised level set falls back to the default levels.
    """

    grid_size: GridSize = GridSize.MEDIUM
    visible_levels: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_VISIBLE_LEVELS))
    ai_support: bool = True
    volume: float = 50.0
    selected_voice: str = "Kate"
    auto_speak: bool = True
    dark_mode: bool = False
    low_vision_mode: bool = False

    def __post_init__(self):
        object.__setattr__(self, "grid_size", GridSize.parse(self.grid_size))
        object.__setattr__(self, "visible_levels", _clean_levels(self.visible_levels))

    def with_changes(self, **changes) -> "UserGridSettings":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Remote snapshot document."""
        return {
            "gridSize": self.grid_size.value,
            "visibleLevels": sorted(self.visible_levels),
            "aiSupport": self.ai_support,
            "volume": self.volume,
            "selectedVoice": self.selected_voice,
            "autoSpeak": self.auto_speak,
            "darkMode": self.dark_mode,
            "lowVisionMode": self.low_vision_mode,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: "UserGridSettings" = None) -> "UserGridSettings":
        """
        Overlay a snapshot document onto ``base`` (defaults if None).

        Missing or mistyped fields keep the base value.
        """
        base = base or cls()
        data = data or {}

        def pick(key: str, kind, current):
            value = data.get(key)
            if kind is float and isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
            return value if isinstance(value, kind) else current

        levels = data.get("visibleLevels")
        if not isinstance(levels, (list, tuple, set, frozenset)) or not levels:
            levels = base.visible_levels

        return cls(
            grid_size=pick("gridSize", str, base.grid_size.value),
            visible_levels=frozenset(level for level in levels if isinstance(level, str)),
            ai_support=pick("aiSupport", bool, base.ai_support),
            volume=pick("volume", float, base.volume),
            selected_voice=pick("selectedVoice", str, base.selected_voice),
            auto_speak=pick("autoSpeak", bool, base.auto_speak),
            dark_mode=pick("darkMode", bool, base.dark_mode),
            low_vision_mode=pick("lowVisionMode", bool, base.low_vision_mode),
        )
