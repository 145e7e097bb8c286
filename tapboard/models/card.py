"""Data models for board cards."""

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from ..utils.labels import LabelNormalizer


@dataclass(frozen=True)
class Card:
    """A single selectable symbol: an image plus its spoken label."""

    file_name: str
    label: str
    path: str
    folder: str  # lowercase category key
    level: Optional[str] = None

    def __post_init__(self):
        if self.level is None:
            object.__setattr__(self, "level", LabelNormalizer.parse_level(self.file_name))

    @property
    def identity_key(self) -> Tuple[str, str]:
        """Identity across merged sources."""
        return (self.folder.lower(), self.file_name.lower())

    @property
    def base_name(self) -> str:
        """Lowercased, extension-free file name (template key form)."""
        return LabelNormalizer.base_name(self.file_name)

    def is_visible(self, visible_levels) -> bool:
        """Cards without a level are always visible."""
        return self.level is None or self.level in visible_levels

    def with_label(self, label: str) -> "Card":
        return replace(self, label=label)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "path": self.path,
            "folder": self.folder,
            "fileName": self.file_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Card"]:
        """
        Build a card from a stored document.

        Documents without a label or path are skipped (None).
        """
        label = data.get("label")
        path = data.get("path")
        if not isinstance(label, str) or not isinstance(path, str):
            return None
        folder = data.get("folder") or "favourites"
        file_name = data.get("fileName") or f"{label}.png"
        return cls(file_name=file_name, label=label, path=path, folder=str(folder))


@dataclass(frozen=True)
class Category:
    """An entry of the category strip."""

    label: str
    path: str

    @property
    def key(self) -> str:
        return self.label.strip().lower()


@dataclass(frozen=True)
class VerbForms:
    """Base, past and perfect forms of a verb plus its negative phrases."""

    base: str
    past: str
    perfect: str
    negatives: Tuple[str, ...] = field(default_factory=tuple)

    def main_forms(self) -> List[Tuple[str, str]]:
        """(title, value) rows for the forms picker; Perfect only when it differs."""
        forms = [("Past", self.past)]
        if self.perfect.lower() != self.past.lower():
            forms.append(("Perfect", self.perfect))
        return forms

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["negatives"] = list(self.negatives)
        return data
