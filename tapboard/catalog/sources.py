"""
Card sources.

A source exposes a tree of named entries under one or more root paths.
``list(path)`` returns the child names of a group, or an empty list for a
leaf. The catalog builder does the walking; sources only enumerate.
"""

import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..config import Config
from ..utils.labels import LabelNormalizer, capitalize_first


def join_path(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


class CardSource(ABC):
    """
    Abstract base class for all card sources.

    Subclasses implement list(); they may override label_for() and
    folder_for() when their entries are named differently from bundled
    assets.
    """

    name: str = "source"
    roots: Sequence[str] = ()

    @abstractmethod
    def list(self, path: str) -> List[str]:
        """
        List child names under ``path``.

        Args:
            path: Slash-separated path starting at one of ``roots``

        Returns:
            Child names; empty for leaves and missing paths
        """
        pass

    def resolve_path(self, full_path: str) -> str:
        """Card path (URI or file path) for a leaf."""
        return full_path

    def label_for(self, file_name: str) -> str:
        return LabelNormalizer.normalize_file_name(file_name)

    def folder_for(self, parent_path: str, top_group: Optional[str]) -> str:
        """Folder for a leaf: the top-most group, else the parent's last segment."""
        folder = top_group if top_group is not None else parent_path.rsplit("/", 1)[-1]
        return folder.lower()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class DirectoryCardSource(CardSource):
    """Cards stored as image files under a directory on disk."""

    def __init__(
        self,
        base_dir: str,
        roots: Sequence[str] = (),
        uri_prefix: Optional[str] = None,
        name: Optional[str] = None,
    ):
        """
        Args:
            base_dir: Directory the root paths are relative to
            roots: Root paths to walk (defaults to Config.ASSET_ROOTS)
            uri_prefix: Prefix for card paths; absolute file paths when None
            name: Source name used in logs
        """
        self.base_dir = base_dir
        self.roots = tuple(roots or Config.ASSET_ROOTS)
        self.uri_prefix = uri_prefix
        self.name = name or os.path.basename(os.path.normpath(base_dir)) or "directory"

    def _fs_path(self, path: str) -> str:
        return os.path.join(self.base_dir, *path.split("/")) if path else self.base_dir

    def list(self, path: str) -> List[str]:
        fs_path = self._fs_path(path)
        if not os.path.isdir(fs_path):
            return []
        return sorted(os.listdir(fs_path))

    def resolve_path(self, full_path: str) -> str:
        if self.uri_prefix is not None:
            return f"{self.uri_prefix}{full_path}"
        return os.path.abspath(self._fs_path(full_path))


class CustomWordsSource(DirectoryCardSource):
    """
    User-created cards saved under the custom words directory.

    Labels keep the user's spelling (first letter capitalised) and the
    folder is the file's immediate parent directory.
    """

    ROOT = "."

    def __init__(self, base_dir: Optional[str] = None, name: str = "custom_words"):
        super().__init__(
            base_dir or Config.CUSTOM_WORDS_DIR,
            roots=(self.ROOT,),
            uri_prefix=None,
            name=name,
        )

    def _fs_path(self, path: str) -> str:
        if path in ("", self.ROOT):
            return self.base_dir
        return os.path.join(self.base_dir, *path.split("/")[1:])

    def label_for(self, file_name: str) -> str:
        return capitalize_first(LabelNormalizer.strip_extension(file_name))

    def folder_for(self, parent_path: str, top_group: Optional[str]) -> str:
        parent = parent_path.rsplit("/", 1)[-1]
        if parent == self.ROOT:
            return "custom"
        return parent.lower()


class MappingCardSource(CardSource):
    """
    In-memory tree of entries.

    Groups are dicts, leaves are anything else:
    ``{"ACC_board": {"verbs": {"go_B1.png": None}}}``.
    """

    def __init__(self, tree: Dict[str, Any], roots: Sequence[str] = (), uri_prefix: str = "", name: str = "mapping"):
        self.tree = tree
        self.roots = tuple(roots or tree.keys())
        self.uri_prefix = uri_prefix
        self.name = name

    def _node(self, path: str) -> Any:
        node: Any = self.tree
        for part in [p for p in path.split("/") if p]:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def list(self, path: str) -> List[str]:
        node = self._node(path)
        if not isinstance(node, dict):
            return []
        return list(node.keys())

    def resolve_path(self, full_path: str) -> str:
        return f"{self.uri_prefix}{full_path}"
