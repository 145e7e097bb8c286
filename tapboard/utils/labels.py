"""Label normalization for card and category file names."""

import re
from typing import Optional


class LabelNormalizer:
    """
    Turns raw asset identifiers into display labels.

    Single source of truth for file-name cleanup, used by the catalog
    builder, the category strip and custom word import.
    """

    # Only known file extensions are stripped, so dotted labels such as
    # "Dr.who" survive a second pass unchanged
    EXTENSION_PATTERN = re.compile(r'\.(png|jpe?g|gif|webp|json|txt)$', re.IGNORECASE)

    # Level / language tags appended by the asset pipeline
    TAG_PATTERN = re.compile(r'_(A1|A2|B1|B2|C1|C2|EN|PL|DE|FR|ES)\b')

    # Numeric ordering prefix ("01_", "3-")
    ORDER_PREFIX_PATTERN = re.compile(r'^[0-9]+[-_]?')

    LEVEL_PATTERN = re.compile(r'_(A1|A2|B1|B2|C1|C2)')

    CATEGORY_SUFFIX_PATTERN = re.compile(r'_(cathegory|category)', re.IGNORECASE)

    WHITESPACE_PATTERN = re.compile(r'\s+')

    # Words kept lowercase unless they open the label
    MINOR_WORDS = frozenset({"a", "an", "the", "and", "or", "of", "to", "in", "on", "at", "for"})

    IMAGE_EXTENSIONS = (".png", ".jpg")

    @classmethod
    def strip_extension(cls, name: str) -> str:
        """Remove a trailing file extension, if any."""
        return cls.EXTENSION_PATTERN.sub('', name)

    @classmethod
    def normalize_file_name(cls, raw: str) -> str:
        """
        Convert a file name into a human readable label.

        "01_good_morning_A1.png" -> "Good Morning", "cup_of_tea.jpg" -> "Cup of Tea".

        Args:
            raw: File name or category key

        Returns:
            Display label (empty string for empty input)
        """
        if not raw:
            return ""

        name = cls.strip_extension(str(raw))
        name = cls.TAG_PATTERN.sub('', name)

        while True:
            stripped = cls.ORDER_PREFIX_PATTERN.sub('', name, count=1).lstrip()
            if stripped == name:
                break
            name = stripped

        name = name.replace('_', ' ').replace('-', ' ')
        name = cls.WHITESPACE_PATTERN.sub(' ', name).strip()
        if not name:
            return ""

        words = []
        for word in name.split(' '):
            lower = word.lower()
            if lower in cls.MINOR_WORDS:
                words.append(lower)
            else:
                words.append(lower[:1].upper() + lower[1:])

        label = ' '.join(words)
        return label[:1].upper() + label[1:]

    @classmethod
    def trim_category_name(cls, file_name: str) -> str:
        """
        Convert a category icon file name into a category label.

        "verbs_category.png" -> "Verbs"
        """
        if not file_name:
            return ""

        name = file_name.rsplit('.', 1)[0] if '.' in file_name else file_name
        name = cls.CATEGORY_SUFFIX_PATTERN.sub('', name)
        name = name.replace('_', ' ').strip()
        return name[:1].upper() + name[1:]

    @classmethod
    def parse_level(cls, file_name: str) -> Optional[str]:
        """Get the CEFR level tag embedded in a file name, or None."""
        match = cls.LEVEL_PATTERN.search(file_name or "")
        return match.group(1) if match else None

    @classmethod
    def base_name(cls, file_name: str) -> str:
        """Lowercased file name without its extension (template key form)."""
        name = file_name or ""
        if '.' in name:
            name = name.rsplit('.', 1)[0]
        return name.lower()

    @classmethod
    def is_image(cls, name: str) -> bool:
        """Check whether a leaf name has an accepted image extension."""
        return (name or "").lower().endswith(cls.IMAGE_EXTENSIONS)


def normalize_file_name(raw: str) -> str:
    """Module-level shortcut for :meth:`LabelNormalizer.normalize_file_name`."""
    return LabelNormalizer.normalize_file_name(raw)


def trim_category_name(file_name: str) -> str:
    """Module-level shortcut for :meth:`LabelNormalizer.trim_category_name`."""
    return LabelNormalizer.trim_category_name(file_name)


def parse_level(file_name: str) -> Optional[str]:
    return LabelNormalizer.parse_level(file_name)


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:] if text else ""
