from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from .types import CLASSES, CLEFT, NON_CLEFT

# Teachable Machine exports labels as "<index> <name>".
_INDEX_PREFIX = re.compile(r"^\d+\s+")
_SEPARATORS = re.compile(r"[\s_\-]+")

_ALIASES = {
    "cleft": CLEFT,
    "noncleft": NON_CLEFT,
    "notcleft": NON_CLEFT,
    "normal": NON_CLEFT,
}


def parse_labels(text: str) -> list[str]:
    labels: list[str] = []
    # Files saved by some editors start with a byte-order mark.
    for line in text.lstrip("\ufeff").splitlines():
        name = _INDEX_PREFIX.sub("", line.strip())
        if name:
            labels.append(name)
    return labels


def canonical_class(name: str) -> str:
    key = _SEPARATORS.sub("", name.strip().lower())
    try:
        return _ALIASES[key]
    except KeyError:
        raise ValueError(f"Unrecognised class label {name!r}") from None


@dataclass(frozen=True)
class LabelMap:
    """Class names in model output order, as read from the label list."""

    names: tuple[str, ...]
    classes: tuple[str, ...]

    @classmethod
    def from_names(cls, names: list[str]) -> "LabelMap":
        if len(names) != len(CLASSES):
            raise ValueError(
                f"Expected {len(CLASSES)} labels but found {len(names)}: {names!r}"
            )
        classes = tuple(canonical_class(name) for name in names)
        if sorted(classes) != sorted(CLASSES):
            raise ValueError(f"Label list must name each class once: {names!r}")
        return cls(names=tuple(names), classes=classes)

    @classmethod
    def from_text(cls, text: str) -> "LabelMap":
        return cls.from_names(parse_labels(text))

    def index_of(self, class_name: str) -> int:
        return self.classes.index(class_name)

    def __len__(self) -> int:
        return len(self.classes)


def load_label_map(path: Path) -> LabelMap:
    return LabelMap.from_text(path.read_text(encoding="utf-8-sig"))


__all__ = ["LabelMap", "parse_labels", "canonical_class", "load_label_map"]
