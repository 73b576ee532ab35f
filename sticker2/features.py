"""
Feature stores attached to tokens.

``Features`` holds morphological features, where every feature has a value.
``Misc`` holds miscellaneous annotations, where a feature may be present
without a value (e.g. a bare ``NoSpace`` entry in the CoNLL-U MISC column).

Both stores render their entries sorted by name, joined by ``|``, which is the
order used in the FEATS and MISC columns of CoNLL-U output.
"""

from __future__ import annotations

from typing import Dict, Iterator, Mapping, Optional, Tuple

from .errors import ConllUError

EMPTY = "_"

# Characters that would break the line-per-token CoNLL-U layout.
LINE_BREAKING = "\t\n\r"


def check_column_value(value: str, what: str, forbidden: str = "") -> str:
    """Reject values that cannot be written to a CoNLL-U column."""
    if not isinstance(value, str):
        raise TypeError(f"{what} must be a string, not {type(value).__name__}")
    for char in LINE_BREAKING + forbidden:
        if char in value:
            raise ValueError(f"{what} cannot contain {char!r}: {value!r}")
    return value


def _split_entries(text: str) -> Iterator[str]:
    text = text.strip()
    if not text or text == EMPTY:
        return
    for part in text.split("|"):
        part = part.strip()
        if part:
            yield part


class Features:
    """Morphological features of a token (name -> value)."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Optional[Mapping[str, str]] = None) -> None:
        self._entries: Dict[str, str] = dict(entries or {})

    @classmethod
    def from_conllu(cls, text: str) -> "Features":
        """Parse a FEATS column value such as ``Case=Nom|Number=Sing``."""
        entries: Dict[str, str] = {}
        for part in _split_entries(text):
            if "=" not in part:
                raise ConllUError(f"feature without value: {part!r}")
            name, value = part.split("=", 1)
            entries[name] = value
        return cls(entries)

    def get(self, name: str) -> Optional[str]:
        return self._entries.get(name)

    def insert(self, name: str, value: str) -> Optional[str]:
        previous = self._entries.get(name)
        self._entries[name] = value
        return previous

    def remove(self, name: str) -> Optional[str]:
        return self._entries.pop(name, None)

    def items(self) -> Iterator[Tuple[str, str]]:
        for name in sorted(self._entries):
            yield name, self._entries[name]

    def copy(self) -> "Features":
        return Features(self._entries)

    def to_conllu(self) -> str:
        if not self._entries:
            return EMPTY
        return "|".join(f"{name}={value}" for name, value in self.items())

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Features):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"Features({self.to_conllu()!r})"


class Misc:
    """Miscellaneous token annotations (name -> optional value)."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Optional[Mapping[str, Optional[str]]] = None) -> None:
        self._entries: Dict[str, Optional[str]] = dict(entries or {})

    @classmethod
    def from_conllu(cls, text: str) -> "Misc":
        """Parse a MISC column value; bare names are stored without a value."""
        entries: Dict[str, Optional[str]] = {}
        for part in _split_entries(text):
            if "=" in part:
                name, value = part.split("=", 1)
                entries[name] = value
            else:
                entries[part] = None
        return cls(entries)

    def has_name(self, name: str) -> bool:
        """Whether ``name`` is stored, with or without a value."""
        return name in self._entries

    def get(self, name: str) -> Optional[str]:
        """Value of ``name``; ``None`` when absent or stored without a value."""
        return self._entries.get(name)

    def insert(self, name: str, value: Optional[str]) -> None:
        self._entries[name] = value

    def remove(self, name: str) -> bool:
        if name not in self._entries:
            return False
        del self._entries[name]
        return True

    def items(self) -> Iterator[Tuple[str, Optional[str]]]:
        for name in sorted(self._entries):
            yield name, self._entries[name]

    def valued_items(self) -> Iterator[Tuple[str, str]]:
        for name, value in self.items():
            if value is not None:
                yield name, value

    def copy(self) -> "Misc":
        return Misc(self._entries)

    def to_conllu(self) -> str:
        if not self._entries:
            return EMPTY
        return "|".join(name if value is None else f"{name}={value}" for name, value in self.items())

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Misc):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"Misc({self.to_conllu()!r})"
