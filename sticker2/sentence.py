"""
Public sentence API.

``Sentence`` wraps a ``SentenceGraph``. Indexing and iterating a sentence
hands out ``Token`` views, and a token hands out ``FeaturesView`` and
``MiscView`` mapping views. Views do not own any data: they refer to the
graph of the sentence they were obtained from, so edits through a view are
visible through the sentence and every other view of it.

Token indices are 0-based over the tokens of the sentence. Dependency heads
use node indices instead, where 0 is the artificial root and token ``i`` is
node ``i + 1`` (the CoNLL-U convention).
"""

from __future__ import annotations

import operator
from typing import Iterable, Iterator, List, Optional, Tuple

from .errors import IndexOutOfRange, InvalidOperation, UnknownKey
from .features import check_column_value
from .graph import ROOT, SentenceGraph, TokenNode


class Sentence:
    """Sentence that can be annotated."""

    def __init__(self, forms: Iterable[str] = ()) -> None:
        """Construct a sentence from token forms, without any annotations."""
        self._graph = SentenceGraph.from_forms(forms)

    @classmethod
    def from_graph(cls, graph: SentenceGraph) -> "Sentence":
        sentence = cls.__new__(cls)
        sentence._graph = graph
        return sentence

    @classmethod
    def from_conllu(cls, text: str) -> "Sentence":
        """Read a single sentence from CoNLL-U text."""
        from .conllu import read_sentence

        return read_sentence(text)

    @property
    def graph(self) -> SentenceGraph:
        return self._graph

    @property
    def root(self) -> "Token":
        """View of the artificial root node."""
        return Token(self._graph, 0)

    def copy(self) -> "Sentence":
        return Sentence.from_graph(self._graph.copy())

    def to_conllu(self) -> str:
        from .conllu import sentence_to_conllu

        return sentence_to_conllu(self)

    def __len__(self) -> int:
        with self._graph.read():
            return len(self._graph)

    def __getitem__(self, idx: int) -> "Token":
        idx = operator.index(idx)
        with self._graph.read():
            n_tokens = len(self._graph)
        if idx < 0 or idx >= n_tokens:
            raise IndexOutOfRange(f"token index out of range: {idx}")
        return Token(self._graph, idx + 1)

    def __iter__(self) -> "SentenceIterator":
        return SentenceIterator(self._graph)

    def __repr__(self) -> str:
        with self._graph.read():
            token_reprs = [repr(Token(self._graph, node_idx)) for node_idx in range(1, self._graph.node_count)]
        return f"Sentence([{', '.join(token_reprs)}])"

    def __str__(self) -> str:
        return self.to_conllu()


class SentenceIterator:
    """Iterator over the tokens of a sentence, in sentence-linear order."""

    def __init__(self, graph: SentenceGraph) -> None:
        self._graph = graph
        self._idx = 0

    def __iter__(self) -> "SentenceIterator":
        return self

    def __next__(self) -> "Token":
        with self._graph.read():
            n_tokens = len(self._graph)
        if self._idx >= n_tokens:
            raise StopIteration
        token = Token(self._graph, self._idx + 1)
        self._idx += 1
        return token


class Token:
    """View of one node of a sentence."""

    __slots__ = ("_graph", "_node_idx")

    def __init__(self, graph: SentenceGraph, node_idx: int) -> None:
        self._graph = graph
        self._node_idx = node_idx

    def _read(self, attr: str) -> Optional[str]:
        with self._graph.read():
            token = self._graph.token(self._node_idx)
            return None if token is None else getattr(token, attr)

    @property
    def is_root(self) -> bool:
        return self._node_idx == 0

    @property
    def index(self) -> Optional[int]:
        """0-based token index, ``None`` for the root."""
        return None if self._node_idx == 0 else self._node_idx - 1

    @property
    def id(self) -> int:
        """Node index (CoNLL-U ID), 0 for the root."""
        return self._node_idx

    @property
    def form(self) -> Optional[str]:
        return self._read("form")

    @property
    def lemma(self) -> Optional[str]:
        return self._read("lemma")

    @property
    def upos(self) -> Optional[str]:
        """Universal part-of-speech tag."""
        return self._read("upos")

    @property
    def xpos(self) -> Optional[str]:
        """Language-specific part-of-speech tag."""
        return self._read("xpos")

    @property
    def head(self) -> Optional[int]:
        """Node index of the dependency head, 0 for the root."""
        with self._graph.read():
            triple = self._graph.head(self._node_idx)
        return None if triple is None else triple.head

    @property
    def head_rel(self) -> Optional[str]:
        """Relation of the incoming dependency edge."""
        with self._graph.read():
            triple = self._graph.head(self._node_idx)
        return None if triple is None else triple.relation

    @property
    def features(self) -> "FeaturesView":
        return FeaturesView(self._graph, self._node_idx)

    @property
    def misc(self) -> "MiscView":
        return MiscView(self._graph, self._node_idx)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Token):
            return NotImplemented
        return self._graph is other._graph and self._node_idx == other._node_idx

    def __hash__(self) -> int:
        return hash((id(self._graph), self._node_idx))

    def __repr__(self) -> str:
        with self._graph.read():
            node = self._graph.node(self._node_idx)
            if node is ROOT:
                return "Root"
            attrs = [f"form = '{node.form}'"]
            if node.upos is not None:
                attrs.append(f"upos = '{node.upos}'")
            if node.xpos is not None:
                attrs.append(f"xpos = '{node.xpos}'")
            triple = self._graph.head(self._node_idx)
            if triple is not None:
                attrs.append(f"head = {triple.head}")
                if triple.relation is not None:
                    attrs.append(f"relation = {triple.relation}")
        return f"Token({', '.join(attrs)})"


class _TokenMapView:
    """Shared plumbing of the features and misc views."""

    __slots__ = ("_graph", "_node_idx")

    _root_message = "root node has no features"

    def __init__(self, graph: SentenceGraph, node_idx: int) -> None:
        self._graph = graph
        self._node_idx = node_idx

    def _token(self) -> TokenNode:
        # Callers hold the graph guard.
        token = self._graph.token(self._node_idx)
        if token is None:
            raise InvalidOperation(self._root_message)
        return token

    def contains(self, name: str) -> bool:
        return name in self

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        try:
            return self[name]
        except UnknownKey:
            return default

    def keys(self) -> List[str]:
        return [name for name, _ in self.items()]

    def items(self) -> List[Tuple[str, str]]:
        raise NotImplementedError

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.items())

    def __str__(self) -> str:
        return repr(self)


class FeaturesView(_TokenMapView):
    """Morphological features of a token."""

    __slots__ = ()

    def items(self) -> List[Tuple[str, str]]:
        with self._graph.read():
            return list(self._token().features.items())

    def __contains__(self, name: object) -> bool:
        with self._graph.read():
            return name in self._token().features

    def __getitem__(self, name: str) -> str:
        with self._graph.read():
            value = self._token().features.get(name)
        if value is None:
            raise UnknownKey(f"unknown feature: {name}")
        return value

    def __setitem__(self, name: str, value: str) -> None:
        check_column_value(name, "feature name", "|=")
        check_column_value(value, "feature value", "|")
        with self._graph.write():
            self._token().features.insert(name, value)

    def __delitem__(self, name: str) -> None:
        with self._graph.write():
            removed = self._token().features.remove(name)
        if removed is None:
            raise UnknownKey(f"features set does not contain feature: {name}")

    def __repr__(self) -> str:
        with self._graph.read():
            token = self._graph.token(self._node_idx)
            entries = [] if token is None else list(token.features.items())
        return "Features {" + ", ".join(f'"{name}": "{value}"' for name, value in entries) + "}"


class MiscView(_TokenMapView):
    """Miscellaneous features of a token.

    Entries stored without a value are invisible through this view: they are
    not contained, cannot be read and are not listed. They can be deleted,
    and they are kept in CoNLL-U output.
    """

    __slots__ = ()

    _root_message = "root node has no misc features"

    def items(self) -> List[Tuple[str, str]]:
        with self._graph.read():
            return list(self._token().misc.valued_items())

    def __contains__(self, name: object) -> bool:
        with self._graph.read():
            return self._token().misc.get(name) is not None

    def __getitem__(self, name: str) -> str:
        with self._graph.read():
            value = self._token().misc.get(name)
        if value is None:
            raise UnknownKey(f"unknown feature: {name}")
        return value

    def __setitem__(self, name: str, value: str) -> None:
        check_column_value(name, "misc feature name", "|=")
        check_column_value(value, "misc feature value", "|")
        with self._graph.write():
            self._token().misc.insert(name, value)

    def __delitem__(self, name: str) -> None:
        with self._graph.write():
            removed = self._token().misc.remove(name)
        if not removed:
            raise UnknownKey(f"misc feature set does not contain feature: {name}")

    def __repr__(self) -> str:
        with self._graph.read():
            token = self._graph.token(self._node_idx)
            entries = [] if token is None else list(token.misc.valued_items())
        return "Misc {" + ", ".join(f'"{name}": "{value}"' for name, value in entries) + "}"
