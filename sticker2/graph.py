"""
Dependency graph of a sentence.

A ``SentenceGraph`` owns a list of nodes: the artificial root at node index 0,
followed by one ``TokenNode`` per token. Dependency edges are stored as
``DepTriple`` values keyed by the node index of the dependent.

The graph is shared between the public ``Sentence`` object and the views
handed out for its tokens, so it carries a read/write guard. Code that reads
nodes or edges holds ``graph.read()``, code that modifies them holds
``graph.write()``. The data accessors below do not lock by themselves.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Union

from .features import Features, Misc, check_column_value


class _Root:
    """The artificial root node. There is exactly one per graph, at index 0."""

    _instance: Optional["_Root"] = None

    def __new__(cls) -> "_Root":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ROOT"

    def __reduce__(self):
        return (_Root, ())


ROOT = _Root()


@dataclass
class TokenNode:
    form: str
    lemma: Optional[str] = None
    upos: Optional[str] = None
    xpos: Optional[str] = None
    features: Features = field(default_factory=Features)
    misc: Misc = field(default_factory=Misc)

    def copy(self) -> "TokenNode":
        return TokenNode(
            form=self.form,
            lemma=self.lemma,
            upos=self.upos,
            xpos=self.xpos,
            features=self.features.copy(),
            misc=self.misc.copy(),
        )


Node = Union[_Root, TokenNode]


@dataclass(frozen=True)
class DepTriple:
    """Incoming edge of a dependent: head node index (0 = root) and relation."""

    head: int
    relation: Optional[str] = None


class _ReadWriteLock:
    """Many readers or one writer. The writing thread may re-enter and read."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer: Optional[int] = None
        self._writer_depth = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                owned_by_writer = True
            else:
                owned_by_writer = False
                while self._writer is not None:
                    self._cond.wait()
                self._readers += 1
        try:
            yield
        finally:
            if not owned_by_writer:
                with self._cond:
                    self._readers -= 1
                    if self._readers == 0:
                        self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._writer_depth += 1
            else:
                while self._writer is not None or self._readers:
                    self._cond.wait()
                self._writer = me
                self._writer_depth = 1
        try:
            yield
        finally:
            with self._cond:
                self._writer_depth -= 1
                if self._writer_depth == 0:
                    self._writer = None
                    self._cond.notify_all()


class SentenceGraph:
    """Nodes and dependency edges of one sentence."""

    def __init__(self, tokens: Iterable[TokenNode] = ()) -> None:
        self._nodes: List[Node] = [ROOT]
        self._nodes.extend(tokens)
        self._heads: Dict[int, DepTriple] = {}
        self._lock = _ReadWriteLock()

    @classmethod
    def from_forms(cls, forms: Iterable[str]) -> "SentenceGraph":
        return cls(TokenNode(form=check_column_value(str(form), "form")) for form in forms)

    def read(self):
        return self._lock.read()

    def write(self):
        return self._lock.write()

    def __len__(self) -> int:
        """Number of tokens; the root is not counted."""
        return len(self._nodes) - 1

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    def node(self, node_idx: int) -> Node:
        return self._nodes[node_idx]

    def token(self, node_idx: int) -> Optional[TokenNode]:
        """The token at ``node_idx``, ``None`` for the root."""
        node = self._nodes[node_idx]
        return None if node is ROOT else node

    def tokens(self) -> Iterator[TokenNode]:
        for node in self._nodes[1:]:
            yield node

    def head(self, dependent: int) -> Optional[DepTriple]:
        return self._heads.get(dependent)

    def set_head(self, dependent: int, head: int, relation: Optional[str] = None) -> None:
        if not 0 < dependent < len(self._nodes):
            raise ValueError(f"dependent out of range: {dependent}")
        if not 0 <= head < len(self._nodes):
            raise ValueError(f"head out of range: {head}")
        if head == dependent:
            raise ValueError(f"token {dependent} cannot be its own head")
        self._heads[dependent] = DepTriple(head, relation)

    def clear_heads(self) -> None:
        self._heads.clear()

    def copy(self) -> "SentenceGraph":
        """Deep copy with a fresh guard."""
        with self.read():
            copied = SentenceGraph(node.copy() for node in self._nodes[1:])
            copied._heads = dict(self._heads)
        return copied

    def __copy__(self) -> "SentenceGraph":
        return self.copy()

    def __deepcopy__(self, memo) -> "SentenceGraph":
        return self.copy()
