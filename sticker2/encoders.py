"""
Label encoders.

An encoder turns one kind of token annotation into a string label and back.
``LabelVocabulary`` maps labels to the indices of the model's output layer;
label files are YAML mappings from encoder name to the ordered label list::

    upos: [ADJ, ADP, NOUN, PUNCT, VERB]
    dep: [ROOT/root, NOUN/-1/det, VERB/+1/nsubj]

Sequence and lemma encoders work per token. Dependency encoders need the
whole sentence, because heads are encoded relative to the dependent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from .config import EncoderConfig, LabelerConfig
from .errors import ConfigError
from .features import EMPTY, Features
from .graph import DepTriple, SentenceGraph, TokenNode

logger = logging.getLogger(__name__)

ROOT_LABEL = "ROOT"
FALLBACK_RELATION = "dep"


class LabelVocabulary:
    """Bidirectional mapping between labels and output indices."""

    def __init__(self, labels: Sequence[str]) -> None:
        self._labels: List[str] = [str(label) for label in labels]
        self._indices: Dict[str, int] = {}
        for idx, label in enumerate(self._labels):
            if label in self._indices:
                raise ConfigError(f"duplicate label: {label!r}")
            self._indices[label] = idx

    def index(self, label: str) -> int:
        return self._indices[label]

    def label(self, idx: int) -> str:
        return self._labels[idx]

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    def __contains__(self, label: object) -> bool:
        return label in self._indices

    def __len__(self) -> int:
        return len(self._labels)


class SequenceEncoder:
    """Encodes a token layer (UPOS, XPOS or the feature string) as is."""

    kind = "sequence"

    def __init__(self, layer: str) -> None:
        self.layer = layer

    def encode(self, token: TokenNode) -> str:
        if self.layer == "features":
            return token.features.to_conllu()
        value = getattr(token, self.layer)
        if value is None:
            raise ValueError(f"token '{token.form}' has no {self.layer} to encode")
        return value

    def decode(self, label: str, token: TokenNode) -> None:
        if self.layer == "features":
            token.features = Features.from_conllu(label)
        else:
            setattr(token, self.layer, label)


class LemmaEncoder:
    """Encodes a lemma as an edit of the form.

    Labels have the shape ``[lc:]<strip>|<append>``: optionally lowercase the
    form, remove ``strip`` trailing characters and append a suffix. Lemmas
    that share no prefix with the form are encoded literally as ``=<lemma>``.
    """

    kind = "lemma"

    @staticmethod
    def _edit(base: str, lemma: str) -> Tuple[int, str]:
        prefix_len = 0
        for base_char, lemma_char in zip(base, lemma):
            if base_char != lemma_char:
                break
            prefix_len += 1
        return prefix_len, lemma[prefix_len:]

    def encode(self, token: TokenNode) -> str:
        form, lemma = token.form, token.lemma
        if lemma is None:
            raise ValueError(f"token '{form}' has no lemma to encode")
        candidates = []
        for lowercase, base in ((False, form), (True, form.lower())):
            prefix_len, suffix = self._edit(base, lemma)
            if prefix_len == 0 and base and lemma:
                continue
            candidates.append((len(base) - prefix_len, lowercase, suffix))
        if not candidates:
            return f"={lemma}"
        strip, lowercase, suffix = min(candidates, key=lambda c: (c[0], c[1]))
        return f"{'lc:' if lowercase else ''}{strip}|{suffix}"

    def apply(self, label: str, form: str) -> Optional[str]:
        """Lemma for ``form`` according to ``label``, ``None`` if the label does not apply."""
        if label.startswith("="):
            return label[1:]
        base = form
        if label.startswith("lc:"):
            base = form.lower()
            label = label[3:]
        strip_str, sep, suffix = label.partition("|")
        if not sep or not strip_str.isdigit():
            return None
        strip = int(strip_str)
        if strip > len(base):
            return None
        return base[: len(base) - strip] + suffix

    def decode(self, label: str, token: TokenNode) -> None:
        lemma = self.apply(label, token.form)
        token.lemma = token.form if lemma is None else lemma


def _split_relation(relation: str) -> Optional[str]:
    return None if relation == EMPTY else relation


class RelativePositionEncoder:
    """Encodes a head as its offset from the dependent: ``+2/nsubj``, ``ROOT/root``."""

    kind = "dependency"

    def __init__(self, root_relation: str = "root") -> None:
        self.root_relation = root_relation

    def encode(self, graph: SentenceGraph) -> List[str]:
        labels = []
        for dependent in range(1, graph.node_count):
            triple = graph.head(dependent)
            if triple is None:
                raise ValueError(f"token {dependent} has no head to encode")
            relation = triple.relation or EMPTY
            if triple.head == 0:
                labels.append(f"{ROOT_LABEL}/{relation}")
            else:
                labels.append(f"{triple.head - dependent:+d}/{relation}")
        return labels

    def decode(self, label: str, graph: SentenceGraph, dependent: int) -> Optional[DepTriple]:
        position, sep, relation = label.partition("/")
        if not sep:
            return None
        if position == ROOT_LABEL:
            return DepTriple(0, _split_relation(relation))
        try:
            offset = int(position)
        except ValueError:
            return None
        head = dependent + offset
        if offset == 0 or not 0 < head < graph.node_count:
            return None
        return DepTriple(head, _split_relation(relation))


class RelativePOSEncoder:
    """Encodes a head as the n-th token with a given part-of-speech to the
    left (negative n) or right (positive n) of the dependent: ``NOUN/-1/det``.
    """

    kind = "dependency"

    def __init__(self, pos_layer: str = "upos", root_relation: str = "root") -> None:
        self.pos_layer = pos_layer
        self.root_relation = root_relation

    def _pos(self, graph: SentenceGraph, node_idx: int) -> Optional[str]:
        return getattr(graph.token(node_idx), self.pos_layer)

    def encode(self, graph: SentenceGraph) -> List[str]:
        labels = []
        for dependent in range(1, graph.node_count):
            triple = graph.head(dependent)
            if triple is None:
                raise ValueError(f"token {dependent} has no head to encode")
            relation = triple.relation or EMPTY
            if triple.head == 0:
                labels.append(f"{ROOT_LABEL}/{relation}")
                continue
            pos = self._pos(graph, triple.head)
            if pos is None:
                raise ValueError(f"head {triple.head} has no {self.pos_layer} to encode")
            if triple.head > dependent:
                between = range(dependent + 1, triple.head + 1)
                position = sum(1 for idx in between if self._pos(graph, idx) == pos)
            else:
                between = range(triple.head, dependent)
                position = -sum(1 for idx in between if self._pos(graph, idx) == pos)
            labels.append(f"{pos}/{position:+d}/{relation}")
        return labels

    def decode(self, label: str, graph: SentenceGraph, dependent: int) -> Optional[DepTriple]:
        if label.startswith(ROOT_LABEL + "/"):
            return DepTriple(0, _split_relation(label[len(ROOT_LABEL) + 1:]))
        parts = label.split("/", 2)
        if len(parts) != 3:
            return None
        pos, position_str, relation = parts
        try:
            position = int(position_str)
        except ValueError:
            return None
        if position == 0:
            return None
        step = 1 if position > 0 else -1
        remaining = abs(position)
        candidate = dependent + step
        while 0 < candidate < graph.node_count:
            if self._pos(graph, candidate) == pos:
                remaining -= 1
                if remaining == 0:
                    return DepTriple(candidate, _split_relation(relation))
            candidate += step
        return None


Encoder = Union[SequenceEncoder, LemmaEncoder, RelativePositionEncoder, RelativePOSEncoder]


@dataclass(frozen=True)
class NamedEncoder:
    name: str
    encoder: Encoder
    vocabulary: LabelVocabulary

    @property
    def kind(self) -> str:
        return self.encoder.kind


def make_encoder(config: EncoderConfig) -> Encoder:
    if config.kind == "sequence":
        return SequenceEncoder(config.layer)
    if config.kind == "lemma":
        return LemmaEncoder()
    if config.encoding == "relative_position":
        return RelativePositionEncoder(root_relation=config.root_relation)
    return RelativePOSEncoder(pos_layer=config.pos_layer, root_relation=config.root_relation)


def read_labels(path: Union[str, Path]) -> Dict[str, List[str]]:
    """Read a YAML label file. ``OSError`` propagates to the caller."""
    with Path(path).open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ConfigError(f"cannot deserialize labels from {path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise ConfigError(f"label file {path} is not valid UTF-8: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"label file {path} must contain a mapping from encoder name to labels")
    labels: Dict[str, List[str]] = {}
    for name, values in data.items():
        if not isinstance(values, list):
            raise ConfigError(f"labels of encoder '{name}' must be a list")
        labels[str(name)] = [str(value) for value in values]
    return labels


class Encoders:
    """The encoders of a model, in configuration order."""

    def __init__(self, encoders: Sequence[NamedEncoder]) -> None:
        self._encoders = list(encoders)

    @classmethod
    def from_config(cls, labeler: LabelerConfig, labels: Mapping[str, Sequence[str]]) -> "Encoders":
        encoders = []
        for encoder_config in labeler.encoders:
            if encoder_config.name not in labels:
                raise ConfigError(f"label file has no labels for encoder '{encoder_config.name}'")
            vocabulary = LabelVocabulary(labels[encoder_config.name])
            if not len(vocabulary):
                raise ConfigError(f"encoder '{encoder_config.name}' has no labels")
            encoders.append(NamedEncoder(encoder_config.name, make_encoder(encoder_config), vocabulary))
            logger.info(
                "Loaded labels for encoder '%s': %d labels", encoder_config.name, len(vocabulary)
            )
        return cls(encoders)

    def __getitem__(self, name: str) -> NamedEncoder:
        for encoder in self._encoders:
            if encoder.name == name:
                return encoder
        raise KeyError(name)

    def __iter__(self) -> Iterator[NamedEncoder]:
        return iter(self._encoders)

    def __len__(self) -> int:
        return len(self._encoders)

    def label_counts(self) -> Dict[str, int]:
        return {encoder.name: len(encoder.vocabulary) for encoder in self._encoders}


def make_tree(
    triples: List[Tuple[DepTriple, float]],
    root_relation: str = "root",
) -> List[DepTriple]:
    """Turn per-token head predictions into a tree rooted at node 0.

    ``triples[i]`` is the predicted edge of node ``i + 1`` with its score. The
    best-scoring token attached to the root stays attached; other root
    attachments move below it. Cycles are broken at their weakest edge.
    """
    heads = [triple for triple, _ in triples]
    scores = [score for _, score in triples]

    root_token = None
    root_attached = [idx for idx, triple in enumerate(heads) if triple.head == 0]
    if root_attached:
        best = max(root_attached, key=lambda idx: scores[idx])
        root_token = best + 1
        for idx in root_attached:
            if idx != best:
                logger.debug("Moving extra root token %d below token %d", idx + 1, root_token)
                heads[idx] = DepTriple(root_token, FALLBACK_RELATION)

    while True:
        cycle = _find_cycle(heads)
        if cycle is None:
            break
        weakest = min(cycle, key=lambda node: scores[node - 1])
        if root_token is None:
            heads[weakest - 1] = DepTriple(0, root_relation)
            root_token = weakest
        else:
            heads[weakest - 1] = DepTriple(root_token, FALLBACK_RELATION)
        logger.debug("Broke dependency cycle %s at token %d", cycle, weakest)

    return heads


def _find_cycle(heads: List[DepTriple]) -> Optional[List[int]]:
    # 0 = unvisited, 1 = on the current path, 2 = reaches the root
    state = [0] * (len(heads) + 1)
    state[0] = 2
    for start in range(1, len(heads) + 1):
        path = []
        node = start
        while state[node] == 0:
            state[node] = 1
            path.append(node)
            node = heads[node - 1].head
        if state[node] == 1:
            return path[path.index(node):]
        for visited in path:
            state[visited] = 2
    return None
