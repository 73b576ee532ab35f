"""
CoNLL-U reading and writing.

Columns: ID, FORM, LEMMA, UPOS, XPOS, FEATS, HEAD, DEPREL, DEPS, MISC. Every
sentence is a block of token lines followed by an empty line. HEAD uses node
indices, 0 being the root; tokens without a head have ``_`` in HEAD and DEPREL.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, TextIO, Union

from .errors import ConllUError
from .features import EMPTY, Features, Misc
from .graph import SentenceGraph, TokenNode
from .sentence import Sentence

logger = logging.getLogger(__name__)

N_COLUMNS = 10


def _escape(value: Optional[str]) -> str:
    return value if value else EMPTY


def _unescape(value: str) -> Optional[str]:
    return None if value == EMPTY else value


def _format_token_line(graph: SentenceGraph, node_idx: int) -> str:
    token = graph.token(node_idx)
    triple = graph.head(node_idx)
    head_value = EMPTY if triple is None else str(triple.head)
    deprel = None if triple is None else triple.relation
    return "\t".join(
        (
            str(node_idx),
            token.form,
            _escape(token.lemma),
            _escape(token.upos),
            _escape(token.xpos),
            token.features.to_conllu(),
            head_value,
            _escape(deprel),
            EMPTY,
            token.misc.to_conllu(),
        )
    )


def sentence_to_conllu(sentence: Union[Sentence, SentenceGraph]) -> str:
    """Render one sentence as a CoNLL-U block, including the terminating empty line."""
    graph = sentence.graph if isinstance(sentence, Sentence) else sentence
    with graph.read():
        lines = [_format_token_line(graph, node_idx) for node_idx in range(1, graph.node_count)]
    lines.append("")
    return "\n".join(lines) + "\n"


def sentences_to_conllu(sentences: Iterable[Union[Sentence, SentenceGraph]]) -> str:
    return "".join(sentence_to_conllu(sentence) for sentence in sentences)


def write_sentences(sentences: Iterable[Union[Sentence, SentenceGraph]], handle: TextIO) -> None:
    for sentence in sentences:
        handle.write(sentence_to_conllu(sentence))


def _parse_block(lines: List[str], first_line_no: int) -> SentenceGraph:
    tokens: List[TokenNode] = []
    edges = []
    for offset, line in enumerate(lines):
        line_no = first_line_no + offset
        columns = line.split("\t")
        if len(columns) != N_COLUMNS:
            raise ConllUError(f"line {line_no}: expected {N_COLUMNS} columns, got {len(columns)}")
        token_id = columns[0]
        if "-" in token_id or "." in token_id:
            # Multi-word token ranges and empty nodes are not part of the graph.
            logger.debug("Skipping line %d with ID %s", line_no, token_id)
            continue
        try:
            node_idx = int(token_id)
        except ValueError as exc:
            raise ConllUError(f"line {line_no}: invalid token ID {token_id!r}") from exc
        if node_idx != len(tokens) + 1:
            raise ConllUError(f"line {line_no}: expected token ID {len(tokens) + 1}, got {node_idx}")
        tokens.append(
            TokenNode(
                form=columns[1],
                lemma=_unescape(columns[2]),
                upos=_unescape(columns[3]),
                xpos=_unescape(columns[4]),
                features=Features.from_conllu(columns[5]),
                misc=Misc.from_conllu(columns[9]),
            )
        )
        if columns[6] != EMPTY:
            try:
                head = int(columns[6])
            except ValueError as exc:
                raise ConllUError(f"line {line_no}: invalid head {columns[6]!r}") from exc
            edges.append((line_no, node_idx, head, _unescape(columns[7])))

    graph = SentenceGraph(tokens)
    for line_no, dependent, head, relation in edges:
        try:
            graph.set_head(dependent, head, relation)
        except ValueError as exc:
            raise ConllUError(f"line {line_no}: {exc}") from exc
    return graph


def iter_sentences(lines: Iterable[str]) -> Iterator[Sentence]:
    """Read sentences from CoNLL-U lines. Comment lines are skipped."""
    block: List[str] = []
    block_start = 1
    line_no = 0
    for line_no, raw_line in enumerate(lines, start=1):
        line = raw_line.rstrip("\r\n")
        if not line.strip():
            if block:
                yield Sentence.from_graph(_parse_block(block, block_start))
                block = []
            continue
        if line.startswith("#"):
            continue
        if not block:
            block_start = line_no
        block.append(line)
    if block:
        yield Sentence.from_graph(_parse_block(block, block_start))


def read_sentences(source: Union[str, Path, TextIO]) -> List[Sentence]:
    """Read all sentences from a path or an open text handle."""
    if isinstance(source, (str, Path)):
        with Path(source).open("r", encoding="utf-8") as handle:
            return list(iter_sentences(handle))
    return list(iter_sentences(source))


def read_sentence(text: str) -> Sentence:
    """Parse CoNLL-U text that contains exactly one sentence."""
    sentences = list(iter_sentences(text.splitlines()))
    if len(sentences) != 1:
        raise ConllUError(f"expected one sentence, found {len(sentences)}")
    return sentences[0]
