"""
Sub-word tokenization of sentences.

A tokenizer splits the form of every token into word pieces and returns a
``SentenceWithPieces``: the sentence graph together with the piece ids of
each token and the flat model input built from them.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Protocol

from .config import InputConfig
from .graph import SentenceGraph

if TYPE_CHECKING:  # pragma: no cover
    from transformers import PreTrainedTokenizerBase


@dataclass
class SentenceWithPieces:
    """A sentence with the word pieces of its tokens.

    ``input_ids`` is the model input (special tokens included) and
    ``token_offsets[i]`` is the position of the first piece of token ``i``
    in ``input_ids``.
    """
    sentence: SentenceGraph
    pieces: List[List[int]]
    input_ids: List[int] = field(default_factory=list)
    token_offsets: List[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.pieces) != len(self.sentence):
            raise ValueError(
                f"got pieces for {len(self.pieces)} tokens, sentence has {len(self.sentence)} tokens"
            )


class Tokenize(Protocol):
    def tokenize(self, sentence: SentenceGraph) -> SentenceWithPieces:
        ...


class TransformersTokenizer:
    """Word piece tokenizer backed by a HuggingFace fast tokenizer."""

    def __init__(self, tokenizer: "PreTrainedTokenizerBase", lowercase: bool = False) -> None:
        if not getattr(tokenizer, "is_fast", False):
            raise ValueError("sticker2 requires a fast tokenizer")
        self._tokenizer = tokenizer
        self._lowercase = lowercase
        # Fast tokenizers must not be entered from several threads at once.
        self._lock = threading.Lock()
        self._prefix = [] if tokenizer.cls_token_id is None else [tokenizer.cls_token_id]
        self._suffix = [] if tokenizer.sep_token_id is None else [tokenizer.sep_token_id]

    @classmethod
    def from_config(cls, config: InputConfig) -> "TransformersTokenizer":
        """Construct the tokenizer described by the ``[input]`` section.

        ``OSError`` is raised when the vocabulary cannot be read.
        """
        from transformers import AutoTokenizer, BertTokenizerFast, XLMRobertaTokenizerFast

        if config.tokenizer == "bert":
            tokenizer = BertTokenizerFast(vocab_file=config.vocab, do_lower_case=config.lowercase)
        elif config.tokenizer == "xlm_roberta":
            tokenizer = XLMRobertaTokenizerFast(vocab_file=config.vocab)
        else:
            tokenizer = AutoTokenizer.from_pretrained(config.vocab, use_fast=True)
        return cls(tokenizer, lowercase=config.lowercase)

    def _word_pieces(self, form: str) -> List[int]:
        if self._lowercase:
            form = form.lower()
        with self._lock:
            pieces = self._tokenizer.tokenize(form)
            ids = self._tokenizer.convert_tokens_to_ids(pieces)
        if not ids:
            return [self._tokenizer.unk_token_id]
        return ids

    def tokenize(self, sentence: SentenceGraph) -> SentenceWithPieces:
        with sentence.read():
            forms = [token.form for token in sentence.tokens()]
        pieces = [self._word_pieces(form) for form in forms]

        input_ids = list(self._prefix)
        token_offsets = []
        for token_pieces in pieces:
            token_offsets.append(len(input_ids))
            input_ids.extend(token_pieces)
        input_ids.extend(self._suffix)

        return SentenceWithPieces(
            sentence=sentence,
            pieces=pieces,
            input_ids=input_ids,
            token_offsets=token_offsets,
        )
