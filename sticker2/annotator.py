"""
Annotation pipeline.

An ``Annotator`` combines a tokenizer with a frozen ``Tagger``. It holds no
mutable state: every call tokenizes private copies of the input sentences and
the tagger never modifies the model, so one annotator can be shared by many
threads without locking. Input sentences are never modified; annotated
sentences are returned as new objects.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

import torch

from .config import Config
from .errors import InternalInvariantViolation, TaggingFailed
from .loading import Model
from .sentence import Sentence
from .tagger import Tagger
from .tokenization import SentenceWithPieces, Tokenize

logger = logging.getLogger(__name__)


class Annotator:
    """Annotates sentences with a frozen tagger."""

    def __init__(self, tagger: Tagger, tokenizer: Tokenize) -> None:
        self._tagger = tagger
        self._tokenizer = tokenizer

    @classmethod
    def from_model(cls, model: Model, device: Union[str, torch.device] = "cpu") -> "Annotator":
        tagger = Tagger(device, model.model, model.encoders)
        return cls(tagger, model.tokenizer)

    @classmethod
    def from_config(cls, config: Config, device: Union[str, torch.device] = "cpu") -> "Annotator":
        """Load the model described by ``config``.

        Raises ``ModelIOError`` when model files cannot be read and
        ``ConfigError`` when they do not match the configuration.
        """
        return cls.from_model(Model.load(config, device), device)

    @classmethod
    def from_config_file(cls, path: Union[str, Path], device: Union[str, torch.device] = "cpu") -> "Annotator":
        return cls.from_config(Config.from_file(path), device)

    @property
    def tagger(self) -> Tagger:
        return self._tagger

    def annotate_sentence(self, sentence: Sentence) -> Sentence:
        """Annotate a sentence. The annotated sentence is returned.

        Parameters
        ----------
        sentence : Sentence
            Sentence object to annotate.
        """
        annotated = self.annotate_sentences([sentence])
        if not annotated:
            raise InternalInvariantViolation("tagging returned no sentences for a non-empty batch")
        return annotated[0]

    def annotate_sentences(
        self,
        sentences: Iterable[Sentence],
        batch_size: Optional[int] = None,
    ) -> List[Sentence]:
        """Annotate a list of sentences. The annotated sentences are returned.

        Parameters
        ----------
        sentences : list
            List of Sentence objects to annotate.
        batch_size : int, optional
            Maximum number of sentences per model invocation. By default all
            sentences are tagged in a single invocation.
        """
        sentences = list(sentences)
        if not sentences:
            return []
        if batch_size is not None and batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        with_pieces = [self._tokenize(sentence) for sentence in sentences]
        step = batch_size or len(with_pieces)
        for start in range(0, len(with_pieces), step):
            batch = with_pieces[start:start + step]
            try:
                self._tagger.tag_sentences(batch)
            except Exception as exc:
                logger.warning("Tagging a batch of %d sentences failed: %s", len(batch), exc)
                raise TaggingFailed(str(exc)) from exc

        return [Sentence.from_graph(item.sentence) for item in with_pieces]

    def _tokenize(self, sentence: Sentence) -> SentenceWithPieces:
        return self._tokenizer.tokenize(sentence.graph.copy())
