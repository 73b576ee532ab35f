"""
Tagger: applies a frozen model to batches of tokenized sentences.

The model is put in evaluation mode with gradients disabled when the tagger
is constructed and is never modified afterwards. Every call builds its own
input tensors and works on copies of the sentence graphs, so one tagger can
serve several threads at the same time.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Union

import torch

from .encoders import Encoders, NamedEncoder, make_tree
from .graph import DepTriple, SentenceGraph
from .loading import freeze
from .tokenization import SentenceWithPieces
from .utils import get_device

logger = logging.getLogger(__name__)


class Tagger:
    """Sequence tagger over word pieces."""

    def __init__(
        self,
        device: Union[str, torch.device],
        model: torch.nn.Module,
        encoders: Encoders,
    ) -> None:
        self._device = get_device(device)
        self._model = freeze(model.to(self._device))
        self._encoders = encoders
        self._max_length = getattr(model, "max_length", None)

    @property
    def device(self) -> torch.device:
        return self._device

    @property
    def encoders(self) -> Encoders:
        return self._encoders

    def _batch_tensors(self, batch: Sequence[SentenceWithPieces]):
        n_pieces = max(len(item.input_ids) for item in batch)
        if self._max_length is not None and n_pieces > self._max_length:
            raise ValueError(
                f"sentence has {n_pieces} pieces, the model supports at most {self._max_length}"
            )
        input_ids = torch.zeros((len(batch), n_pieces), dtype=torch.long)
        attention_mask = torch.zeros((len(batch), n_pieces), dtype=torch.long)
        for idx, item in enumerate(batch):
            length = len(item.input_ids)
            input_ids[idx, :length] = torch.tensor(item.input_ids, dtype=torch.long)
            attention_mask[idx, :length] = 1
        return input_ids.to(self._device), attention_mask.to(self._device)

    def scores(self, batch: Sequence[SentenceWithPieces]) -> Dict[str, torch.Tensor]:
        """Label probabilities ``[batch, pieces, n_labels]`` per encoder, on the CPU."""
        input_ids, attention_mask = self._batch_tensors(batch)
        with torch.inference_mode():
            logits = self._model(input_ids=input_ids, attention_mask=attention_mask)
            return {name: torch.softmax(value.float(), dim=-1).cpu() for name, value in logits.items()}

    def tag_sentences(self, batch: List[SentenceWithPieces]) -> None:
        """Annotate a batch of sentences in one model invocation.

        On success every ``item.sentence`` is replaced by an annotated graph.
        When any part of scoring or decoding fails, the exception propagates
        and no item of the batch is changed.
        """
        if not batch:
            raise ValueError("cannot tag an empty batch")
        logger.debug("Tagging batch of %d sentences", len(batch))
        probs = self.scores(batch)
        annotated = [self._decode(idx, item, probs) for idx, item in enumerate(batch)]
        for item, graph in zip(batch, annotated):
            item.sentence = graph

    def _token_probs(self, probs: Dict[str, torch.Tensor], named: NamedEncoder, batch_idx: int,
                     offsets: torch.Tensor) -> torch.Tensor:
        if named.name not in probs:
            raise KeyError(f"model has no output for encoder '{named.name}'")
        return probs[named.name][batch_idx].index_select(0, offsets)

    def _decode(self, batch_idx: int, item: SentenceWithPieces, probs: Dict[str, torch.Tensor]) -> SentenceGraph:
        graph = item.sentence.copy()
        offsets = torch.tensor(item.token_offsets, dtype=torch.long)
        with graph.write():
            tokens = list(graph.tokens())
            # Dependency labels may refer to part-of-speech tags, decode those first.
            token_encoders = [named for named in self._encoders if named.kind != "dependency"]
            dependency_encoders = [named for named in self._encoders if named.kind == "dependency"]

            for named in token_encoders:
                best = self._token_probs(probs, named, batch_idx, offsets).argmax(dim=-1).tolist()
                for token, label_idx in zip(tokens, best):
                    named.encoder.decode(named.vocabulary.label(label_idx), token)

            for named in dependency_encoders:
                token_probs = self._token_probs(probs, named, batch_idx, offsets)
                self._decode_dependencies(graph, named, token_probs)
        return graph

    @staticmethod
    def _decode_dependencies(graph: SentenceGraph, named: NamedEncoder, token_probs: torch.Tensor) -> None:
        encoder = named.encoder
        ranked = torch.argsort(token_probs, dim=-1, descending=True).tolist()
        candidates = []
        for token_idx, label_indices in enumerate(ranked):
            dependent = token_idx + 1
            for label_idx in label_indices:
                triple = encoder.decode(named.vocabulary.label(label_idx), graph, dependent)
                if triple is not None:
                    candidates.append((triple, float(token_probs[token_idx, label_idx])))
                    break
            else:
                candidates.append((DepTriple(0, encoder.root_relation), 0.0))

        graph.clear_heads()
        for dependent, triple in enumerate(make_tree(candidates, encoder.root_relation), start=1):
            graph.set_head(dependent, triple.head, triple.relation)
