"""Shared fixtures: a tiny randomly initialised BERT tagger written to disk."""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List

import pytest
import torch
import yaml


def _ensure_project_root_on_path() -> None:
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


_ensure_project_root_on_path()

from sticker2.config import Config  # noqa: E402
from sticker2.encoders import Encoders  # noqa: E402
from sticker2.graph import SentenceGraph  # noqa: E402
from sticker2.loading import load_pretrain_config  # noqa: E402
from sticker2.model import TaggerModel  # noqa: E402
from sticker2.tokenization import SentenceWithPieces  # noqa: E402

VOCAB = [
    "[PAD]", "[UNK]", "[CLS]", "[SEP]", "[MASK]",
    "The", "the", "dog", "dogs", "cat", "runs", "run", "sleeps", "a", "A", ".",
    "##s", "##ing", "walk",
]

LABELS = {
    "dep": ["ROOT/root", "NOUN/-1/nsubj", "NOUN/+1/det", "VERB/-1/nsubj", "VERB/+1/nsubj", "PUNCT/+1/punct"],
    "lemma": ["0|", "1|", "lc:0|", "=be"],
    "upos": ["DET", "NOUN", "VERB", "PUNCT"],
    "xpos": ["DT", "NN", "VBZ", "."],
    "feats": ["_", "Number=Sing", "Definite=Def|PronType=Art"],
}

PRETRAIN_CONFIG = {
    "vocab_size": len(VOCAB),
    "hidden_size": 16,
    "num_hidden_layers": 1,
    "num_attention_heads": 2,
    "intermediate_size": 32,
    "max_position_embeddings": 64,
}

CONFIG_TOML = """
[input]
tokenizer = "bert"
vocab = "vocab.txt"

[labeler]
labels = "sticker.labels"
encoders = [
  { name = "dep", kind = "dependency", encoding = "relative_pos", pos_layer = "upos", root_relation = "root" },
  { name = "lemma", kind = "lemma" },
  { name = "upos", kind = "sequence", layer = "upos" },
  { name = "xpos", kind = "sequence", layer = "xpos" },
  { name = "feats", kind = "sequence", layer = "features" },
]

[model]
parameters = "params.pt"
pretrain_config = "bert_config.json"
"""


def write_model_dir(directory: Path, seed: int = 42, position_embeddings: str = "model") -> Path:
    """Write a complete model directory and return the path of its configuration."""
    (directory / "vocab.txt").write_text("\n".join(VOCAB) + "\n", encoding="utf-8")
    (directory / "sticker.labels").write_text(yaml.safe_dump(LABELS), encoding="utf-8")
    (directory / "bert_config.json").write_text(json.dumps(PRETRAIN_CONFIG), encoding="utf-8")
    config_path = directory / "sticker.conf"
    config_path.write_text(
        CONFIG_TOML + f"position_embeddings = \"{position_embeddings}\"\n", encoding="utf-8"
    )

    config = Config.from_file(config_path)
    encoders = Encoders.from_config(config.labeler, LABELS)
    torch.manual_seed(seed)
    model = TaggerModel(load_pretrain_config(config), encoders, config.model.position_embeddings)
    torch.save(model.state_dict(), directory / "params.pt")
    return config_path


@pytest.fixture(scope="session")
def model_config_path(tmp_path_factory) -> Path:
    return write_model_dir(tmp_path_factory.mktemp("model"))


@pytest.fixture(scope="session")
def model_config(model_config_path: Path) -> Config:
    return Config.from_file(model_config_path)


@pytest.fixture(scope="session")
def annotator(model_config: Config):
    from sticker2.annotator import Annotator

    return Annotator.from_config(model_config)


class PieceTokenizer:
    """One piece per token, no special tokens."""

    def tokenize(self, sentence: SentenceGraph) -> SentenceWithPieces:
        n_tokens = len(sentence)
        return SentenceWithPieces(
            sentence=sentence,
            pieces=[[idx + 1] for idx in range(n_tokens)],
            input_ids=[idx + 1 for idx in range(n_tokens)],
            token_offsets=list(range(n_tokens)),
        )


@dataclass
class RecordingTagger:
    """Sets UPOS to the upper-cased form and records the size of every batch."""

    batch_sizes: List[int]
    fail_on_call: int = -1

    def tag_sentences(self, batch: List[SentenceWithPieces]) -> None:
        call = len(self.batch_sizes)
        self.batch_sizes.append(len(batch))
        if call == self.fail_on_call:
            raise RuntimeError("scoring failed")
        for item in batch:
            with item.sentence.write():
                for token in item.sentence.tokens():
                    token.upos = token.form.upper()
