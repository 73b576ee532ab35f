from pathlib import Path

import pytest
import torch
import yaml

from conftest import LABELS, write_model_dir
from sticker2.annotator import Annotator
from sticker2.config import Config
from sticker2.errors import ConfigError, ModelIOError
from sticker2.loading import Model, _parse_version_tuple
from sticker2.model import sinusoidal_embeddings
from sticker2.sentence import Sentence
from sticker2.tokenization import TransformersTokenizer


def test_load_model(model_config: Config) -> None:
    model = Model.load(model_config)

    assert [encoder.name for encoder in model.encoders] == ["dep", "lemma", "upos", "xpos", "feats"]
    assert model.encoders.label_counts()["upos"] == len(LABELS["upos"])
    assert isinstance(model.tokenizer, TransformersTokenizer)
    assert not model.model.training
    assert not any(parameter.requires_grad for parameter in model.model.parameters())


def test_missing_parameters(tmp_path: Path) -> None:
    config_path = write_model_dir(tmp_path)
    (tmp_path / "params.pt").unlink()

    with pytest.raises(ModelIOError):
        Model.load(Config.from_file(config_path))


def test_missing_labels(tmp_path: Path) -> None:
    config_path = write_model_dir(tmp_path)
    (tmp_path / "sticker.labels").unlink()

    with pytest.raises(ModelIOError, match="label file"):
        Model.load(Config.from_file(config_path))


def test_unreadable_pretrain_config(tmp_path: Path) -> None:
    config_path = write_model_dir(tmp_path)
    (tmp_path / "bert_config.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        Model.load(Config.from_file(config_path))


def test_parameters_must_match_labels(tmp_path: Path) -> None:
    config_path = write_model_dir(tmp_path)
    labels = dict(LABELS, upos=LABELS["upos"] + ["ADJ", "ADV"])
    (tmp_path / "sticker.labels").write_text(yaml.safe_dump(labels), encoding="utf-8")

    with pytest.raises(ConfigError, match="do not match"):
        Model.load(Config.from_file(config_path))


def test_encoder_without_labels(tmp_path: Path) -> None:
    config_path = write_model_dir(tmp_path)
    labels = {name: values for name, values in LABELS.items() if name != "feats"}
    (tmp_path / "sticker.labels").write_text(yaml.safe_dump(labels), encoding="utf-8")

    with pytest.raises(ConfigError, match="feats"):
        Model.load(Config.from_file(config_path))


@pytest.mark.parametrize(
    "version, expected",
    [("2.6.0+cpu", (2, 6, 0)), ("2.10.1", (2, 10, 1)), ("2.7.0rc1", (2, 7, 0)), ("", ())],
)
def test_parse_version_tuple(version: str, expected) -> None:
    assert _parse_version_tuple(version) == expected


@pytest.mark.parametrize("filename", ["sticker.labels", "bert_config.json"])
def test_non_utf8_model_files(tmp_path: Path, filename: str) -> None:
    config_path = write_model_dir(tmp_path)
    (tmp_path / filename).write_bytes(b"\xff\xfe")

    with pytest.raises(ConfigError, match="not valid UTF-8"):
        Model.load(Config.from_file(config_path))


def test_sinusoidal_position_embeddings(tmp_path: Path) -> None:
    config_path = write_model_dir(tmp_path, position_embeddings="sinusoidal")
    config = Config.from_file(config_path)
    assert config.model.position_embeddings == "sinusoidal"

    model = Model.load(config)
    embeddings = model.model.encoder.embeddings.position_embeddings
    expected = sinusoidal_embeddings(embeddings.num_embeddings, embeddings.embedding_dim)
    assert torch.allclose(embeddings.weight, expected)

    annotated = Annotator.from_model(model).annotate_sentence(Sentence(["The", "dog"]))
    heads = [token.head for token in annotated]
    assert heads.count(0) == 1
    assert all(head is not None and 0 <= head <= 2 for head in heads)
