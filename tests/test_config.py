from pathlib import Path

import pytest

from sticker2.config import Config
from sticker2.errors import ConfigError, ModelIOError

MINIMAL = """
[input]
tokenizer = "bert"
vocab = "vocab.txt"

[labeler]
labels = "sticker.labels"
encoders = [
  { name = "upos", kind = "sequence", layer = "upos" },
  { name = "dep", kind = "dependency", encoding = "relative_position" },
]

[model]
parameters = "params.pt"
pretrain_config = "/models/bert_config.json"
"""


def test_from_file_relativizes_paths(tmp_path: Path) -> None:
    config_path = tmp_path / "sticker.conf"
    config_path.write_text(MINIMAL, encoding="utf-8")

    config = Config.from_file(config_path)

    base = tmp_path.resolve()
    assert config.input.vocab == str(base / "vocab.txt")
    assert config.labeler.labels == str(base / "sticker.labels")
    assert config.model.parameters == str(base / "params.pt")
    assert config.model.pretrain_config == "/models/bert_config.json"


def test_defaults_and_encoders() -> None:
    config = Config.from_toml(MINIMAL)

    assert config.input.lowercase is False
    assert config.model.position_embeddings == "model"
    assert [encoder.name for encoder in config.labeler.encoders] == ["upos", "dep"]
    assert config.encoder("upos").layer == "upos"
    assert config.encoder("dep").encoding == "relative_position"
    assert config.encoder("dep").root_relation == "root"
    with pytest.raises(KeyError):
        config.encoder("lemma")


def test_config_is_immutable() -> None:
    config = Config.from_toml(MINIMAL)

    with pytest.raises(AttributeError):
        config.model.parameters = "other.pt"


def test_round_trip_through_dict() -> None:
    config = Config.from_toml(MINIMAL)

    assert Config.from_dict(config.to_dict()) == config


def test_missing_file_raises_model_io_error(tmp_path: Path) -> None:
    with pytest.raises(ModelIOError):
        Config.from_file(tmp_path / "missing.conf")
    with pytest.raises(OSError):
        Config.from_file(tmp_path / "missing.conf")


def test_invalid_toml_raises_config_error() -> None:
    with pytest.raises(ConfigError, match="cannot parse configuration"):
        Config.from_toml("[input\n")


@pytest.mark.parametrize(
    "old, new",
    [
        ('tokenizer = "bert"', 'tokenizer = "gpt"'),
        ('kind = "sequence"', 'kind = "tree"'),
        ('layer = "upos"', 'layer = "deprel"'),
        ('encoding = "relative_position"', 'encoding = "absolute"'),
        ('{ name = "dep"', '{ name = "upos"'),
        ('parameters = "params.pt"\n', ""),
        ('layer = "upos" }', 'layer = "upos", extra = 1 }'),
    ],
)
def test_invalid_values_raise_config_error(old: str, new: str) -> None:
    text = MINIMAL.replace(old, new)
    assert text != MINIMAL

    with pytest.raises(ConfigError):
        Config.from_toml(text)


def test_missing_section() -> None:
    with pytest.raises(ValueError, match=r"\[model\]"):
        Config.from_dict({"input": {}, "labeler": {}})


def test_non_utf8_file_raises_config_error(tmp_path: Path) -> None:
    config_path = tmp_path / "sticker.conf"
    config_path.write_bytes(b"\xff\xfe" + MINIMAL.encode("utf-8"))

    with pytest.raises(ConfigError, match="not valid UTF-8"):
        Config.from_file(config_path)
