"""
Tagger configuration.

A configuration is a TOML file with three sections::

    [input]
    tokenizer = "bert"            # bert | xlm_roberta | pretrained
    vocab = "vocab.txt"

    [labeler]
    labels = "sticker.labels"
    encoders = [
      { name = "dep", kind = "dependency", encoding = "relative_pos", pos_layer = "upos", root_relation = "root" },
      { name = "lemma", kind = "lemma" },
      { name = "upos", kind = "sequence", layer = "upos" },
    ]

    [model]
    parameters = "epoch-99.pt"
    pretrain_config = "bert_config.json"
    position_embeddings = "model"  # model | sinusoidal

Relative paths are resolved against the directory of the configuration file.
The parsed configuration is immutable.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import ConfigError, ModelIOError

logger = logging.getLogger(__name__)

TOKENIZER_TYPES = ("bert", "xlm_roberta", "pretrained")
ENCODER_KINDS = ("sequence", "lemma", "dependency")
SEQUENCE_LAYERS = ("upos", "xpos", "features")
DEPENDENCY_ENCODINGS = ("relative_position", "relative_pos")
POSITION_EMBEDDINGS = ("model", "sinusoidal")


@dataclass(frozen=True)
class EncoderConfig:
    """One labeling task of the model."""
    name: str
    kind: str
    layer: Optional[str] = None  # sequence encoders only
    encoding: str = "relative_pos"  # dependency encoders only
    pos_layer: str = "upos"  # relative_pos only
    root_relation: str = "root"  # dependency encoders only


@dataclass(frozen=True)
class InputConfig:
    tokenizer: str
    vocab: str
    lowercase: bool = False


@dataclass(frozen=True)
class LabelerConfig:
    labels: str
    encoders: Tuple[EncoderConfig, ...]


@dataclass(frozen=True)
class ModelConfig:
    parameters: str
    pretrain_config: str
    position_embeddings: str = "model"


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name)
    if not isinstance(section, dict):
        raise ConfigError(f"missing configuration section: [{name}]")
    return section


def _required_str(section: Mapping[str, Any], section_name: str, key: str) -> str:
    value = section.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"[{section_name}] requires a string value for '{key}'")
    return value


def _bool(section: Mapping[str, Any], section_name: str, key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"[{section_name}] requires a boolean value for '{key}'")
    return value


def _choice(value: str, choices: Tuple[str, ...], what: str) -> str:
    if value not in choices:
        raise ConfigError(f"unknown {what} '{value}', expected one of: {', '.join(choices)}")
    return value


def _parse_encoder(entry: Any) -> EncoderConfig:
    if not isinstance(entry, dict):
        raise ConfigError(f"encoder definitions must be tables, got: {entry!r}")
    name = _required_str(entry, "labeler.encoders", "name")
    kind = _choice(_required_str(entry, "labeler.encoders", "kind"), ENCODER_KINDS, "encoder kind")
    unexpected = set(entry) - {"name", "kind", "layer", "encoding", "pos_layer", "root_relation"}
    if unexpected:
        raise ConfigError(f"encoder '{name}' has unexpected keys: {', '.join(sorted(unexpected))}")

    if kind == "sequence":
        layer = _choice(_required_str(entry, "labeler.encoders", "layer"), SEQUENCE_LAYERS, "sequence layer")
        return EncoderConfig(name=name, kind=kind, layer=layer)
    if kind == "dependency":
        encoding = _choice(entry.get("encoding", "relative_pos"), DEPENDENCY_ENCODINGS, "dependency encoding")
        pos_layer = _choice(entry.get("pos_layer", "upos"), ("upos", "xpos"), "POS layer")
        root_relation = entry.get("root_relation", "root")
        if not isinstance(root_relation, str) or not root_relation:
            raise ConfigError(f"encoder '{name}' has an invalid root_relation")
        return EncoderConfig(
            name=name, kind=kind, encoding=encoding, pos_layer=pos_layer, root_relation=root_relation
        )
    return EncoderConfig(name=name, kind=kind)


def _resolve(path: str, base_dir: Path) -> str:
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return str(candidate)
    return str(base_dir / candidate)


@dataclass(frozen=True)
class Config:
    """Tagger configuration."""
    input: InputConfig
    labeler: LabelerConfig
    model: ModelConfig

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        input_section = _section(data, "input")
        labeler_section = _section(data, "labeler")
        model_section = _section(data, "model")

        tokenizer = _choice(
            _required_str(input_section, "input", "tokenizer"), TOKENIZER_TYPES, "tokenizer type"
        )
        encoder_entries = labeler_section.get("encoders")
        if not isinstance(encoder_entries, list) or not encoder_entries:
            raise ConfigError("[labeler] requires a non-empty 'encoders' list")
        encoders = tuple(_parse_encoder(entry) for entry in encoder_entries)
        names = [encoder.name for encoder in encoders]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigError(f"duplicate encoder names: {', '.join(duplicates)}")

        return cls(
            input=InputConfig(
                tokenizer=tokenizer,
                vocab=_required_str(input_section, "input", "vocab"),
                lowercase=_bool(input_section, "input", "lowercase", False),
            ),
            labeler=LabelerConfig(
                labels=_required_str(labeler_section, "labeler", "labels"),
                encoders=encoders,
            ),
            model=ModelConfig(
                parameters=_required_str(model_section, "model", "parameters"),
                pretrain_config=_required_str(model_section, "model", "pretrain_config"),
                position_embeddings=_choice(
                    model_section.get("position_embeddings", "model"),
                    POSITION_EMBEDDINGS,
                    "position embeddings",
                ),
            ),
        )

    @classmethod
    def from_toml(cls, text: str) -> "Config":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"cannot parse configuration: {exc}") from exc
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Config":
        """Read a configuration file and resolve its paths relative to it."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ModelIOError(f"cannot read sticker configuration: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise ConfigError(f"configuration {path} is not valid UTF-8: {exc}") from exc
        config = cls.from_toml(text).relativize_paths(path)
        logger.debug("Loaded configuration from %s", path)
        return config

    def relativize_paths(self, config_path: Union[str, Path]) -> "Config":
        """Copy of this configuration with paths relative to ``config_path``'s directory."""
        try:
            base_dir = Path(config_path).expanduser().resolve().parent
        except (OSError, RuntimeError) as exc:
            raise ModelIOError(f"cannot relativize paths: {exc}") from exc
        return replace(
            self,
            input=replace(self.input, vocab=_resolve(self.input.vocab, base_dir)),
            labeler=replace(self.labeler, labels=_resolve(self.labeler.labels, base_dir)),
            model=replace(
                self.model,
                parameters=_resolve(self.model.parameters, base_dir),
                pretrain_config=_resolve(self.model.pretrain_config, base_dir),
            ),
        )

    def encoder(self, name: str) -> EncoderConfig:
        for encoder in self.labeler.encoders:
            if encoder.name == name:
                return encoder
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input": {
                "tokenizer": self.input.tokenizer,
                "vocab": self.input.vocab,
                "lowercase": self.input.lowercase,
            },
            "labeler": {
                "labels": self.labeler.labels,
                "encoders": [
                    {key: value for key, value in vars(encoder).items() if value is not None}
                    for encoder in self.labeler.encoders
                ],
            },
            "model": {
                "parameters": self.model.parameters,
                "pretrain_config": self.model.pretrain_config,
                "position_embeddings": self.model.position_embeddings,
            },
        }
