"""
Loading of a model and its companions (encoders, tokenizer) from a configuration.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import torch
from transformers import AutoConfig, BertConfig, PretrainedConfig

from .config import Config
from .encoders import Encoders, read_labels
from .errors import ConfigError, ModelIOError
from .model import TaggerModel
from .tokenization import Tokenize, TransformersTokenizer
from .utils import get_device

logger = logging.getLogger(__name__)

MIN_TORCH_VERSION = (2, 6, 0)
MIN_TORCH_VERSION_STR = "2.6.0"
TORCH_CVE_URL = "https://nvd.nist.gov/vuln/detail/CVE-2025-32434"


def _parse_version_tuple(version_str: str) -> Tuple[int, ...]:
    """Convert version strings like '2.6.0+cpu' into a tuple of integers."""
    if not version_str:
        return ()
    clean = version_str.split("+", 1)[0].split("-", 1)[0]
    parts = []
    for chunk in clean.split("."):
        digits = re.match(r"\d*", chunk).group()
        if not digits:
            break
        parts.append(int(digits))
        if len(digits) < len(chunk):
            # Pre-release suffix, e.g. '0rc1'
            break
    return tuple(parts)


def _ensure_secure_torch_version() -> None:
    """Parameter files are read with torch.load, which needs the CVE-2025-32434 fix."""
    version_str = getattr(torch, "__version__", "0")
    if _parse_version_tuple(version_str) < MIN_TORCH_VERSION:
        raise RuntimeError(
            f"sticker2 requires torch>={MIN_TORCH_VERSION_STR} to load model parameters, "
            f"installed version is {version_str!r}. See {TORCH_CVE_URL}"
        )


def load_encoders(config: Config) -> Encoders:
    try:
        labels = read_labels(config.labeler.labels)
    except OSError as exc:
        raise ModelIOError(f"Cannot open label file: {config.labeler.labels}: {exc}") from exc
    return Encoders.from_config(config.labeler, labels)


def load_tokenizer(config: Config) -> Tokenize:
    vocab = Path(config.input.vocab)
    if config.input.tokenizer == "pretrained":
        if not vocab.exists():
            raise ModelIOError(f"Cannot read tokenizer vocabulary: {vocab}")
    elif not vocab.is_file():
        raise ModelIOError(f"Cannot read tokenizer vocabulary: {vocab}")
    try:
        return TransformersTokenizer.from_config(config.input)
    except OSError as exc:
        raise ModelIOError(f"Cannot read tokenizer vocabulary: {exc}") from exc
    except ValueError as exc:
        raise ConfigError(f"Cannot construct tokenizer: {exc}") from exc


def load_pretrain_config(config: Config) -> PretrainedConfig:
    path = config.model.pretrain_config
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as exc:
        raise ModelIOError(f"Cannot load pretraining model configuration: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Cannot parse pretraining model configuration {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigError(f"Pretraining model configuration {path} is not valid UTF-8: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Pretraining model configuration {path} must be a JSON object")
    model_type = data.pop("model_type", None)
    try:
        if model_type is None:
            return BertConfig(**data)
        return AutoConfig.for_model(model_type, **data)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid pretraining model configuration {path}: {exc}") from exc


@dataclass
class Model:
    """Wrapper around the different parts of a model."""
    encoders: Encoders
    model: TaggerModel
    tokenizer: Tokenize

    @classmethod
    def load(cls, config: Config, device: Union[str, torch.device] = "cpu") -> "Model":
        """Load a model on the given device. The returned model is frozen."""
        _ensure_secure_torch_version()
        encoders = load_encoders(config)
        tokenizer = load_tokenizer(config)
        pretrain_config = load_pretrain_config(config)

        try:
            model = TaggerModel(pretrain_config, encoders, config.model.position_embeddings)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Cannot construct model: {exc}") from exc

        try:
            state_dict = torch.load(config.model.parameters, map_location="cpu", weights_only=True)
        except OSError as exc:
            raise ModelIOError(f"Cannot load model parameters: {exc}") from exc
        except Exception as exc:
            raise ModelIOError(f"Cannot deserialize model parameters from {config.model.parameters}: {exc}") from exc
        try:
            model.load_state_dict(state_dict)
        except RuntimeError as exc:
            raise ConfigError(f"Model parameters do not match the configuration: {exc}") from exc

        target = get_device(device)
        model.to(target)
        freeze(model)
        logger.debug("Loaded model parameters from %s", config.model.parameters)
        return cls(encoders=encoders, model=model, tokenizer=tokenizer)


def freeze(model: torch.nn.Module) -> torch.nn.Module:
    """Put ``model`` in inference mode and disable gradients for all parameters."""
    model.eval()
    model.requires_grad_(False)
    return model
