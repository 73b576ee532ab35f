"""
Transformer tagging model: a pretrained encoder with one classification
head per label encoder.
"""

from __future__ import annotations

import math
from typing import Dict

import torch
from torch import nn
from transformers import AutoModel, PretrainedConfig

from .encoders import Encoders
from .errors import ConfigError


def sinusoidal_embeddings(n_positions: int, dims: int) -> torch.Tensor:
    """Fixed sinusoidal position table of shape ``[n_positions, dims]``."""
    positions = torch.arange(n_positions, dtype=torch.float).unsqueeze(1)
    inv_freq = torch.exp(torch.arange(0, dims, 2, dtype=torch.float) * (-math.log(10000.0) / dims))
    table = torch.zeros(n_positions, dims)
    table[:, 0::2] = torch.sin(positions * inv_freq)
    table[:, 1::2] = torch.cos(positions * inv_freq)[:, : dims // 2]
    return table


class TaggerModel(nn.Module):
    """Multi-task sequence labeler over word pieces."""

    def __init__(
        self,
        pretrain_config: PretrainedConfig,
        encoders: Encoders,
        position_embeddings: str = "model",
    ):
        super().__init__()
        self.encoder = AutoModel.from_config(pretrain_config)
        hidden_size = pretrain_config.hidden_size
        mlp_hidden = hidden_size // 2

        self.heads = nn.ModuleDict()
        for named in encoders:
            if "." in named.name:
                raise ConfigError(f"encoder names cannot contain '.': {named.name}")
            self.heads[named.name] = nn.Sequential(
                nn.Linear(hidden_size, mlp_hidden),
                nn.GELU(),
                nn.Dropout(0.1),
                nn.Linear(mlp_hidden, len(named.vocabulary)),
            )

        if position_embeddings == "sinusoidal":
            self._use_sinusoidal_positions()

    def _use_sinusoidal_positions(self) -> None:
        embeddings = getattr(getattr(self.encoder, "embeddings", None), "position_embeddings", None)
        if not isinstance(embeddings, nn.Embedding):
            raise ConfigError("sinusoidal position embeddings require a model with learned position embeddings")
        with torch.no_grad():
            embeddings.weight.copy_(sinusoidal_embeddings(embeddings.num_embeddings, embeddings.embedding_dim))
        embeddings.weight.requires_grad_(False)

    @property
    def max_length(self) -> int:
        return int(getattr(self.encoder.config, "max_position_embeddings", 512))

    def forward(self, input_ids: torch.Tensor, attention_mask: torch.Tensor) -> Dict[str, torch.Tensor]:
        """Logits ``[batch, pieces, n_labels]`` per encoder name."""
        hidden = self.encoder(input_ids=input_ids, attention_mask=attention_mask).last_hidden_state
        return {name: head(hidden) for name, head in self.heads.items()}
