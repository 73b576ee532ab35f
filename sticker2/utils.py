"""
Utility functions for sticker2, including device detection.
"""

import logging
from typing import Union

import torch

logger = logging.getLogger(__name__)


def get_device(requested: Union[str, torch.device, None] = "cpu") -> torch.device:
    """Resolve a device selector.

    ``"auto"`` picks the best available device (CUDA > MPS > CPU). An
    accelerator that is not available falls back to the CPU.
    """
    if isinstance(requested, torch.device):
        return requested
    req = (requested or "cpu").lower()
    has_mps = hasattr(torch.backends, "mps") and torch.backends.mps.is_available()
    if req == "auto":
        if torch.cuda.is_available():
            device = torch.device("cuda")
        elif has_mps:
            device = torch.device("mps")
        else:
            device = torch.device("cpu")
    elif req.startswith("cuda") and torch.cuda.is_available():
        device = torch.device(req)
    elif req in {"mps", "apple"} and has_mps:
        device = torch.device("mps")
    else:
        if req != "cpu":
            logger.warning("Device '%s' is not available, using the CPU", requested)
        device = torch.device("cpu")
    logger.debug("Using device: %s", device)
    return device
