"""
Exception hierarchy for sticker2.

Every exception also derives from the matching built-in exception, so callers
can keep catching ``KeyError``, ``IndexError``, ``OSError`` and friends.
"""

from __future__ import annotations


class StickerError(Exception):
    """Base class for all sticker2 errors."""


class ModelIOError(StickerError, OSError):
    """A model, label, vocabulary or configuration file could not be read."""


class ConfigError(StickerError, ValueError):
    """The configuration is malformed, incomplete or inconsistent."""


class ConllUError(StickerError, ValueError):
    """Malformed CoNLL-U input."""


class TaggingFailed(StickerError, RuntimeError):
    """Scoring a batch of sentences failed; no sentence of the batch is annotated."""


class IndexOutOfRange(StickerError, IndexError):
    """Token index outside of ``[0, len(sentence))``."""


class UnknownKey(StickerError, KeyError):
    """Feature or misc key that is not present on the token."""


class InvalidOperation(StickerError, KeyError):
    """Operation that is not defined for the node, e.g. features of the root."""


class InternalInvariantViolation(StickerError, RuntimeError):
    """An internal consistency check failed. This indicates a bug."""
