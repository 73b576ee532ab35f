"""
sticker2: transformer-based sequence tagging and dependency parsing.

Sentences are dependency graphs over their tokens. An ``Annotator`` adds
lemmas, part-of-speech tags, morphological features and dependency relations
to sentences, and can be shared between threads.
"""

__version__ = "0.5.0"

from sticker2.annotator import Annotator
from sticker2.config import Config
from sticker2.conllu import read_sentences, sentences_to_conllu, write_sentences
from sticker2.errors import (
    ConfigError,
    ConllUError,
    IndexOutOfRange,
    InternalInvariantViolation,
    InvalidOperation,
    ModelIOError,
    StickerError,
    TaggingFailed,
    UnknownKey,
)
from sticker2.loading import Model
from sticker2.sentence import FeaturesView, MiscView, Sentence, SentenceIterator, Token
from sticker2.tagger import Tagger

__all__ = [
    'Annotator',
    'Config',
    'ConfigError',
    'ConllUError',
    'FeaturesView',
    'IndexOutOfRange',
    'InternalInvariantViolation',
    'InvalidOperation',
    'MiscView',
    'Model',
    'ModelIOError',
    'Sentence',
    'SentenceIterator',
    'StickerError',
    'TaggingFailed',
    'Tagger',
    'Token',
    'UnknownKey',
    'read_sentences',
    'sentences_to_conllu',
    'write_sentences',
    '__version__',
]
