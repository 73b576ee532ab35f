import pytest
import torch

from conftest import LABELS
from sticker2.config import Config
from sticker2.graph import SentenceGraph
from sticker2.loading import Model
from sticker2.tagger import Tagger


@pytest.fixture(scope="module")
def loaded(model_config: Config) -> Model:
    return Model.load(model_config)


@pytest.fixture(scope="module")
def tagger(loaded: Model) -> Tagger:
    return Tagger("cpu", loaded.model, loaded.encoders)


def _tag(tagger: Tagger, loaded: Model, forms):
    item = loaded.tokenizer.tokenize(SentenceGraph.from_forms(forms))
    tagger.tag_sentences([item])
    return item.sentence


def test_tagger_freezes_model(tagger: Tagger) -> None:
    model = tagger._model

    assert not model.training
    assert not any(parameter.requires_grad for parameter in model.parameters())
    assert tagger.device == torch.device("cpu")


def test_scores(tagger: Tagger, loaded: Model) -> None:
    item = loaded.tokenizer.tokenize(SentenceGraph.from_forms(["The", "dog", "runs"]))

    scores = tagger.scores([item])

    assert set(scores) == set(LABELS)
    for name, probs in scores.items():
        assert probs.shape == (1, len(item.input_ids), len(LABELS[name]))
        assert torch.allclose(probs.sum(dim=-1), torch.ones(1, len(item.input_ids)), atol=1e-5)


def test_tagging_annotates_every_token(tagger: Tagger, loaded: Model) -> None:
    graph = _tag(tagger, loaded, ["The", "dog", "runs", "."])

    with graph.read():
        for token in graph.tokens():
            assert token.upos in LABELS["upos"]
            assert token.xpos in LABELS["xpos"]
            assert token.lemma is not None
        heads = [graph.head(node_idx) for node_idx in range(1, graph.node_count)]

    assert all(triple is not None for triple in heads)
    assert [triple.head for triple in heads].count(0) == 1
    for dependent, triple in enumerate(heads, start=1):
        seen = {dependent}
        node = triple.head
        while node != 0:
            assert node not in seen
            seen.add(node)
            node = heads[node - 1].head


def test_tagging_is_deterministic(tagger: Tagger, loaded: Model) -> None:
    from sticker2.conllu import sentence_to_conllu

    first = sentence_to_conllu(_tag(tagger, loaded, ["The", "dog", "runs"]))
    second = sentence_to_conllu(_tag(tagger, loaded, ["The", "dog", "runs"]))

    assert first == second


def test_empty_sentence_in_batch(tagger: Tagger, loaded: Model) -> None:
    items = [
        loaded.tokenizer.tokenize(SentenceGraph.from_forms([])),
        loaded.tokenizer.tokenize(SentenceGraph.from_forms(["dog"])),
    ]

    tagger.tag_sentences(items)

    assert len(items[0].sentence) == 0
    assert items[1].sentence.head(1).head == 0


def test_empty_batch_is_rejected(tagger: Tagger) -> None:
    with pytest.raises(ValueError):
        tagger.tag_sentences([])


def test_failed_batch_leaves_sentences_unchanged(tagger: Tagger, loaded: Model) -> None:
    short = loaded.tokenizer.tokenize(SentenceGraph.from_forms(["dog"]))
    too_long = loaded.tokenizer.tokenize(SentenceGraph.from_forms(["dog"] * 100))
    originals = [short.sentence, too_long.sentence]

    with pytest.raises(ValueError, match="at most"):
        tagger.tag_sentences([short, too_long])

    assert [short.sentence, too_long.sentence] == originals
    assert short.sentence.token(1).upos is None
    assert short.sentence.head(1) is None
