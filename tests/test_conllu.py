import io
from pathlib import Path

import pytest

from sticker2.conllu import read_sentence, read_sentences, sentences_to_conllu, write_sentences
from sticker2.errors import ConllUError
from sticker2.sentence import Sentence

ANNOTATED = (
    "# sent_id = 1\n"
    "1\tThe\tthe\tDET\tDT\tDefinite=Def|PronType=Art\t2\tdet\t_\t_\n"
    "2\tdog\tdog\tNOUN\tNN\tNumber=Sing\t3\tnsubj\t_\t_\n"
    "3\truns\trun\tVERB\tVBZ\t_\t0\troot\t_\tSpaceAfter=No\n"
    "\n"
)


def test_render_untagged_sentence() -> None:
    sentence = Sentence(["Hello", "world"])

    assert str(sentence) == (
        "1\tHello\t_\t_\t_\t_\t_\t_\t_\t_\n"
        "2\tworld\t_\t_\t_\t_\t_\t_\t_\t_\n"
        "\n"
    )


def test_read_annotated_sentence() -> None:
    sentence = read_sentence(ANNOTATED)

    assert [token.form for token in sentence] == ["The", "dog", "runs"]
    assert sentence[0].lemma == "the"
    assert sentence[0].features["PronType"] == "Art"
    assert sentence[1].head == 3
    assert sentence[1].head_rel == "nsubj"
    assert sentence[2].head == 0
    assert sentence[2].misc["SpaceAfter"] == "No"


def test_read_then_write_keeps_columns() -> None:
    sentence = read_sentence(ANNOTATED)

    assert sentence.to_conllu() == "".join(ANNOTATED.splitlines(keepends=True)[1:])


def test_multiword_tokens_and_empty_nodes_are_skipped() -> None:
    text = (
        "1-2\tdel\t_\t_\t_\t_\t_\t_\t_\t_\n"
        "1\tde\t_\tADP\t_\t_\t2\tcase\t_\t_\n"
        "2\tel\t_\tDET\t_\t_\t0\troot\t_\t_\n"
        "2.1\tx\t_\t_\t_\t_\t_\t_\t_\t_\n"
    )
    sentence = read_sentence(text)

    assert [token.form for token in sentence] == ["de", "el"]


def test_read_multiple_sentences(tmp_path: Path) -> None:
    path = tmp_path / "corpus.conllu"
    path.write_text(ANNOTATED + "1\tHi\t_\t_\t_\t_\t_\t_\t_\t_\n\n", encoding="utf-8")

    sentences = read_sentences(path)

    assert [len(sentence) for sentence in sentences] == [3, 1]
    assert len(read_sentences(io.StringIO(ANNOTATED))) == 1


def test_write_sentences() -> None:
    handle = io.StringIO()
    sentences = [Sentence(["a"]), Sentence(["b"])]

    write_sentences(sentences, handle)

    assert handle.getvalue() == sentences_to_conllu(sentences)
    assert handle.getvalue().count("\n\n") == 2


@pytest.mark.parametrize(
    "text",
    [
        "1\tdog\t_\n",
        "2\tdog\t_\t_\t_\t_\t_\t_\t_\t_\n",
        "x\tdog\t_\t_\t_\t_\t_\t_\t_\t_\n",
        "1\tdog\t_\t_\t_\t_\t5\tdep\t_\t_\n",
        "1\tdog\t_\t_\t_\t_\t1\tdep\t_\t_\n",
        "1\tdog\t_\t_\t_\tCase\t_\t_\t_\t_\n",
    ],
)
def test_malformed_input(text: str) -> None:
    with pytest.raises(ConllUError):
        read_sentence(text)


def test_read_sentence_requires_exactly_one() -> None:
    with pytest.raises(ConllUError):
        read_sentence(ANNOTATED + ANNOTATED)
    with pytest.raises(ValueError):
        read_sentence("")
