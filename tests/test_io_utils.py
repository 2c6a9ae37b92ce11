import json
from pathlib import Path

import pytest

from tagtrain.errors import SourceReadError
from tagtrain.io_utils import (
    NameSampleDataStream,
    format_name_sample,
    load_samples,
    parse_name_sample,
    save_samples,
)
from tagtrain.types import NameSample, Span

CORPUS = """\
<START:person> John <END> lives in <START:location> Paris <END> .
He likes <START> Le Monde <END> .

<START:person> Mary <END> arrived .
"""


def test_parse_name_sample_with_typed_and_untyped_names() -> None:
    sample = parse_name_sample("He reads <START> Le Monde <END> in <START:location> Paris <END>")
    assert sample.tokens == ("He", "reads", "Le", "Monde", "in", "Paris")
    assert sample.names == (Span(2, 4, None), Span(5, 6, "location"))
    assert sample.clear_adaptive_data is False


@pytest.mark.parametrize(
    "line",
    [
        "<START:person> John <START:person> Smith <END>",
        "John <END>",
        "<START:person> John",
        "a <START:person> <END> b",
        "<START:> John <END>",
        "<START:person John <END>",
        "<START:person> John <END:person>",
    ],
)
def test_parse_name_sample_rejects_malformed_markup(line: str) -> None:
    with pytest.raises(ValueError):
        parse_name_sample(line)


def test_format_name_sample_renders_markup() -> None:
    sample = NameSample(("John", "Smith", "Paris"), (Span(0, 2, "person"), Span(2, 3)))
    assert format_name_sample(sample) == "<START:person> John Smith <END> <START> Paris <END>"


def test_data_stream_flags_document_boundaries(tmp_path: Path) -> None:
    path = tmp_path / "train.txt"
    path.write_text(CORPUS, encoding="utf-8")

    with NameSampleDataStream(path) as stream:
        samples = list(stream)

    assert len(samples) == 3
    assert [s.clear_adaptive_data for s in samples] == [False, False, True]
    assert samples[0].names == (Span(0, 1, "person"), Span(3, 4, "location"))


def test_data_stream_reset_rewinds(tmp_path: Path) -> None:
    path = tmp_path / "train.txt"
    path.write_text(CORPUS, encoding="utf-8")
    stream = NameSampleDataStream(path)

    it = iter(stream)
    first = next(it)
    stream.reset()
    again = next(iter(stream))

    assert first == again
    stream.close()


def test_data_stream_reports_file_and_line_of_bad_markup(tmp_path: Path) -> None:
    path = tmp_path / "bad.txt"
    path.write_text("fine line\n\nJohn <END>\n", encoding="utf-8")

    with pytest.raises(SourceReadError, match=r"bad\.txt:3"):
        with NameSampleDataStream(path) as stream:
            list(stream)


def test_data_stream_missing_file(tmp_path: Path) -> None:
    with pytest.raises(SourceReadError):
        list(NameSampleDataStream(tmp_path / "missing.txt"))


def test_save_and_load_samples(tmp_path: Path) -> None:
    path = tmp_path / "samples.json"
    samples = [
        NameSample(("John", "runs"), (Span(0, 1, "person"),), (("pd=x",), ("pd=y",)), True),
        NameSample(("ok",)),
    ]

    save_samples(str(path), samples)

    assert load_samples(str(path)) == samples


def test_load_samples_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_samples(str(tmp_path / "missing.json"))

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_samples(str(broken))

    wrong_shape = tmp_path / "wrong.json"
    wrong_shape.write_text(json.dumps({"samples": [{"names": []}]}), encoding="utf-8")
    with pytest.raises(TypeError):
        load_samples(str(wrong_shape))


def test_load_samples_rejects_string_context_rows(tmp_path: Path) -> None:
    path = tmp_path / "rows.json"
    sample = {"tokens": ["a"], "additional_context": ["pd=x"]}
    path.write_text(json.dumps({"samples": [sample]}), encoding="utf-8")

    with pytest.raises(TypeError, match="additional_context"):
        load_samples(str(path))


def test_data_stream_reports_undecodable_bytes(tmp_path: Path) -> None:
    path = tmp_path / "latin.txt"
    path.write_bytes(b"John \xff\xfe lives\n")
    stream = NameSampleDataStream(path)

    with pytest.raises(SourceReadError, match=r"latin\.txt:1"):
        list(stream)
    assert stream._handle is None
