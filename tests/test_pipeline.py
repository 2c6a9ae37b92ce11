from pathlib import Path

import pytest

from tagtrain.config import Config
from tagtrain.errors import InvalidTrainingConfigurationError, SourceReadError
from tagtrain.io_utils import NameSampleDataStream, parse_name_sample
from tagtrain.model_builder import EventModel
from tagtrain.pipeline import train_name_finder

CORPUS = """\
<START:person> John <END> lives in <START:location> Paris <END> .
<START:person> Mary <END> lives in <START:location> Berlin <END> .
<START:person> John <END> met <START:person> Mary <END> .
"""


def test_train_name_finder_from_markup_file(tmp_path: Path) -> None:
    path = tmp_path / "train.txt"
    path.write_text(CORPUS, encoding="utf-8")
    source = NameSampleDataStream(path)

    model = train_name_finder(source, Config(training={"Cutoff": 0}))

    assert isinstance(model, EventModel)
    assert set(model.outcomes) == {"person-start", "location-start", "other"}
    assert source._handle is None


def test_train_name_finder_validates_before_reading(tmp_path: Path) -> None:
    source = NameSampleDataStream(tmp_path / "missing.txt")
    with pytest.raises(InvalidTrainingConfigurationError):
        train_name_finder(source, Config(training={"Cutoff": -1}))


def test_train_name_finder_surfaces_source_errors(tmp_path: Path) -> None:
    path = tmp_path / "bad.txt"
    path.write_text("<START:person> John <END> .\n<START> broken\n", encoding="utf-8")
    source = NameSampleDataStream(path)

    with pytest.raises(SourceReadError):
        train_name_finder(source, Config(training={"Cutoff": 0}))
    assert source._handle is None


def test_train_name_finder_applies_override_type() -> None:
    samples = [parse_name_sample("<START> Acme <END> hired <START> Bob <END>")]
    model = train_name_finder(samples, Config(override_type="entity", training={"Cutoff": 0}))

    assert "entity-start" in model.outcomes
