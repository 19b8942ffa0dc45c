import pytest
from stairval.notepad import create_notepad

from RDX.catalog import PhenotypeCatalog
from RDX.phenotype import SymptomSelection
from RDX.validation import validate_age, validate_prediction_input

THREE = [SymptomSelection(f"HP:000000{i}", f"Term {i}") for i in range(1, 4)]


def test_valid_input_passes():
    notepad = create_notepad("input")
    assert validate_prediction_input(25, 0, THREE, notepad)
    assert not notepad.has_warnings(include_subsections=True)


@pytest.mark.parametrize("years, months", [(-1, 0), (121, 0), (0, 0), (120, 1), (5, 12), (5, -1)])
def test_age_out_of_range_is_an_error(years, months):
    notepad = create_notepad("age")
    validate_age(years, months, notepad)
    assert notepad.has_errors()


@pytest.mark.parametrize("years, months", [(0, 1), (120, 0), (25, 11)])
def test_age_bounds_are_inclusive(years, months):
    notepad = create_notepad("age")
    validate_age(years, months, notepad)
    assert not notepad.has_errors()


def test_fewer_than_three_symptoms_blocks_submission():
    notepad = create_notepad("input")
    assert not validate_prediction_input(25, 0, THREE[:2], notepad)
    assert notepad.has_errors(include_subsections=True)


def test_placeholders_warn_and_do_not_count():
    notepad = create_notepad("input")
    selections = THREE[:2] + [SymptomSelection.placeholder("funny feeling")]
    assert not validate_prediction_input(25, 0, selections, notepad)
    assert notepad.has_warnings(include_subsections=True)


def test_labels_count_when_the_catalog_knows_them():
    catalog = PhenotypeCatalog.from_records([{"hpoid": "HP:0001250", "name": "Seizure"}])
    notepad = create_notepad("input")
    assert validate_prediction_input(25, 0, THREE[:2] + ["seizure"], notepad, catalog)

    notepad = create_notepad("input")
    assert not validate_prediction_input(25, 0, THREE[:2] + ["unknown"], notepad, catalog)
    assert notepad.has_warnings(include_subsections=True)


def test_blank_ids_do_not_count_as_resolved():
    notepad = create_notepad("input")
    assert not validate_prediction_input(25, 0, THREE[:2] + [SymptomSelection(" ", "blank")], notepad)
    assert notepad.has_errors(include_subsections=True)
