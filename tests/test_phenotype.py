import pytest
from RDX.phenotype import (
    ConnectedTerm,
    PhenotypeMatchDetail,
    SymptomSelection,
    is_canonical_hpo_id,
    is_placeholder,
    normalize_hpo_id,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0001250", "HP:0001250"),
        ("hp0001250", "HP:0001250"),
        ("HP:0001250", "HP:0001250"),
        ("hp:0001250", "HP:0001250"),
        ("  HP:0001166 ", "HP:0001166"),
    ],
)
def test_normalize_hpo_id(raw, expected):
    assert normalize_hpo_id(raw) == expected


@pytest.mark.parametrize("raw", ["0001250", "hp0001250", "HP:0001250", " hp:0000118", "HP0000001"])
def test_normalize_is_idempotent(raw):
    once = normalize_hpo_id(raw)
    assert normalize_hpo_id(once) == once
    assert once.count("HP:") == 1


@pytest.mark.parametrize("raw", ["", None])
def test_normalize_empty_is_returned_unchanged(raw):
    assert normalize_hpo_id(raw) == raw


def test_canonical_check():
    assert is_canonical_hpo_id("HP:0001250")
    assert not is_canonical_hpo_id("0001250")
    assert not is_canonical_hpo_id("")


def test_placeholder_selection_is_unresolved():
    s = SymptomSelection.placeholder("  tired all the time ")
    assert is_placeholder(s.id)
    assert s.name == "tired all the time"
    assert not s.is_resolved
    assert SymptomSelection("HP:0012378", "Fatigue").is_resolved
    assert not SymptomSelection("  ", "blank").is_resolved


def test_selection_from_dict_accepts_catalog_field_names():
    assert SymptomSelection.from_dict({"hpoid": "HP:0001250", "name": "Seizure"}) == SymptomSelection(
        "HP:0001250", "Seizure"
    )
    assert SymptomSelection.from_dict({"id": "HP:1", "name": "x"}).id == "HP:1"


def test_match_detail_reads_connected_nodes_and_legacy_connected_hpos():
    detail = PhenotypeMatchDetail.from_dict(
        {
            "hpo_id": "HP:0001250",
            "hpo_name": "Seizure",
            "matched": True,
            "connected_nodes": [{"hpo_id": "HP:0012469", "hpo_name": "Infantile spasms", "relation": "child", "score": 0.8}],
        }
    )
    assert detail.matched is True
    assert detail.connected_terms == (ConnectedTerm("HP:0012469", "Infantile spasms", "child", 0.8),)

    legacy = PhenotypeMatchDetail.from_dict(
        {"hpo_id": "0001250", "hpo_name": "Seizure", "connected_hpos": [{"hpo_id": "HP:1", "hpo_name": "x"}]}
    )
    assert legacy.matched is False
    assert legacy.normalized_id == "HP:0001250"
    assert legacy.connected_terms[0].relation == "related"
    assert legacy.connected_terms[0].score is None
