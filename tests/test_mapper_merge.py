"""
merge_match_status unions three evidence sources (registry, embedded matched
details, comma-separated ID string) without touching its inputs.
"""

import copy

import pytest

from RDX.disease import DiseaseCandidate
from RDX.mapper import PredictionMapper, merge_match_status
from RDX.phenotype import PhenotypeMatchDetail
from RDX.registry import default_registry

from conftest import prediction_entry

FRESH = {
    "disease_id": "ORPHA:558",
    "disease_name": "Marfan syndrome",
    "symptoms": [
        {"hpo_id": "HP:0001166", "hpo_name": "Arachnodactyly", "matched": False},
        {"hpo_id": "HP:0000545", "hpo_name": "Myopia", "matched": None},
        {"hpo_id": "0001519", "hpo_name": "Disproportionate tall stature", "matched": False},
    ],
    "total_symptoms": 3,
    "matched_symptoms": 3,  # not trusted
}


def _candidate(details=(), matching_ids=""):
    return DiseaseCandidate(
        id="disease-1",
        name="Marfan syndrome",
        confidence=80.0,
        match_percentage="0%",
        matched_nodes="0/0",
        matching_hpo_ids=matching_ids,
        rank=1,
        weight=1.0,
        hpo_details=tuple(details),
    )


def test_registry_evidence_alone_marks_one_symptom(registry):
    registry.set_matched("tok", "Marfan syndrome", ["hp0001166"])
    merged = merge_match_status(FRESH, "tok", "Marfan syndrome", None, registry)
    assert [s.matched for s in merged.symptoms] == [True, False, False]
    assert merged.matched_symptoms == 1
    assert merged.total_symptoms == 3
    assert merged.disease_id == "ORPHA:558"


def test_all_three_sources_are_unioned(registry):
    registry.set_matched("tok", "marfan syndrome", ["HP:0001166"])
    candidate = _candidate(
        details=[PhenotypeMatchDetail("0000545", "Myopia", matched=True)],
        matching_ids=" HP:0001519 , ,",
    )
    merged = merge_match_status(FRESH, "tok", "Marfan syndrome", candidate, registry)
    assert merged.matched_symptoms == 3
    assert all(s.matched for s in merged.symptoms)


def test_original_flag_is_kept_without_other_evidence():
    fresh = {"symptoms": [{"hpo_id": "HP:1", "hpo_name": "a", "matched": True}, {"hpo_id": "HP:2", "hpo_name": "b"}]}
    merged = merge_match_status(fresh, "tok", "X")
    assert [s.matched for s in merged.symptoms] == [True, False]
    assert merged.matched_symptoms == 1
    assert merged.disease_name == "X"


def test_unmatched_embedded_details_are_not_evidence(registry):
    candidate = _candidate(details=[PhenotypeMatchDetail("HP:0001166", "Arachnodactyly", matched=False)])
    merged = merge_match_status(FRESH, "tok", "Marfan syndrome", candidate, registry)
    assert merged.matched_symptoms == 0


def test_registry_of_another_session_is_ignored(registry):
    registry.set_matched("other", "Marfan syndrome", ["HP:0001166"])
    merged = merge_match_status(FRESH, "tok", "Marfan syndrome", None, registry)
    assert merged.matched_symptoms == 0


def test_connected_hpos_alias_is_read():
    fresh = {"connected_hpos": [{"hpo_id": "HP:0001166", "hpo_name": "Arachnodactyly"}]}
    merged = merge_match_status(fresh, "tok", "Marfan syndrome", _candidate(matching_ids="HP:0001166"))
    assert merged.symptoms[0].matched is True
    assert merged.total_symptoms == 1


def test_inputs_are_not_mutated(registry):
    fresh = copy.deepcopy(FRESH)
    registry.set_matched("tok", "Marfan syndrome", ["HP:0001166"])
    merge_match_status(fresh, "tok", "Marfan syndrome", None, registry)
    assert fresh == FRESH


def test_empty_payload_is_not_an_error(registry):
    merged = merge_match_status({}, "tok", "Marfan syndrome", None, registry)
    assert merged.symptoms == ()
    assert merged.matched_symptoms == 0
    assert merged.total_symptoms == 0


@pytest.fixture
def shared_token():
    token = "shared-registry-tok"
    yield token
    default_registry.forget(token)


def test_default_mapper_and_merger_share_the_process_registry(shared_token):
    payload = {"predictions": [prediction_entry("Marfan syndrome", [("HP:0001166", True), ("HP:0000545", False)])]}
    PredictionMapper().map_response(payload, shared_token)

    merged = merge_match_status(FRESH, shared_token, "Marfan syndrome")

    assert merged.matched_symptoms == 1
    assert [s.matched for s in merged.symptoms] == [True, False, False]


@pytest.mark.parametrize(
    "fresh",
    [
        {"connected_hpos": 5},
        {"connected_hpos": "HP:0001166", "symptoms": None},
        {"symptoms": {"hpo_id": "HP:0001166"}},
        {"connected_hpos": 5, "symptoms": 7},
    ],
)
def test_non_list_phenotype_fields_are_ignored(registry, fresh):
    merged = merge_match_status(fresh, "tok", "X", None, registry)
    assert merged.symptoms == ()
    assert merged.total_symptoms == 0


def test_symptoms_used_when_connected_hpos_is_not_a_list(registry):
    fresh = {"connected_hpos": 5, "symptoms": [{"hpo_id": "HP:0001166", "hpo_name": "Arachnodactyly", "matched": True}]}
    merged = merge_match_status(fresh, "tok", "X", None, registry)
    assert merged.matched_symptoms == 1


def test_reported_total_never_below_listed_phenotypes(registry):
    fresh = {
        "total_symptoms": 1,
        "symptoms": [
            {"hpo_id": "HP:0001166", "hpo_name": "Arachnodactyly", "matched": True},
            {"hpo_id": "HP:0000545", "hpo_name": "Myopia", "matched": True},
        ],
    }
    merged = merge_match_status(fresh, "tok", "X", None, registry)
    assert merged.matched_symptoms == 2
    assert merged.total_symptoms == 2


def test_larger_reported_total_is_kept(registry):
    fresh = {"total_symptoms": 12, "symptoms": [{"hpo_id": "HP:0001166", "hpo_name": "Arachnodactyly"}]}
    assert merge_match_status(fresh, "tok", "X", None, registry).total_symptoms == 12
