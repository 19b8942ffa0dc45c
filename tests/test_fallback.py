"""
Prediction submission end to end, with the service mocked out.
"""

import pytest
import requests

from unittest.mock import patch

from RDX.client import RDXApiError, RDXClient
from RDX.fallback import (
    MOCK_CANDIDATES,
    NoPhenotypesError,
    predict_with_fallback,
    submit_prediction,
)
from RDX.mapper import PredictionMapper
from RDX.phenotype import SymptomSelection

from conftest import make_response, prediction_entry

SELECTIONS = [
    SymptomSelection("HP:0001250", "Seizure"),
    SymptomSelection("HP:0004322", "Short stature"),
    SymptomSelection("hp0001263", "Global developmental delay"),
]


def _payload(n):
    return {
        "predictions": [
            prediction_entry(
                f"Disease {i}",
                [("HP:0001250", True), ("HP:0004322", i % 2 == 0), ("HP:0000001", False)],
                match_percentage=f"{90 - i}%",
            )
            for i in range(n)
        ]
    }


def test_submission_maps_at_most_twenty_consistent_candidates(settings, registry):
    with patch("RDX.client.requests.request", return_value=make_response(_payload(30))) as req:
        outcome = submit_prediction(RDXClient(settings), PredictionMapper(registry), SELECTIONS, 300)

    body = req.call_args.kwargs["json"]
    assert body["hpo_ids"] == ["HP:0001250", "HP:0004322", "HP:0001263"]
    assert body["age"] == 300
    assert body["uuid"] == outcome.session_token

    assert not outcome.is_fallback
    assert 0 < len(outcome.candidates) <= 20
    for candidate in outcome.candidates:
        assert 0 <= candidate.confidence <= 100
        matched, total = (int(n) for n in candidate.matched_nodes.split("/"))
        assert matched <= total
    assert registry.get_matched(outcome.session_token, "disease 0") == frozenset({"HP:0001250", "HP:0004322"})


def test_network_failure_falls_back_to_demo_data(settings, registry):
    with patch("RDX.client.requests.request", side_effect=requests.ConnectionError("down")):
        outcome = predict_with_fallback(RDXClient(settings, attempts=2), PredictionMapper(registry), SELECTIONS, 300)
    assert outcome.is_fallback
    assert isinstance(outcome.error, RDXApiError)
    assert outcome.candidates == MOCK_CANDIDATES
    assert len(outcome.candidates) == 2
    assert outcome.session_token.startswith("mock-")
    assert outcome.hpo_ids == ("HP:0001250", "HP:0004322", "HP:0001263")


def test_without_fallback_failure_raises(settings, registry):
    with patch("RDX.client.requests.request", return_value=make_response({}, status_code=500)):
        with pytest.raises(RDXApiError):
            submit_prediction(RDXClient(settings, attempts=1), PredictionMapper(registry), SELECTIONS, 300)


def test_no_resolvable_symptoms_raise_before_any_request(settings, registry):
    with patch("RDX.client.requests.request") as req:
        with pytest.raises(NoPhenotypesError):
            predict_with_fallback(
                RDXClient(settings), PredictionMapper(registry), [SymptomSelection.placeholder("odd")], 300
            )
    req.assert_not_called()
