import json
import pytest

from unittest.mock import Mock

from RDX.config import Settings
from RDX.registry import MatchRegistry


def make_response(payload=None, status_code=200, bad_json=False):
    """A stand-in for requests.Response with just what the client touches."""
    resp = Mock(status_code=status_code)
    if bad_json:
        resp.json = Mock(side_effect=json.JSONDecodeError("Expecting value", "<html>", 0))
    else:
        resp.json = Mock(return_value=payload)
    return resp


def prediction_entry(name, details, match_percentage="50%", rank=None, **extra):
    entry = {
        "Disease": name,
        "Match_Percentage": match_percentage,
        "Matched/Total_Nodes": "99/99",  # deliberately wrong; the mapper recomputes it
        "Matching_HPO_IDs": "",
        "Weight": 1.5,
        "HPO_Details": [
            {"hpo_id": hpo_id, "hpo_name": f"Term {hpo_id}", "matched": matched} for hpo_id, matched in details
        ],
    }
    if rank is not None:
        entry["Rank"] = rank
    entry.update(extra)
    return entry


@pytest.fixture
def registry() -> MatchRegistry:
    return MatchRegistry()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        predict_url="http://predict.test",
        hpo_url="http://hpo.test",
        mapping_url="http://mapping.test",
        auth_url="http://auth.test",
        email="user@example.org",
        password="secret",
        state_dir=tmp_path / "state",
        timeout=1.0,
    )


@pytest.fixture
def state_env(tmp_path, monkeypatch):
    """Point the CLI at throwaway service URLs and a temporary state directory."""
    state_dir = tmp_path / "rdx-state"
    monkeypatch.setenv("RDX_STATE_DIR", str(state_dir))
    monkeypatch.setenv("RDX_PREDICT_URL", "http://predict.test")
    monkeypatch.setenv("RDX_HPO_URL", "http://hpo.test")
    monkeypatch.setenv("RDX_MAPPING_URL", "http://mapping.test")
    monkeypatch.setenv("RDX_AUTH_URL", "http://auth.test")
    return state_dir


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    """Retries should not slow the suite down."""
    monkeypatch.setattr("RDX.client._sleep_backoff", lambda i: None)
