"""
RDX service client.

High level
----------
Thin wrapper over the remote services the triage flow depends on:

- prediction service   : POST /graphpredict, GET /disease/hpos
- phenotype catalog    : GET /hpo/search, GET /hpo/terms, GET /hpo/related
- free-text mapping    : POST /map-hpo
- authentication/info  : POST /login, POST /doctors/diseaseinfo

Key behaviors
-------------
- Every call retries a few times with a small exponential backoff.
- Any network error, non-2xx status or undecodable JSON raises `RDXApiError`;
  callers decide whether to degrade (see `fallback.predict_with_fallback`).
- Raw payloads are returned as-is for the prediction/detail endpoints (the
  mapper normalizes them); catalog/mapping/info payloads are normalized here.
"""

from __future__ import annotations

import json
import logging
import time
import typing
import uuid

import requests

from .catalog import PhenotypeCatalog, PhenotypeTerm
from .config import Settings
from .disease import DiseaseCandidate, DiseaseInfo, DiseaseSymptoms
from .mapper import merge_match_status
from .phenotype import ConnectedTerm, PhenotypeMatchDetail, SymptomSelection
from .registry import MatchRegistry

LOGGER = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 4


class RDXApiError(RuntimeError):
    """Raised when a remote RDX service call fails."""

    def __init__(self, message: str, status_code: typing.Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _sleep_backoff(i: int) -> None:
    """
    Sleep using a small exponential backoff.
    Sequence ~ 0.25s, 0.5s, 1s, 2s.
    """
    time.sleep(0.25 * (2**i))


def _error_message(resp: requests.Response) -> str:
    # services sometimes explain failures as {"message": "..."}
    try:
        body = resp.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or "")
    return ""


class RDXClient:
    def __init__(self, settings: typing.Optional[Settings] = None, attempts: int = DEFAULT_ATTEMPTS):
        self.settings = settings if settings is not None else Settings.from_env()
        self.attempts = max(1, attempts)

    # --------------------------------------------------------------------------
    # Transport
    # --------------------------------------------------------------------------

    def _request_json(self, method: str, url: str, **kwargs) -> typing.Any:
        """
        Send a request and decode the JSON body, retrying on network/HTTP/JSON problems.
        Client errors (4xx) are not retried.
        """
        kwargs.setdefault("timeout", self.settings.timeout)
        last_exc: typing.Optional[Exception] = None
        status_code: typing.Optional[int] = None
        for i in range(self.attempts):
            try:
                resp = requests.request(method, url, **kwargs)
                status_code = resp.status_code
                if status_code >= 400:
                    detail = _error_message(resp)
                    message = f"{method} {url} returned HTTP {status_code}"
                    if detail:
                        message = f"{message}: {detail}"
                    if status_code < 500:
                        raise RDXApiError(message, status_code=status_code)
                    raise requests.HTTPError(message)
                return resp.json()
            except RDXApiError:
                raise
            except (requests.RequestException, json.JSONDecodeError, ValueError) as e:
                last_exc = e
                LOGGER.debug("Attempt %d/%d for %s %s failed: %s", i + 1, self.attempts, method, url, e)
                if i + 1 < self.attempts:
                    _sleep_backoff(i)
        assert last_exc is not None
        raise RDXApiError(f"Failed {method} {url}: {last_exc}", status_code=status_code) from last_exc

    # --------------------------------------------------------------------------
    # Prediction service
    # --------------------------------------------------------------------------

    def predict(self, hpo_ids: typing.Sequence[str], age_months: int, session_token: str) -> dict:
        """Submit HPO IDs and age; returns the raw ranked-prediction payload."""
        payload = self._request_json(
            "POST",
            f"{self.settings.predict_url}/graphpredict",
            json={"hpo_ids": list(hpo_ids), "age": age_months, "uuid": session_token},
        )
        if not isinstance(payload, dict):
            raise RDXApiError("Prediction response is not a JSON object")
        return payload

    def get_disease_hpos(self, disease_name: str, session_token: str) -> dict:
        """All phenotypes of a disease for a prediction session (raw payload)."""
        if not session_token:
            raise ValueError("A prediction session token is required to fetch disease phenotypes")
        payload = self._request_json(
            "GET",
            f"{self.settings.predict_url}/disease/hpos",
            params={"disease": disease_name.strip(), "uuid": session_token},
        )
        if not isinstance(payload, dict):
            raise RDXApiError("Disease phenotype response is not a JSON object")
        return payload

    def fetch_disease_symptoms(
        self,
        candidate: DiseaseCandidate,
        session_token: str,
        registry: typing.Optional[MatchRegistry] = None,
    ) -> DiseaseSymptoms:
        """
        Fetch a disease's phenotypes and merge in everything known about matches.
        `registry` defaults to the process-wide one, as in `merge_match_status`.
        """
        fresh = self.get_disease_hpos(candidate.name, session_token)
        return merge_match_status(fresh, session_token, candidate.name, candidate, registry)

    # --------------------------------------------------------------------------
    # Phenotype catalog
    # --------------------------------------------------------------------------

    def search_phenotypes(self, query: str, limit: int = 50) -> typing.List[PhenotypeTerm]:
        payload = self._request_json(
            "GET",
            f"{self.settings.hpo_url}/hpo/search",
            params={"q": query.strip(), "limit": limit},
        )
        return _parse_term_list(payload)

    def list_phenotypes(self) -> PhenotypeCatalog:
        payload = self._request_json("GET", f"{self.settings.hpo_url}/hpo/terms")
        return PhenotypeCatalog(_parse_term_list(payload))

    def get_related_terms(self, hpo_id: str, session_token: str) -> typing.List[ConnectedTerm]:
        payload = self._request_json(
            "GET",
            f"{self.settings.hpo_url}/hpo/related",
            params={"hpo_id": hpo_id, "uuid": session_token},
        )
        related = payload.get("related_terms") if isinstance(payload, dict) else None
        return [ConnectedTerm.from_dict(t) for t in related or () if isinstance(t, dict)]

    # --------------------------------------------------------------------------
    # Free-text mapping
    # --------------------------------------------------------------------------

    def map_text(self, text: str) -> typing.List[SymptomSelection]:
        """
        Map free text to HPO terms. An empty list means nothing matched;
        that is not an error.
        """
        query = text.strip()
        if not query:
            raise ValueError("Text to map must not be empty")
        payload = self._request_json(
            "POST",
            f"{self.settings.mapping_url}/map-hpo",
            json={"text": query, "uuid": str(uuid.uuid4())},
        )
        terms = payload.get("hpo_terms") if isinstance(payload, dict) else None
        return [SymptomSelection.from_dict(t) for t in terms or () if isinstance(t, dict)]

    # --------------------------------------------------------------------------
    # Authentication + disease info
    # --------------------------------------------------------------------------

    def login(self) -> str:
        payload = self._request_json(
            "POST",
            f"{self.settings.auth_url}/login",
            json={"email": self.settings.email, "password": self.settings.password},
        )
        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            raise RDXApiError("No token received in login response")
        return str(token)

    def get_disease_info(self, disease_name: str, token: typing.Optional[str] = None) -> DiseaseInfo:
        if token is None:
            token = self.login()
        payload = self._request_json(
            "POST",
            f"{self.settings.auth_url}/doctors/diseaseinfo",
            json={"name": disease_name},
            headers={"rdxtoken": token},
        )
        if isinstance(payload, list):
            payload = payload[0] if payload else {}
        if not isinstance(payload, dict):
            raise RDXApiError("Disease info response is not a JSON object")
        return DiseaseInfo.from_payload(payload)


def _parse_term_list(payload: typing.Any) -> typing.List[PhenotypeTerm]:
    # bare list, or wrapped as {"terms": [...]} / {"results": [...]}
    if isinstance(payload, dict):
        payload = payload.get("terms") or payload.get("results") or []
    if not isinstance(payload, list):
        raise RDXApiError("Phenotype catalog response is not a list")
    return [PhenotypeTerm.from_dict(r) for r in payload if isinstance(r, dict)]


def connected_terms_for(
    detail: PhenotypeMatchDetail,
    client: typing.Optional[RDXClient],
    session_token: str,
) -> typing.List[ConnectedTerm]:
    """Related terms for a phenotype: embedded ones first, otherwise a remote lookup."""
    if detail.connected_terms:
        return list(detail.connected_terms)
    if client is None or not session_token:
        return []
    return client.get_related_terms(detail.hpo_id, session_token)
