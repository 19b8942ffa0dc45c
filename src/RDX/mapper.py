"""
Phenotype match resolution.

High level
----------
- `extract_hpo_ids` turns the user's symptom selections into the HPO IDs sent
  to the prediction service.
- `PredictionMapper.map_response` turns the service's ranked predictions into
  DiseaseCandidate objects and records the matched HPO IDs per disease in a
  MatchRegistry.
- `merge_match_status` reconciles a disease-detail payload with everything we
  already know about which phenotypes matched.

Raw payloads are normalized at the boundary by the `_parse_*` helpers so the
rest of the package only sees the dataclasses from `phenotype` and `disease`.
"""

from __future__ import annotations

import abc
import logging
import math
import re
import typing

from .catalog import PhenotypeCatalog
from .disease import DiseaseCandidate, DiseaseLink, DiseaseSymptoms
from .phenotype import PhenotypeMatchDetail, SymptomSelection, is_placeholder, normalize_hpo_id
from .registry import MatchRegistry, default_registry

LOGGER = logging.getLogger(__name__)

MAX_CANDIDATES = 20

# Leading number of a percentage-like string: "78%", " 78.5 % ", "-3"
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")

Selection = typing.Union[SymptomSelection, str]


# ------------------------------------------------------------------------------
# Extraction
# ------------------------------------------------------------------------------


def extract_hpo_ids(
    selections: typing.Sequence[Selection],
    catalog: typing.Optional[PhenotypeCatalog] = None,
) -> typing.List[str]:
    """
    Collect normalized HPO IDs for the prediction request.

    - SymptomSelection: its own ID is used; empty IDs and `temp-` placeholders are dropped.
    - plain string (legacy input mode): resolved by label/synonym against `catalog`;
      names that cannot be resolved are logged and dropped.

    Duplicates are passed through unchanged.
    """
    hpo_ids: typing.List[str] = []
    for selection in selections:
        if isinstance(selection, SymptomSelection):
            if not selection.id.strip():
                continue
            if is_placeholder(selection.id):
                LOGGER.debug("Skipping unresolved symptom %r", selection.name)
                continue
            hpo_ids.append(normalize_hpo_id(selection.id))
            continue

        term = catalog.find_by_name(selection) if catalog is not None else None
        if term is None:
            LOGGER.warning("Could not resolve symptom %r to an HPO term", selection)
            continue
        hpo_ids.append(normalize_hpo_id(term.hpoid))
    return hpo_ids


# ------------------------------------------------------------------------------
# Small parsing helpers
# ------------------------------------------------------------------------------


def parse_percentage(value: typing.Any) -> float:
    """
    Parse a confidence like '78%' into a float clamped to [0, 100].
    Anything unparsable is 0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        m = _LEADING_FLOAT.match(str(value or ""))
        if not m:
            return 0.0
        number = float(m.group(1))
    if math.isnan(number):
        return 0.0
    return min(max(number, 0.0), 100.0)


def format_match_percentage(matched: int, total: int) -> str:
    """round(matched / total * 100) with halves rounded up; '0%' for an empty list."""
    if total <= 0:
        return "0%"
    return f"{math.floor(matched / total * 100 + 0.5)}%"


def _parse_number(value: typing.Any) -> typing.Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _parse_rank(value: typing.Any, default: int) -> int:
    number = _parse_number(value)
    if number is None or number <= 0:
        return default
    return int(number)


def _parse_hpo_details(entry: dict) -> typing.Tuple[PhenotypeMatchDetail, ...]:
    """
    Phenotype details may arrive as `hpoDetails` (current) or `HPO_Details` (legacy).
    """
    raw = entry.get("hpoDetails")
    if not isinstance(raw, list):
        raw = entry.get("HPO_Details")
    if not isinstance(raw, list):
        return ()
    return tuple(PhenotypeMatchDetail.from_dict(item) for item in raw if isinstance(item, dict))


def _parse_links(entry: dict) -> typing.Tuple[DiseaseLink, ...]:
    links = []
    for i, resource in enumerate(entry.get("resources") or ()):
        if not isinstance(resource, dict):
            continue
        links.append(DiseaseLink(resource.get("title") or f"Resource {i + 1}", resource.get("url") or "#"))
    return tuple(links)


def _prediction_entries(payload: typing.Any) -> typing.List[dict]:
    """Predictions live under `predictions`; some deployments use `diseases`."""
    if not isinstance(payload, dict):
        return []
    entries = payload.get("predictions")
    if not isinstance(entries, list):
        entries = payload.get("diseases")
    if not isinstance(entries, list):
        LOGGER.warning("No predictions found in prediction response")
        return []
    return [e for e in entries if isinstance(e, dict)]


# ------------------------------------------------------------------------------
# Response mapping
# ------------------------------------------------------------------------------


class ResponseMapper(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def map_response(self, payload: dict, session_token: str) -> typing.List[DiseaseCandidate]:
        # return display-ready candidates in service order
        raise NotImplementedError


class PredictionMapper(ResponseMapper):
    def __init__(self, registry: typing.Optional[MatchRegistry] = None, limit: int = MAX_CANDIDATES):
        self._registry = registry if registry is not None else default_registry
        self._limit = limit

    @property
    def registry(self) -> MatchRegistry:
        return self._registry

    def map_response(self, payload: dict, session_token: str) -> typing.List[DiseaseCandidate]:
        """
        Process:
        1) take the first `limit` predictions in service order (no re-sorting)
        2) recompute matched/total counts and match percentage from the phenotype details
        3) remember matched HPO IDs in the registry under (session_token, disease name)
        4) build one DiseaseCandidate per prediction
        """
        entries = _prediction_entries(payload)[: self._limit]
        return [self._map_entry(entry, index, session_token) for index, entry in enumerate(entries)]

    def _map_entry(self, entry: dict, index: int, session_token: str) -> DiseaseCandidate:
        position = index + 1
        disease_name = str(entry.get("Disease") or "").strip()
        display_name = disease_name or f"Disease {position}"

        details = _parse_hpo_details(entry)
        matched_ids = [d.normalized_id for d in details if d.matched and d.hpo_id]
        matched_count = sum(1 for d in details if d.matched)
        total_count = len(details)

        if session_token and disease_name:
            self._registry.set_matched(session_token, disease_name, matched_ids)

        weight = _parse_number(entry.get("Weight"))
        symptoms = entry.get("symptoms")
        if not isinstance(symptoms, list) or not symptoms:
            symptoms = [d.hpo_name for d in details]

        return DiseaseCandidate(
            id=f"disease-{position}",
            name=display_name,
            confidence=parse_percentage(entry.get("Match_Percentage")),
            match_percentage=format_match_percentage(matched_count, total_count),
            matched_nodes=f"{matched_count}/{total_count}",
            matching_hpo_ids=",".join(matched_ids),
            rank=_parse_rank(entry.get("Rank"), position),
            weight=weight if weight is not None else 0.0,
            description=entry.get("description") or f"Description for {display_name}",
            symptoms=tuple(str(s) for s in symptoms),
            prevalence=entry.get("prevalence") or "Unknown",
            links=_parse_links(entry),
            hpo_details=details,
            rdx_score=_parse_number(entry.get("RDX_Score")),
        )


# ------------------------------------------------------------------------------
# Detail merging
# ------------------------------------------------------------------------------


def registry_matches(
    registry: typing.Optional[MatchRegistry], session_token: str, disease_name: str
) -> typing.Set[str]:
    if registry is None or not session_token:
        return set()
    stored = registry.get_matched(session_token, disease_name)
    return set(stored) if stored is not None else set()


def embedded_detail_matches(candidate: typing.Optional[DiseaseCandidate]) -> typing.Set[str]:
    if candidate is None:
        return set()
    return {d.normalized_id for d in candidate.hpo_details if d.matched and d.hpo_id}


def matching_id_string_matches(candidate: typing.Optional[DiseaseCandidate]) -> typing.Set[str]:
    if candidate is None or not candidate.matching_hpo_ids:
        return set()
    parts = (part.strip() for part in candidate.matching_hpo_ids.split(","))
    return {normalize_hpo_id(part) for part in parts if part}


def merge_match_status(
    fresh_detail: dict,
    session_token: str,
    disease_name: str,
    candidate: typing.Optional[DiseaseCandidate] = None,
    registry: typing.Optional[MatchRegistry] = None,
) -> DiseaseSymptoms:
    """
    Merge a disease-detail payload with known match evidence.
    Without an explicit `registry` the process-wide `default_registry` is read,
    the same one `PredictionMapper` writes to by default.

    Evidence sources (set union, each normalized):
      1. the registry entry for (session_token, disease_name)
      2. `candidate.hpo_details` entries flagged matched
      3. `candidate.matching_hpo_ids`, the comma-separated ID string

    A phenotype is matched if its own flag is set or its normalized ID is in the
    union. `matched_symptoms` is recounted; the payload's own count is ignored.
    Inputs are not modified.
    """
    if registry is None:
        registry = default_registry
    evidence = (
        registry_matches(registry, session_token, disease_name)
        | embedded_detail_matches(candidate)
        | matching_id_string_matches(candidate)
    )

    payload = fresh_detail if isinstance(fresh_detail, dict) else {}
    raw_symptoms = payload.get("connected_hpos")
    if not isinstance(raw_symptoms, list) or not raw_symptoms:
        raw_symptoms = payload.get("symptoms")
    if not isinstance(raw_symptoms, list):
        raw_symptoms = []

    symptoms: typing.List[PhenotypeMatchDetail] = []
    for raw in raw_symptoms:
        if not isinstance(raw, dict):
            continue
        detail = PhenotypeMatchDetail.from_dict(raw)
        matched = detail.matched or (bool(detail.hpo_id) and detail.normalized_id in evidence)
        symptoms.append(
            PhenotypeMatchDetail(
                hpo_id=detail.hpo_id,
                hpo_name=detail.hpo_name,
                matched=matched,
                connected_terms=detail.connected_terms,
            )
        )

    # total is never below the number of listed phenotypes
    total = payload.get("total_symptoms")
    if not isinstance(total, int) or isinstance(total, bool):
        total = 0
    return DiseaseSymptoms(
        disease_id=str(payload.get("disease_id") or disease_name),
        disease_name=str(payload.get("disease_name") or disease_name),
        symptoms=tuple(symptoms),
        total_symptoms=max(total, len(symptoms)),
        matched_symptoms=sum(1 for s in symptoms if s.matched),
    )
