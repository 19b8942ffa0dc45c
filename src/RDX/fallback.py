"""
Prediction submission with an explicit fallback policy.

`submit_prediction` runs extraction -> remote call -> response mapping ->
registry write, in that order, and raises on failure.
`predict_with_fallback` wraps it and, when the remote call fails, returns the
fixed demo dataset below instead of raising. Results say which path was taken.
"""

from __future__ import annotations

import logging
import time
import typing
import uuid
from dataclasses import dataclass, field

from .catalog import PhenotypeCatalog
from .client import RDXApiError, RDXClient
from .disease import DiseaseCandidate, DiseaseLink
from .mapper import PredictionMapper, Selection, extract_hpo_ids

LOGGER = logging.getLogger(__name__)

MOCK_TOKEN_PREFIX = "mock-"

MOCK_CANDIDATES: typing.Tuple[DiseaseCandidate, ...] = (
    DiseaseCandidate(
        id="1",
        name="Ehlers-Danlos Syndrome",
        confidence=78.0,
        match_percentage="78%",
        matched_nodes="3/28",
        matching_hpo_ids="3/3",
        rank=1,
        weight=2.2,
        description=(
            "A group of inherited disorders that affect connective tissues, "
            "primarily the skin, joints, and blood vessel walls."
        ),
        symptoms=("Joint pain", "Skin discoloration", "Fatigue", "Muscle pain", "Weakness"),
        prevalence="1 in 2,500 to 1 in 5,000 people worldwide",
        links=(
            DiseaseLink(
                "Mayo Clinic - Ehlers-Danlos Syndrome",
                "https://www.mayoclinic.org/diseases-conditions/ehlers-danlos-syndrome",
            ),
            DiseaseLink(
                "National Organization for Rare Disorders",
                "https://rarediseases.org/rare-diseases/ehlers-danlos-syndrome/",
            ),
        ),
    ),
    DiseaseCandidate(
        id="2",
        name="Fibromyalgia",
        confidence=72.0,
        match_percentage="72%",
        matched_nodes="2/15",
        matching_hpo_ids="2/2",
        rank=2,
        weight=1.8,
        description=(
            "A disorder characterized by widespread musculoskeletal pain accompanied "
            "by fatigue, sleep, memory, and mood issues."
        ),
        symptoms=("Muscle pain", "Fatigue", "Sleep problems", "Memory loss", "Joint pain"),
        prevalence="2-4% of the population, more common in women",
        links=(
            DiseaseLink("Mayo Clinic - Fibromyalgia", "https://www.mayoclinic.org/diseases-conditions/fibromyalgia"),
            DiseaseLink("National Fibromyalgia Association", "https://www.fmaware.org/"),
        ),
    ),
)


class NoPhenotypesError(ValueError):
    """Raised when none of the selected symptoms resolves to an HPO ID."""


@dataclass(frozen=True)
class PredictionOutcome:
    """
    Result of one prediction submission.

    Attributes:
        session_token: UUID of the prediction session (`mock-<millis>` for fallback data).
        hpo_ids: HPO IDs that were submitted.
        candidates: Ranked disease candidates.
        error: The failure that triggered the fallback, if any.
    """

    session_token: str
    hpo_ids: typing.Tuple[str, ...]
    candidates: typing.Tuple[DiseaseCandidate, ...] = field(default_factory=tuple)
    error: typing.Optional[RDXApiError] = None

    @property
    def is_fallback(self) -> bool:
        return self.error is not None


def new_session_token() -> str:
    return str(uuid.uuid4())


def mock_session_token() -> str:
    return f"{MOCK_TOKEN_PREFIX}{int(time.time() * 1000)}"


def submit_prediction(
    client: RDXClient,
    mapper: PredictionMapper,
    selections: typing.Sequence[Selection],
    age_months: int,
    catalog: typing.Optional[PhenotypeCatalog] = None,
    session_token: typing.Optional[str] = None,
) -> PredictionOutcome:
    """Raises NoPhenotypesError before any request, RDXApiError if the service fails."""
    hpo_ids = extract_hpo_ids(selections, catalog)
    return _submit(client, mapper, hpo_ids, age_months, session_token)


def predict_with_fallback(
    client: RDXClient,
    mapper: PredictionMapper,
    selections: typing.Sequence[Selection],
    age_months: int,
    catalog: typing.Optional[PhenotypeCatalog] = None,
    session_token: typing.Optional[str] = None,
) -> PredictionOutcome:
    """
    Like `submit_prediction`, but a failed remote call yields the demo dataset.
    Input problems (NoPhenotypesError) still raise.
    """
    hpo_ids = extract_hpo_ids(selections, catalog)
    try:
        return _submit(client, mapper, hpo_ids, age_months, session_token)
    except RDXApiError as e:
        LOGGER.warning("Prediction request failed, falling back to demo data: %s", e)
        return PredictionOutcome(
            session_token=mock_session_token(),
            hpo_ids=tuple(hpo_ids),
            candidates=MOCK_CANDIDATES,
            error=e,
        )


def _submit(
    client: RDXClient,
    mapper: PredictionMapper,
    hpo_ids: typing.List[str],
    age_months: int,
    session_token: typing.Optional[str],
) -> PredictionOutcome:
    if not hpo_ids:
        raise NoPhenotypesError("No valid HPO IDs found for the selected symptoms")

    token = session_token or new_session_token()
    payload = client.predict(hpo_ids, age_months, token)
    candidates = mapper.map_response(payload, token)
    LOGGER.info("Prediction %s returned %d candidates", token, len(candidates))
    return PredictionOutcome(session_token=token, hpo_ids=tuple(hpo_ids), candidates=tuple(candidates))
