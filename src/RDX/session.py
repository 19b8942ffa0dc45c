"""
Prediction session persistence.

The last prediction (candidates, selected symptoms, age and session token) is
kept in one JSON file so results can be revisited by later commands. A stored
session is only valid for 24 hours after it was written.
"""

from __future__ import annotations

import json
import logging
import pathlib
import time
import typing
from dataclasses import dataclass, field

from .disease import DiseaseCandidate
from .phenotype import SymptomSelection
from .registry import MatchRegistry

LOGGER = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class PredictionSession:
    """
    One submission of age + symptoms and its results.

    Attributes:
        prediction_id: Session token sent to the prediction service.
        age_years: Age, whole years part.
        age_months: Age, remaining months (0-11).
        selected_symptoms: Symptoms in the order they were chosen.
        predictions: Ranked disease candidates.
        timestamp: Unix time (seconds) when the session was stored.
    """

    prediction_id: str
    age_years: int
    age_months: int
    selected_symptoms: typing.Tuple[SymptomSelection, ...] = field(default_factory=tuple)
    predictions: typing.Tuple[DiseaseCandidate, ...] = field(default_factory=tuple)
    timestamp: float = 0.0

    @property
    def total_age_months(self) -> int:
        return self.age_years * 12 + self.age_months

    def find_candidate(self, disease: str) -> typing.Optional[DiseaseCandidate]:
        """Look a candidate up by display id ('disease-3'), rank ('3') or name (case-insensitive)."""
        wanted = disease.strip().lower()
        for candidate in self.predictions:
            if candidate.id.lower() == wanted or candidate.name.strip().lower() == wanted:
                return candidate
        if wanted.isdigit():
            for candidate in self.predictions:
                if candidate.rank == int(wanted):
                    return candidate
        return None

    def rehydrate(self, registry: MatchRegistry) -> None:
        """Re-populate a registry from stored candidates (new process, same session)."""
        for candidate in self.predictions:
            ids = [d.hpo_id for d in candidate.hpo_details if d.matched and d.hpo_id]
            registry.set_matched(self.prediction_id, candidate.name, ids)

    def to_dict(self) -> dict:
        return {
            "predictionId": self.prediction_id,
            "predictions": [c.to_dict() for c in self.predictions],
            "selectedSymptoms": [s.to_dict() for s in self.selected_symptoms],
            "ageYears": self.age_years,
            "ageMonths": self.age_months,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PredictionSession":
        return cls(
            prediction_id=str(data.get("predictionId") or ""),
            age_years=int(data.get("ageYears") or 0),
            age_months=int(data.get("ageMonths") or 0),
            selected_symptoms=tuple(SymptomSelection.from_dict(s) for s in data.get("selectedSymptoms") or ()),
            predictions=tuple(DiseaseCandidate.from_dict(c) for c in data.get("predictions") or ()),
            timestamp=float(data["timestamp"]),
        )


class SessionStore:
    def __init__(
        self,
        path: pathlib.Path,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        clock: typing.Callable[[], float] = time.time,
    ):
        self.path = pathlib.Path(path)
        self._ttl = ttl_seconds
        self._clock = clock

    def save(self, session: PredictionSession) -> PredictionSession:
        """Write the session, stamping it with the current time; replaces any earlier one."""
        stamped = PredictionSession(
            prediction_id=session.prediction_id,
            age_years=session.age_years,
            age_months=session.age_months,
            selected_symptoms=session.selected_symptoms,
            predictions=session.predictions,
            timestamp=self._clock(),
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as out_f:
            json.dump(stamped.to_dict(), out_f, indent=2)
        LOGGER.debug("Saved prediction session %s to %s", stamped.prediction_id, self.path)
        return stamped

    def load(self) -> typing.Optional[PredictionSession]:
        """
        Return the stored session, or None if there is none, it is older than
        the TTL, or it cannot be read. Expired and unreadable files are removed.
        """
        if not self.path.is_file():
            return None
        try:
            with open(self.path, encoding="utf-8") as in_f:
                session = PredictionSession.from_dict(json.load(in_f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            LOGGER.warning("Discarding unreadable prediction state %s: %s", self.path, e)
            self.clear()
            return None

        age = self._clock() - session.timestamp
        if age < 0 or age > self._ttl:
            LOGGER.info("Stored prediction session %s has expired", session.prediction_id)
            self.clear()
            return None
        return session

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
