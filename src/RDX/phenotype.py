"""
Phenotype domain model.

Defines HPO identifier normalization plus the small dataclasses used to carry
symptom selections and per-disease phenotype match evidence.
"""

import re
import time
import typing
from dataclasses import dataclass, field

HPO_PREFIX = "HP:"
PLACEHOLDER_PREFIX = "temp-"

# Patterns
_LEADING_HP = re.compile(r"^HP")
_CANONICAL_HPO_ID = re.compile(r"^HP:\d+$")


def normalize_hpo_id(raw: str) -> str:
    """
    Canonicalize an HPO identifier.

    - "HP:0001250" -> "HP:0001250"
    - "hp0001250"  -> "HP:0001250"
    - " 0001250 "  -> "HP:0001250"
    - "" / None    -> returned unchanged
    """
    if not raw:
        return raw
    trimmed = raw.strip().upper()
    if trimmed.startswith(HPO_PREFIX):
        return trimmed
    return HPO_PREFIX + _LEADING_HP.sub("", trimmed)


def is_canonical_hpo_id(code: str) -> bool:
    return bool(code) and bool(_CANONICAL_HPO_ID.match(code))


def is_placeholder(code: typing.Optional[str]) -> bool:
    """True for codes assigned to free-typed symptoms that are not resolved yet."""
    return bool(code) and code.startswith(PLACEHOLDER_PREFIX)


@dataclass(frozen=True)
class SymptomSelection:
    """
    One symptom chosen by the user.

    Attributes:
        id: HPO identifier, or a `temp-<millis>` placeholder for free text.
        name: Display name shown to the user.
    """

    id: str
    name: str

    @classmethod
    def placeholder(cls, name: str) -> "SymptomSelection":
        """Create an unresolved selection for a free-typed symptom."""
        return cls(id=f"{PLACEHOLDER_PREFIX}{int(time.time() * 1000)}", name=name.strip())

    @property
    def is_resolved(self) -> bool:
        return bool(self.id.strip()) and not is_placeholder(self.id)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "SymptomSelection":
        return cls(
            id=str(data.get("id") or data.get("hpoid") or data.get("hpo_id") or ""),
            name=str(data.get("name") or data.get("hpo_name") or ""),
        )


@dataclass(frozen=True)
class ConnectedTerm:
    """A phenotype term related to another one (parent, child, sibling, ...)."""

    hpo_id: str
    hpo_name: str
    relation: str = "related"
    score: typing.Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ConnectedTerm":
        score = data.get("score")
        return cls(
            hpo_id=str(data.get("hpo_id", "")),
            hpo_name=str(data.get("hpo_name", "")),
            relation=data.get("relation") or "related",
            score=float(score) if isinstance(score, (int, float)) and not isinstance(score, bool) else None,
        )


@dataclass(frozen=True)
class PhenotypeMatchDetail:
    """
    A phenotype annotated to a candidate disease and whether the patient has it.

    Attributes:
        hpo_id: HPO identifier as reported by the service (not necessarily canonical).
        hpo_name: Human-readable term label.
        matched: True if any evidence source says the patient's input matched it.
        connected_terms: Related terms embedded in the payload, if any.
    """

    hpo_id: str
    hpo_name: str
    matched: bool = False
    connected_terms: typing.Tuple[ConnectedTerm, ...] = field(default_factory=tuple)

    @property
    def normalized_id(self) -> str:
        return normalize_hpo_id(self.hpo_id)

    def to_dict(self) -> dict:
        out = {"hpo_id": self.hpo_id, "hpo_name": self.hpo_name, "matched": self.matched}
        if self.connected_terms:
            out["connected_nodes"] = [
                {"hpo_id": t.hpo_id, "hpo_name": t.hpo_name, "relation": t.relation, "score": t.score}
                for t in self.connected_terms
            ]
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "PhenotypeMatchDetail":
        # "connected_nodes" carries scores; "connected_hpos" is the older, score-less variant
        raw_nodes = data.get("connected_nodes")
        if not isinstance(raw_nodes, list):
            raw_nodes = data.get("connected_hpos")
        connected = tuple(
            ConnectedTerm.from_dict(node) for node in (raw_nodes or []) if isinstance(node, dict)
        )
        return cls(
            hpo_id=str(data.get("hpo_id") or data.get("id") or ""),
            hpo_name=str(data.get("hpo_name") or data.get("name") or ""),
            matched=bool(data.get("matched")),
            connected_terms=connected,
        )
