"""
Disease domain model.

Defines the ranked DiseaseCandidate returned by a prediction, the merged
DiseaseSymptoms detail view, and DiseaseInfo descriptive metadata.
"""

import dataclasses
import typing
from dataclasses import dataclass, field

from .phenotype import PhenotypeMatchDetail


@dataclass(frozen=True)
class DiseaseLink:
    title: str
    url: str


@dataclass(frozen=True)
class DiseaseCandidate:
    """
    Represents one ranked prediction result.

    Attributes:
        id: Display index, e.g. 'disease-1'.
        name: Disease name as reported by the prediction service.
        confidence: Service confidence in [0, 100].
        match_percentage: Share of the disease's phenotypes that matched, e.g. '50%'.
        matched_nodes: Matched/total phenotype count, e.g. '2/4'.
        matching_hpo_ids: Comma-separated normalized HPO IDs that matched.
        rank: Service rank (1-based).
        weight: Service weight.
        description: Free-form description.
        symptoms: Phenotype names for display.
        prevalence: Free-form prevalence text.
        links: External references.
        hpo_details: Per-phenotype match evidence.
        rdx_score: Optional secondary score.
    """

    id: str
    name: str
    confidence: float
    match_percentage: str
    matched_nodes: str
    matching_hpo_ids: str
    rank: int
    weight: float
    description: str = ""
    symptoms: typing.Tuple[str, ...] = field(default_factory=tuple)
    prevalence: str = "Unknown"
    links: typing.Tuple[DiseaseLink, ...] = field(default_factory=tuple)
    hpo_details: typing.Tuple[PhenotypeMatchDetail, ...] = field(default_factory=tuple)
    rdx_score: typing.Optional[float] = None

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be within [0, 100], got {self.confidence!r}")

    @property
    def matched_count(self) -> int:
        return sum(1 for detail in self.hpo_details if detail.matched)

    @property
    def total_count(self) -> int:
        return len(self.hpo_details)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "confidence": self.confidence,
            "matchPercentage": self.match_percentage,
            "matchedNodes": self.matched_nodes,
            "matchingHpoIds": self.matching_hpo_ids,
            "rank": self.rank,
            "weight": self.weight,
            "description": self.description,
            "symptoms": list(self.symptoms),
            "prevalence": self.prevalence,
            "links": [{"title": link.title, "url": link.url} for link in self.links],
            "hpoDetails": [detail.to_dict() for detail in self.hpo_details],
            "rdxScore": self.rdx_score,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DiseaseCandidate":
        """Inverse of `to_dict`, used when resuming a stored session."""
        return cls(
            id=data["id"],
            name=data["name"],
            confidence=float(data.get("confidence", 0)),
            match_percentage=data.get("matchPercentage", "0%"),
            matched_nodes=data.get("matchedNodes", "0/0"),
            matching_hpo_ids=data.get("matchingHpoIds", ""),
            rank=int(data.get("rank", 0)),
            weight=float(data.get("weight", 0)),
            description=data.get("description", ""),
            symptoms=tuple(data.get("symptoms") or ()),
            prevalence=data.get("prevalence", "Unknown"),
            links=tuple(DiseaseLink(link.get("title", ""), link.get("url", "#")) for link in data.get("links") or ()),
            hpo_details=tuple(PhenotypeMatchDetail.from_dict(d) for d in data.get("hpoDetails") or ()),
            rdx_score=data.get("rdxScore"),
        )


@dataclass(frozen=True)
class DiseaseSymptoms:
    """All phenotypes of one disease with their merged match status."""

    disease_id: str
    disease_name: str
    symptoms: typing.Tuple[PhenotypeMatchDetail, ...]
    total_symptoms: int
    matched_symptoms: int


# Known disease-info fields; anything else the service sends lands in `extra`
_DISEASE_INFO_FIELDS = (
    "orpha_id",
    "disease_name",
    "prevalence",
    "inheritance",
    "age_of_onset",
    "disease_category",
    "clinical_description",
    "hpo_terms",
    "etiology",
    "diagnosis",
    "management_treatment",
    "genetic_counseling",
    "prognosis",
    "antenatal_diagnosis",
    "mutation",
    "mutation_type",
    "rsid",
    "protein_name",
    "protein_change",
    "pathway",
    "source",
)


@dataclass(frozen=True)
class DiseaseInfo:
    """Descriptive metadata for a disease from the disease-info service."""

    orpha_id: typing.Optional[str] = None
    disease_name: typing.Optional[str] = None
    prevalence: typing.Optional[str] = None
    inheritance: typing.Optional[str] = None
    age_of_onset: typing.Optional[str] = None
    disease_category: typing.Optional[str] = None
    clinical_description: typing.Optional[str] = None
    hpo_terms: typing.Optional[str] = None
    etiology: typing.Optional[str] = None
    diagnosis: typing.Optional[str] = None
    management_treatment: typing.Optional[str] = None
    genetic_counseling: typing.Optional[str] = None
    prognosis: typing.Optional[str] = None
    antenatal_diagnosis: typing.Optional[str] = None
    mutation: typing.Optional[str] = None
    mutation_type: typing.Optional[str] = None
    rsid: typing.Optional[str] = None
    protein_name: typing.Optional[str] = None
    protein_change: typing.Optional[str] = None
    pathway: typing.Optional[str] = None
    source: typing.Optional[str] = None
    resources: typing.Tuple[DiseaseLink, ...] = field(default_factory=tuple)
    indication_drugs: typing.Tuple[str, ...] = field(default_factory=tuple)
    contraindication_drugs: typing.Tuple[str, ...] = field(default_factory=tuple)
    extra: typing.Dict[str, typing.Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "DiseaseInfo":
        """
        Normalize a disease-info payload:
        - `name` fills in a missing `disease_name`
        - `management_and_treatment` is an alias of `management_treatment`
        - unknown keys are kept in `extra`
        """
        data = dict(payload)
        if not data.get("disease_name") and data.get("name"):
            data["disease_name"] = data["name"]
        if not data.get("management_treatment") and data.get("management_and_treatment"):
            data["management_treatment"] = data["management_and_treatment"]

        kwargs = {key: _as_text(data.get(key)) for key in _DISEASE_INFO_FIELDS}
        kwargs["resources"] = tuple(
            DiseaseLink(str(r.get("title", "")), str(r.get("url", "#")))
            for r in data.get("resources") or ()
            if isinstance(r, dict)
        )
        kwargs["indication_drugs"] = tuple(data.get("indication_drugs") or ())
        kwargs["contraindication_drugs"] = tuple(data.get("contraindication_drugs") or ())

        known = set(_DISEASE_INFO_FIELDS) | {
            "resources",
            "indication_drugs",
            "contraindication_drugs",
            "name",
            "management_and_treatment",
        }
        kwargs["extra"] = {k: v for k, v in data.items() if k not in known}
        return cls(**kwargs)

    def sections(self) -> typing.List[typing.Tuple[str, str]]:
        """Non-empty text fields as (title, text) pairs in display order."""
        titles = {f.name: f.name.replace("_", " ").capitalize() for f in dataclasses.fields(self)}
        return [
            (titles[key], getattr(self, key))
            for key in _DISEASE_INFO_FIELDS
            if key != "disease_name" and getattr(self, key)
        ]


def _as_text(value: typing.Any) -> typing.Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
