"""
Exporters for a prediction session.

- Result tables (CSV/TSV/Excel) via pandas.
- GA4GH Phenopacket v2 JSON describing the patient's age and symptoms.
"""

import pathlib
import typing

import hpotk
import pandas as pd
from google.protobuf.json_format import MessageToJson
from phenopackets.schema.v2.phenopackets_pb2 import Phenopacket

from .disease import DiseaseCandidate
from .phenotype import is_canonical_hpo_id, normalize_hpo_id
from .session import PredictionSession

RESULT_COLUMNS = [
    "rank",
    "name",
    "confidence",
    "match_percentage",
    "matched_nodes",
    "matching_hpo_ids",
    "weight",
    "rdx_score",
    "prevalence",
]


def candidates_to_frame(candidates: typing.Sequence[DiseaseCandidate]) -> pd.DataFrame:
    """One row per candidate, in ranked order."""
    rows = [
        {
            "rank": c.rank,
            "name": c.name,
            "confidence": c.confidence,
            "match_percentage": c.match_percentage,
            "matched_nodes": c.matched_nodes,
            "matching_hpo_ids": c.matching_hpo_ids,
            "weight": c.weight,
            "rdx_score": c.rdx_score,
            "prevalence": c.prevalence,
        }
        for c in candidates
    ]
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def write_results(candidates: typing.Sequence[DiseaseCandidate], path: str) -> pathlib.Path:
    """Write candidates as .xlsx, .tsv or (default) .csv depending on the suffix."""
    out = pathlib.Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    df = candidates_to_frame(candidates)
    suffix = out.suffix.lower()
    if suffix == ".xlsx":
        df.to_excel(out, index=False, engine="openpyxl")
    elif suffix in (".tsv", ".tab"):
        df.to_csv(out, sep="\t", index=False)
    else:
        df.to_csv(out, index=False)
    return out


def iso8601_age(age_years: int, age_months: int) -> str:
    """ISO 8601 duration for an age, e.g. (25, 3) -> 'P25Y3M', (0, 0) -> 'P0M'."""
    parts = ""
    if age_years:
        parts += f"{age_years}Y"
    if age_months or not parts:
        parts += f"{age_months}M"
    return f"P{parts}"


def build_phenopacket(session: PredictionSession, subject_id: str = "patient") -> Phenopacket:
    """
    Build a Phenopacket for the session's patient:
      - subject age at last encounter
      - one observed phenotypic feature per resolved symptom (deduplicated, input order)
    """
    phenopacket = Phenopacket()
    phenopacket.id = session.prediction_id or subject_id
    phenopacket.subject.id = subject_id
    phenopacket.subject.time_at_last_encounter.age.iso8601duration = iso8601_age(
        session.age_years, session.age_months
    )

    seen = set()
    for symptom in session.selected_symptoms:
        if not symptom.is_resolved:
            continue
        curie = normalize_hpo_id(symptom.id)
        if not is_canonical_hpo_id(curie):
            raise ValueError(f"Symptom {symptom.name!r} has a malformed HPO ID {symptom.id!r}")
        term_id = hpotk.TermId.from_curie(curie)
        if term_id.value in seen:
            continue
        seen.add(term_id.value)
        feature = phenopacket.phenotypic_features.add()
        feature.type.id = term_id.value
        feature.type.label = symptom.name

    meta_data = phenopacket.meta_data
    meta_data.created_by = "RDX"
    meta_data.phenopacket_schema_version = "2.0"
    resource = meta_data.resources.add()
    resource.id = "hp"
    resource.name = "human phenotype ontology"
    resource.namespace_prefix = "HP"
    resource.url = "http://purl.obolibrary.org/obo/hp.owl"
    resource.iri_prefix = "http://purl.obolibrary.org/obo/HP_"
    return phenopacket


def write_phenopacket(session: PredictionSession, path: str, subject_id: str = "patient") -> pathlib.Path:
    out = pathlib.Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as out_f:
        out_f.write(MessageToJson(build_phenopacket(session, subject_id)))
    return out
