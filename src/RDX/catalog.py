"""
Phenotype catalog.

A list of HPO terms the user can pick symptoms from. It is filled either from
the remote catalog service (see `RDXClient.list_phenotypes`) or from a local
HPO JSON release loaded with hpotk, and is used to resolve legacy plain-name
symptom selections to HPO IDs.
"""

from __future__ import annotations

import logging
import pathlib
import typing
from dataclasses import dataclass, field

import hpotk
import requests

from .phenotype import normalize_hpo_id

LOGGER = logging.getLogger(__name__)

# hpotk root of all phenotypic abnormalities; everything else (modes of inheritance,
# frequencies, ...) is not a selectable symptom
PHENOTYPIC_ABNORMALITY = "HP:0000118"

HPO_RELEASES_API = "https://api.github.com/repos/obophenotype/human-phenotype-ontology/releases"
HPO_RELEASE_ASSET = "https://github.com/obophenotype/human-phenotype-ontology/releases/download/{tag}/hp.json"


@dataclass(frozen=True)
class PhenotypeTerm:
    """
    One selectable phenotype.

    Attributes:
        hpoid: Normalized HPO identifier.
        name: Primary label.
        definition: Textual definition, if known.
        synonyms: Alternative labels.
        xrefs: Cross-references to other vocabularies (UMLS, SNOMED, ...).
    """

    hpoid: str
    name: str
    definition: str = ""
    synonyms: typing.Tuple[str, ...] = field(default_factory=tuple)
    xrefs: typing.Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict) -> "PhenotypeTerm":
        # the catalog service is inconsistent about `id` vs `hpoid`
        return cls(
            hpoid=normalize_hpo_id(str(data.get("hpoid") or data.get("id") or data.get("hpo_id") or "")),
            name=str(data.get("name") or data.get("hpo_name") or ""),
            definition=str(data.get("definition") or ""),
            synonyms=tuple(str(s) for s in data.get("synonyms") or () if s),
            xrefs=tuple(str(x) for x in data.get("xrefs") or () if x),
        )

    def matches_name(self, name: str) -> bool:
        """Case-insensitive match against the primary label or any synonym."""
        wanted = name.strip().lower()
        if not wanted:
            return False
        if self.name.lower() == wanted:
            return True
        return any(syn.lower() == wanted for syn in self.synonyms)


class PhenotypeCatalog:
    def __init__(self, terms: typing.Iterable[PhenotypeTerm]):
        self._terms: typing.List[PhenotypeTerm] = [t for t in terms if t.hpoid]
        self._by_id: typing.Dict[str, PhenotypeTerm] = {t.hpoid: t for t in self._terms}

    @classmethod
    def from_records(cls, records: typing.Iterable[dict]) -> "PhenotypeCatalog":
        return cls(PhenotypeTerm.from_dict(r) for r in records if isinstance(r, dict))

    @classmethod
    def from_ontology(cls, ontology, abnormalities_only: bool = True) -> "PhenotypeCatalog":
        """
        Build a catalog from an hpotk ontology (non-obsolete terms only).

        With `abnormalities_only`, only descendants of Phenotypic abnormality are kept;
        this needs the ontology graph, so minimal ontologies without one keep everything.
        """
        graph = getattr(ontology, "graph", None)
        root = hpotk.TermId.from_curie(PHENOTYPIC_ABNORMALITY)

        terms = []
        for term in ontology.terms:
            if getattr(term, "is_obsolete", False):
                continue
            if abnormalities_only and graph is not None and not graph.is_descendant_of(term.identifier, root):
                continue
            terms.append(_term_from_hpotk(term))
        LOGGER.debug("Loaded %d catalog terms from ontology", len(terms))
        return cls(terms)

    @classmethod
    def from_hpo_file(cls, hpo_path: str, abnormalities_only: bool = True) -> "PhenotypeCatalog":
        """Load an HPO JSON release (optionally gzipped) with hpotk."""
        return cls.from_ontology(hpotk.load_ontology(hpo_path), abnormalities_only=abnormalities_only)

    def get(self, hpo_id: str) -> typing.Optional[PhenotypeTerm]:
        return self._by_id.get(normalize_hpo_id(hpo_id))

    def find_by_name(self, name: str) -> typing.Optional[PhenotypeTerm]:
        """First term whose label or synonym equals `name` (case-insensitive)."""
        if not name:
            return None
        for term in self._terms:
            if term.matches_name(name):
                return term
        return None

    def filter(self, query: str, limit: typing.Optional[int] = None) -> typing.List[PhenotypeTerm]:
        """
        Client-side substring filter over labels, synonyms and IDs.
        An empty query returns the catalog unchanged (up to `limit`).
        """
        wanted = query.strip().lower()
        if not wanted:
            hits = list(self._terms)
        else:
            hits = [
                t
                for t in self._terms
                if wanted in t.name.lower()
                or wanted in t.hpoid.lower()
                or any(wanted in s.lower() for s in t.synonyms)
            ]
        return hits[:limit] if limit is not None else hits

    def __len__(self) -> int:
        return len(self._terms)

    def __iter__(self) -> typing.Iterator[PhenotypeTerm]:
        return iter(self._terms)


def _term_from_hpotk(term) -> PhenotypeTerm:
    # `Term` (full ontology) carries definition/synonyms/xrefs; `MinimalTerm` does not
    definition = getattr(term, "definition", None)
    if definition is not None and not isinstance(definition, str):
        definition = getattr(definition, "definition", str(definition))
    synonyms = getattr(term, "synonyms", None) or ()
    xrefs = getattr(term, "xrefs", None) or ()
    return PhenotypeTerm(
        hpoid=term.identifier.value,
        name=term.name,
        definition=definition or "",
        synonyms=tuple(s.name for s in synonyms),
        xrefs=tuple(x.value for x in xrefs),
    )


def hpo_release_tag(version: typing.Optional[str] = None, timeout: float = 30.0) -> str:
    """'2025-03-03' -> 'v2025-03-03'; no version asks GitHub for the latest release."""
    if version:
        return version if version.startswith("v") else f"v{version}"
    resp = requests.get(f"{HPO_RELEASES_API}/latest", timeout=timeout)
    resp.raise_for_status()
    return resp.json()["tag_name"]


def download_hpo_release(
    dest: pathlib.Path, version: typing.Optional[str] = None, timeout: float = 30.0
) -> pathlib.Path:
    """
    Fetch hp.json for a release into `dest`, for `PhenotypeCatalog.from_hpo_file`.
    Raises requests.RequestException on network or HTTP failures.
    """
    tag = hpo_release_tag(version, timeout)
    LOGGER.info("Downloading HPO release %s", tag)
    resp = requests.get(HPO_RELEASE_ASSET.format(tag=tag), timeout=timeout)
    resp.raise_for_status()

    dest = pathlib.Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    with open(dest, "wb") as out_f:
        out_f.write(resp.content)
    return dest


def local_catalog(
    downloaded: pathlib.Path, hpo_path: typing.Optional[str] = None
) -> typing.Optional[PhenotypeCatalog]:
    """Catalog from an explicit HPO file, else from a previously downloaded release, else None."""
    if hpo_path:
        return PhenotypeCatalog.from_hpo_file(hpo_path)
    if downloaded.is_file():
        LOGGER.debug("Using downloaded HPO release %s", downloaded)
        return PhenotypeCatalog.from_hpo_file(str(downloaded))
    return None
