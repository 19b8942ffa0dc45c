"""
Command-line interface for the RDX triage client.

Typical flow:
    rdx map-text "recurrent seizures and short stature"
    rdx predict -s HP:0001250 -s HP:0004322 -s HP:0001263 --age-years 25
    rdx disease 1
    rdx info "Dravet syndrome"
"""

import logging
import pathlib
import re
import sys
import typing

import click
import requests
from stairval.notepad import create_notepad

from .catalog import PhenotypeCatalog, download_hpo_release, local_catalog
from .client import RDXApiError, RDXClient, connected_terms_for
from .config import Settings
from .disease import DiseaseCandidate
from .export import candidates_to_frame, write_phenopacket, write_results
from .fallback import NoPhenotypesError, predict_with_fallback, submit_prediction
from .loader import load_symptom_table
from .mapper import PredictionMapper, Selection
from .phenotype import SymptomSelection, normalize_hpo_id
from .registry import default_registry
from .session import PredictionSession, SessionStore
from .validation import validate_prediction_input

LOGGER = logging.getLogger(__name__)

# "HP:0001250", "hp0001250", "0001250"
_HPO_LIKE = re.compile(r"^(?:HP:?)?\d+$", re.IGNORECASE)


def configure_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


@click.group()
@click.option("--debug", is_flag=True, help="Show debug logging")
def main(debug: bool = False):
    """RDX: rare-disease triage from age and HPO-coded symptoms."""
    configure_logging(debug)


@main.command(name="download")
@click.option(
    "-o",
    "--output",
    default=None,
    type=click.Path(dir_okay=False),
    help="where to save hp.json (default: <state dir>/hp.json, picked up by predict)",
)
@click.option("-v", "--hpo-version", default=None, help="HPO release tag, e.g. 2025-03-03; latest if omitted")
def download(output: typing.Optional[str], hpo_version: typing.Optional[str]):
    """
    Fetch an HPO JSON release; symptom labels given to `predict` are then resolved against it.
    """
    settings = Settings.from_env()
    dest = pathlib.Path(output) if output else settings.hpo_file
    try:
        out = download_hpo_release(dest, hpo_version, timeout=settings.timeout)
    except (requests.RequestException, KeyError) as e:
        _fail(f"Failed to download HPO release: {e}")
    click.echo(f"Saved HPO JSON to {out}")


@main.command(name="predict")
@click.option("-s", "--symptom", "symptoms", multiple=True, help="HPO ID (HP:0001250) or catalog label; repeatable")
@click.option(
    "-f",
    "--symptoms-file",
    type=click.Path(exists=True, dir_okay=False),
    help="CSV/TSV/Excel table with 'hpo_id' and/or 'name' columns",
)
@click.option("-t", "--text", "free_text", default=None, help="free-text description mapped to HPO terms first")
@click.option("--age-years", type=int, required=True, help="patient age, whole years")
@click.option("--age-months", type=int, default=0, show_default=True, help="patient age, remaining months")
@click.option(
    "-hpo",
    "--custom-hpo",
    "hpo_path",
    type=click.Path(exists=True, dir_okay=False),
    help="HPO JSON used to resolve symptom labels (default: the release saved by `rdx download`)",
)
@click.option("--remote-catalog", is_flag=True, help="resolve symptom labels against the remote phenotype catalog")
@click.option("--fallback/--no-fallback", default=True, help="show demo data when the prediction service fails")
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="also write results to CSV/TSV/XLSX")
def predict(
    symptoms: typing.Tuple[str, ...],
    symptoms_file: typing.Optional[str],
    free_text: typing.Optional[str],
    age_years: int,
    age_months: int,
    hpo_path: typing.Optional[str],
    remote_catalog: bool,
    fallback: bool,
    output: typing.Optional[str],
):
    """
    Submit age + symptoms to the prediction service and list ranked candidate diseases.
    """
    settings = Settings.from_env()
    client = RDXClient(settings)

    # 1) Collect selections from options, table and free text
    selections: typing.List[Selection] = [_parse_symptom_option(s) for s in symptoms]
    if symptoms_file:
        selections.extend(load_symptom_table(symptoms_file))
    if free_text:
        try:
            mapped = client.map_text(free_text)
        except RDXApiError as e:
            _fail(f"Failed to map symptoms: {e}")
        if not mapped:
            click.echo(f"No matching HPO terms found for {free_text!r}", err=True)
        selections.extend(mapped)

    # 2) Catalog for label lookups, only if needed
    catalog = _load_catalog(settings, client, hpo_path, remote_catalog, selections)

    # 3) Validate before touching the network
    notepad = create_notepad("prediction-input")
    ok = validate_prediction_input(age_years, age_months, selections, notepad, catalog)
    _report_issues(notepad)
    if not ok:
        sys.exit(1)

    # 4) Submit
    mapper = PredictionMapper(default_registry)
    age = age_years * 12 + age_months
    try:
        if fallback:
            outcome = predict_with_fallback(client, mapper, selections, age, catalog)
        else:
            outcome = submit_prediction(client, mapper, selections, age, catalog)
    except NoPhenotypesError as e:
        _fail(str(e))
    except RDXApiError as e:
        _fail(f"Prediction failed: {e}")

    if outcome.is_fallback:
        click.echo(click.style("Prediction service unavailable; showing demo data.", fg="yellow"))

    # 5) Persist for later `disease`, `resume` and `export-phenopacket` calls
    session = SessionStore(settings.state_file).save(
        PredictionSession(
            prediction_id=outcome.session_token,
            age_years=age_years,
            age_months=age_months,
            selected_symptoms=tuple(_as_selections(selections, catalog)),
            predictions=outcome.candidates,
        )
    )

    _print_candidates(session.predictions)
    click.echo(f"Prediction ID: {session.prediction_id}")
    if output:
        out = write_results(session.predictions, output)
        click.echo(f"Wrote {len(session.predictions)} candidates to {out}")


@main.command(name="map-text")
@click.argument("text")
def map_text(text: str):
    """Map a free-text symptom description to HPO terms."""
    client = RDXClient(Settings.from_env())
    try:
        terms = client.map_text(text)
    except (RDXApiError, ValueError) as e:
        _fail(f"Failed to map symptoms: {e}")
    if not terms:
        click.echo("No matching HPO terms found")
        return
    for term in terms:
        click.echo(f"{normalize_hpo_id(term.id)}\t{term.name}")


@main.command(name="search")
@click.argument("query")
@click.option("-n", "--limit", type=int, default=20, show_default=True)
@click.option(
    "-hpo",
    "--custom-hpo",
    "hpo_path",
    type=click.Path(exists=True, dir_okay=False),
    help="filter a local HPO JSON instead of querying the catalog service",
)
def search(query: str, limit: int, hpo_path: typing.Optional[str]):
    """Search the phenotype catalog."""
    if hpo_path:
        terms = PhenotypeCatalog.from_hpo_file(hpo_path).filter(query, limit=limit)
    else:
        try:
            terms = RDXClient(Settings.from_env()).search_phenotypes(query, limit=limit)
        except RDXApiError as e:
            _fail(f"Failed to search phenotypes: {e}")
    if not terms:
        click.echo("No phenotypes found")
        return
    for term in terms[:limit]:
        click.echo(f"{term.hpoid}\t{term.name}")


@main.command(name="disease")
@click.argument("disease")
def disease(disease: str):
    """
    Show every phenotype of a candidate disease from the last prediction, with match status.
    DISEASE is a rank, a display id (disease-1) or a name.
    """
    settings = Settings.from_env()
    session = _require_session(settings)
    candidate = _require_candidate(session, disease)

    session.rehydrate(default_registry)
    try:
        merged = RDXClient(settings).fetch_disease_symptoms(candidate, session.prediction_id, default_registry)
    except RDXApiError as e:
        _fail(f"Failed to load disease symptoms: {e}")

    click.echo(f"{merged.disease_name}: {merged.matched_symptoms}/{merged.total_symptoms} phenotypes matched")
    for symptom in sorted(merged.symptoms, key=lambda s: not s.matched):
        mark = click.style("✓", fg="green") if symptom.matched else " "
        click.echo(f"  [{mark}] {normalize_hpo_id(symptom.hpo_id)}\t{symptom.hpo_name}")


@main.command(name="related")
@click.argument("hpo_id")
@click.option("--disease", "disease_ref", default=None, help="use related terms embedded in this candidate")
def related(hpo_id: str, disease_ref: typing.Optional[str]):
    """List terms related to a phenotype within the last prediction session."""
    settings = Settings.from_env()
    session = _require_session(settings)
    wanted = normalize_hpo_id(hpo_id)

    detail = None
    if disease_ref:
        candidate = _require_candidate(session, disease_ref)
        detail = next((d for d in candidate.hpo_details if d.normalized_id == wanted), None)
    try:
        if detail is not None:
            terms = connected_terms_for(detail, RDXClient(settings), session.prediction_id)
        else:
            terms = RDXClient(settings).get_related_terms(wanted, session.prediction_id)
    except RDXApiError as e:
        _fail(f"Failed to load related terms: {e}")

    if not terms:
        click.echo("No related terms found")
        return
    for term in terms:
        score = f"\t{term.score:.2f}" if term.score is not None else ""
        click.echo(f"{normalize_hpo_id(term.hpo_id)}\t{term.hpo_name}\t{term.relation}{score}")


@main.command(name="info")
@click.argument("disease_name")
def info(disease_name: str):
    """Show descriptive information about a disease."""
    settings = Settings.from_env()
    try:
        disease_info = RDXClient(settings).get_disease_info(disease_name)
    except RDXApiError as e:
        _fail(f"Failed to load disease information: {e}")

    click.echo(click.style(disease_info.disease_name or disease_name, bold=True))
    if disease_info.orpha_id:
        click.echo(f"ORPHA:{disease_info.orpha_id}")
    for title, text in disease_info.sections():
        click.echo("")
        click.echo(click.style(title, fg="cyan"))
        click.echo(text)
    for link in disease_info.resources:
        click.echo(f"- {link.title}: {link.url}")


@main.command(name="resume")
def resume():
    """Show the last prediction again, if it is less than 24 hours old."""
    session = _require_session(Settings.from_env())
    symptoms = ", ".join(s.name for s in session.selected_symptoms)
    click.echo(f"Age: {session.age_years}y {session.age_months}m; symptoms: {symptoms}")
    _print_candidates(session.predictions)
    click.echo(f"Prediction ID: {session.prediction_id}")


@main.command(name="export-phenopacket")
@click.option("-o", "--output", required=True, type=click.Path(dir_okay=False), help="where to write the JSON")
@click.option("--subject-id", default="patient", show_default=True)
def export_phenopacket(output: str, subject_id: str):
    """Write the last prediction's age and symptoms as a GA4GH Phenopacket."""
    session = _require_session(Settings.from_env())
    try:
        out = write_phenopacket(session, output, subject_id=subject_id)
    except ValueError as e:
        _fail(f"Cannot export phenopacket: {e}")
    click.echo(f"Wrote phenopacket to {out}")


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------


def _fail(message: str) -> typing.NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _report_issues(notepad):
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in input:")
        for err in notepad.errors():
            click.echo(f"- {err.message}")
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in input:")
        for w in notepad.warnings():
            click.echo(f"- {w.message}")


def _parse_symptom_option(value: str) -> Selection:
    # HPO-looking values are selections; anything else is a label for catalog lookup
    value = value.strip()
    if _HPO_LIKE.match(value):
        code = normalize_hpo_id(value)
        return SymptomSelection(id=code, name=code)
    return value


def _load_catalog(
    settings: Settings,
    client: RDXClient,
    hpo_path: typing.Optional[str],
    remote_catalog: bool,
    selections: typing.Sequence[Selection],
) -> typing.Optional[PhenotypeCatalog]:
    if not any(isinstance(s, str) for s in selections):
        return None
    if remote_catalog and not hpo_path:
        try:
            return client.list_phenotypes()
        except RDXApiError as e:
            _fail(f"Failed to load phenotype catalog: {e}")
    catalog = local_catalog(settings.hpo_file, hpo_path)
    if catalog is None:
        LOGGER.warning("Symptom labels given but no HPO release is available; run `rdx download` or pass --custom-hpo")
    return catalog


def _as_selections(
    selections: typing.Sequence[Selection], catalog: typing.Optional[PhenotypeCatalog]
) -> typing.List[SymptomSelection]:
    out = []
    for selection in selections:
        if isinstance(selection, SymptomSelection):
            out.append(selection)
            continue
        term = catalog.find_by_name(selection) if catalog is not None else None
        out.append(SymptomSelection(term.hpoid, term.name) if term else SymptomSelection.placeholder(selection))
    return out


def _require_session(settings: Settings) -> PredictionSession:
    session = SessionStore(settings.state_file).load()
    if session is None:
        _fail("No stored prediction (or it is older than 24 hours); run `rdx predict` first")
    return session


def _require_candidate(session: PredictionSession, disease: str) -> DiseaseCandidate:
    candidate = session.find_candidate(disease)
    if candidate is None:
        _fail(f"No candidate {disease!r} in prediction {session.prediction_id}")
    return candidate


def _print_candidates(candidates: typing.Sequence[DiseaseCandidate]):
    if not candidates:
        click.echo("No candidate diseases returned")
        return
    df = candidates_to_frame(candidates)[["rank", "name", "confidence", "match_percentage", "matched_nodes"]]
    click.echo(df.to_string(index=False))


if __name__ == "__main__":
    main()
