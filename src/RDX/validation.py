"""
Checks run before a prediction is submitted.

Issues are collected on a stairval notepad; any error blocks the submission.
"""

import typing

from stairval.notepad import Notepad

from .catalog import PhenotypeCatalog
from .phenotype import SymptomSelection

MIN_SYMPTOMS = 3
MAX_AGE_YEARS = 120


def validate_age(age_years: int, age_months: int, notepad: Notepad) -> None:
    """Age is years (0-120) plus months (0-11), at least one month and at most 120 years in total."""
    if age_years < 0 or age_years > MAX_AGE_YEARS:
        notepad.add_error(
            f"Age in years must be between 0 and {MAX_AGE_YEARS}, got {age_years}",
            solution="Enter a valid age",
        )
        return
    if age_months < 0 or age_months > 11:
        notepad.add_error(f"Months must be between 0 and 11, got {age_months}")
        return
    total = age_years * 12 + age_months
    if total < 1:
        notepad.add_error("Age must be at least one month", solution="Enter a valid age")
    elif total > MAX_AGE_YEARS * 12:
        notepad.add_error(f"Age must not exceed {MAX_AGE_YEARS} years", solution="Enter a valid age")


def validate_symptoms(
    selections: typing.Sequence[typing.Union[SymptomSelection, str]],
    notepad: Notepad,
    catalog: typing.Optional[PhenotypeCatalog] = None,
) -> None:
    resolved = 0
    for selection in selections:
        if isinstance(selection, SymptomSelection):
            if selection.is_resolved:
                resolved += 1
            else:
                notepad.add_warning(
                    f"Symptom {selection.name!r} is not mapped to an HPO term and will not be submitted",
                    solution="Map the text to HPO terms first",
                )
        elif catalog is not None and catalog.find_by_name(selection) is not None:
            resolved += 1
        else:
            notepad.add_warning(
                f"Symptom {selection!r} was not found in the phenotype catalog and will not be submitted",
                solution="Use an HPO ID or a catalog label",
            )

    if resolved < MIN_SYMPTOMS:
        notepad.add_error(
            f"Select at least {MIN_SYMPTOMS} symptoms, got {resolved}",
            solution="Add more symptoms for a reliable prediction",
        )


def validate_prediction_input(
    age_years: int,
    age_months: int,
    selections: typing.Sequence[typing.Union[SymptomSelection, str]],
    notepad: Notepad,
    catalog: typing.Optional[PhenotypeCatalog] = None,
) -> bool:
    """
    Record age and symptom problems on `notepad`.
    Returns True when the input may be submitted.
    """
    validate_age(age_years, age_months, notepad)
    validate_symptoms(selections, notepad, catalog)
    return not notepad.has_errors(include_subsections=True)
