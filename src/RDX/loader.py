import pathlib
import typing

import pandas as pd

from .phenotype import SymptomSelection, normalize_hpo_id

# Column headers that mean the same thing → target field
RENAME_MAP = {
    "hpo": "hpo_id",
    "hpoid": "hpo_id",
    "id": "hpo_id",
    "code": "hpo_id",
    "hpo_name": "name",
    "symptom": "name",
    "label": "name",
}


def read_table(path: str) -> pd.DataFrame:
    """
    Read a CSV, TSV or Excel (first sheet) table:
      - normalize all headers to snake_case lowercase
      - apply renames from RENAME_MAP
    """
    suffix = pathlib.Path(path).suffix.lower()
    if suffix in (".xlsx", ".xls"):
        df = pd.read_excel(path, sheet_name=0, header=0, engine="openpyxl", dtype=str)
    elif suffix in (".tsv", ".tab"):
        df = pd.read_csv(path, sep="\t", dtype=str)
    else:
        df = pd.read_csv(path, dtype=str)

    df.columns = (
        df.columns.str.strip()
        .str.replace(r"\s*\(.*?\)", "", regex=True)  # drop any "(…)"
        .str.replace(r"\s+", "_", regex=True)  # spaces → underscore
        .str.lower()
    )
    return df.rename(columns={orig: target for orig, target in RENAME_MAP.items() if orig in df.columns})


def load_symptom_table(path: str) -> typing.List[typing.Union[SymptomSelection, str]]:
    """
    Load symptom selections from a table with an `hpo_id` and/or a `name` column.

    - rows with an HPO ID → SymptomSelection
    - rows with only a name → the plain name, resolved later against a phenotype catalog
    - empty rows are skipped
    """
    df = read_table(path)
    if "hpo_id" not in df.columns and "name" not in df.columns:
        raise ValueError(f"{path}: expected an 'hpo_id' and/or 'name' column, got {list(df.columns)}")

    selections: typing.List[typing.Union[SymptomSelection, str]] = []
    for _, row in df.iterrows():
        hpo_id = _cell(row, "hpo_id")
        name = _cell(row, "name")
        if hpo_id:
            selections.append(SymptomSelection(id=normalize_hpo_id(hpo_id), name=name or normalize_hpo_id(hpo_id)))
        elif name:
            selections.append(name)
    return selections


def _cell(row: pd.Series, column: str) -> str:
    value = row.get(column)
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()
