"""
PTM site report parsing and validation.

Turns the uploaded tab-separated report into typed RawObservation records.
Column names follow the Spectronaut PTM site report (``PTM.ProteinId``,
``PTM.SiteLocation``, ...); a header may also use the bare name
(``ProteinId``).

Structural problems (undecodable text, no header, missing required columns)
raise StructuralValidationError before any row is looked at. Problems with a
single row are collected as RowValidationError and the row is skipped.
"""

import csv
import io
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple, Union

import pandas as pd

from ptm_explorer.errors import MissingColumns, RowValidationError, StructuralValidationError

from .observations import RawObservation

logger = logging.getLogger(__name__)

PROTEIN_ID = "PTM.ProteinId"
SITE_LOCATION = "PTM.SiteLocation"
SITE_AA = "PTM.SiteAA"
MODIFICATION_TITLE = "PTM.ModificationTitle"
SITE_PROBABILITY = "PTM.SiteProbability"
QUANTITY = "PTM.Quantity"
FLANKING_REGION = "PTM.FlankingRegion"
MULTIPLICITY = "PTM.Multiplicity"
FILE_NAME = "R.FileName"
CONDITION = "R.Condition"
PROTEIN_NAMES = "PG.ProteinNames"
GENES = "PG.Genes"
ORGANISMS = "PG.Organisms"

REQUIRED_COLUMNS = (PROTEIN_ID, SITE_LOCATION, SITE_AA, MODIFICATION_TITLE)
OPTIONAL_COLUMNS = (
    SITE_PROBABILITY,
    QUANTITY,
    FLANKING_REGION,
    MULTIPLICITY,
    FILE_NAME,
    CONDITION,
    PROTEIN_NAMES,
    GENES,
    ORGANISMS,
)

# Spectronaut writes these in place of a missing quantity
MISSING_VALUE_TOKENS = {"", "nan", "na", "n/a", "filtered"}


@dataclass
class ProteinMetadata:
    protein_name: Optional[str] = None
    gene_name: Optional[str] = None
    organism: Optional[str] = None


@dataclass
class ParsedUpload:
    observations: List[RawObservation] = field(default_factory=list)
    protein_metadata: Dict[str, ProteinMetadata] = field(default_factory=dict)
    row_errors: List[RowValidationError] = field(default_factory=list)
    total_rows: int = 0

    @property
    def accessions(self) -> List[str]:
        return list(self.protein_metadata)


# ------------------------------------------------------------------
# Table reading
# ------------------------------------------------------------------

def _widest_line(text: str) -> int:
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return max(line.count("\t") for line in lines) + 1


def read_table(content: Union[bytes, str]) -> Tuple[pd.DataFrame, Set[int]]:
    """Read TSV text into a string-typed frame with trimmed headers and no blank rows.

    Quote characters are kept literally. Also returns the positions of rows
    carrying non-empty fields beyond the header width; those rows are left in
    the frame truncated to the header so row numbering stays intact.
    """
    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise StructuralValidationError(f"File is not valid UTF-8 text: {e}") from e
    else:
        text = content

    if not text.strip():
        raise StructuralValidationError("File is empty")

    try:
        raw = pd.read_csv(
            io.StringIO(text),
            sep="\t",
            header=None,
            names=range(_widest_line(text)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            quoting=csv.QUOTE_NONE,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise StructuralValidationError(f"Failed to parse TSV file: {e}") from e

    if raw.empty:
        raise StructuralValidationError("File has no header row")

    # Short lines are padded with NaN, so the header ends at its last real field
    header = raw.iloc[0]
    width = max(i for i, value in enumerate(header) if pd.notna(value)) + 1

    body = raw.iloc[1:].fillna("")
    df = body.iloc[:, :width].copy()
    df.columns = [str(c).strip() for c in header.iloc[:width].fillna("")]
    if not len(df):
        return df.reset_index(drop=True), set()

    overflow = pd.Series(False, index=body.index)
    if body.shape[1] > width:
        overflow = body.iloc[:, width:].apply(lambda r: any(v.strip() for v in r), axis=1)

    # Lines holding nothing but delimiters count as empty too
    blank = df.apply(lambda r: all(not v.strip() for v in r), axis=1) & ~overflow
    df = df[~blank].reset_index(drop=True)
    overflow = overflow[~blank].reset_index(drop=True)
    return df, {int(i) for i in overflow[overflow].index}


def resolve_columns(headers: List[str]) -> Dict[str, str]:
    """Map canonical column names to the header actually present in the file."""
    present = set(headers)
    resolved: Dict[str, str] = {}
    for canonical in REQUIRED_COLUMNS + OPTIONAL_COLUMNS:
        bare = canonical.split(".", 1)[1]
        if canonical in present:
            resolved[canonical] = canonical
        elif bare in present:
            resolved[canonical] = bare
    return resolved


def check_required_columns(columns: Dict[str, str]) -> None:
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if missing:
        raise MissingColumns(missing)


# ------------------------------------------------------------------
# Field parsing
# ------------------------------------------------------------------

def _is_missing(value: str) -> bool:
    return value.strip().lower() in MISSING_VALUE_TOKENS


def _parse_int(value: str, column: str) -> int:
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        raise ValueError(f"{column} must be an integer, got '{text}'")
    if not math.isfinite(number) or number != int(number):
        raise ValueError(f"{column} must be an integer, got '{text}'")
    return int(number)


def _parse_float(value: str, column: str) -> float:
    text = value.strip()
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"{column} must be a number, got '{text}'")


def _first_entry(value: str) -> Optional[str]:
    first = value.split(";")[0].strip()
    return first or None


def parse_row(row: Dict[str, str], columns: Dict[str, str]) -> RawObservation:
    """Validate one row. Raises ValueError with a user-facing message."""

    def get(canonical: str) -> str:
        header = columns.get(canonical)
        if header is None:
            return ""
        return str(row.get(header, "") or "")

    uniprot_id = get(PROTEIN_ID).strip()
    if not uniprot_id:
        raise ValueError(f"Missing {PROTEIN_ID}")

    if not get(SITE_LOCATION).strip():
        raise ValueError(f"Missing {SITE_LOCATION}")
    site_location = _parse_int(get(SITE_LOCATION), SITE_LOCATION)
    if site_location < 1:
        raise ValueError(f"{SITE_LOCATION} must be >= 1, got {site_location}")

    modification_type = get(MODIFICATION_TITLE).strip()
    if not modification_type:
        raise ValueError(f"Missing {MODIFICATION_TITLE}")

    site_aa = get(SITE_AA).strip()
    if site_aa and (len(site_aa) != 1 or not site_aa.isalpha()):
        raise ValueError(f"{SITE_AA} must be a single residue letter, got '{site_aa}'")

    site_probability = None
    if not _is_missing(get(SITE_PROBABILITY)):
        site_probability = _parse_float(get(SITE_PROBABILITY), SITE_PROBABILITY)
        if not (0.0 <= site_probability <= 1.0):
            raise ValueError(f"{SITE_PROBABILITY} must be between 0 and 1, got {site_probability}")

    quantity = None
    if not _is_missing(get(QUANTITY)):
        quantity = _parse_float(get(QUANTITY), QUANTITY)

    multiplicity = 1
    if get(MULTIPLICITY).strip():
        multiplicity = _parse_int(get(MULTIPLICITY), MULTIPLICITY)
        if multiplicity < 1:
            raise ValueError(f"{MULTIPLICITY} must be >= 1, got {multiplicity}")

    return RawObservation(
        uniprot_id=uniprot_id,
        site_location=site_location,
        modification_type=modification_type,
        site_aa=site_aa.upper(),
        site_probability=site_probability,
        quantity=quantity,
        flanking_region=get(FLANKING_REGION).strip() or None,
        multiplicity=multiplicity,
        experiment_name=get(FILE_NAME).strip() or None,
        condition=get(CONDITION).strip() or None,
    )


def _row_metadata(row: Dict[str, str], columns: Dict[str, str]) -> ProteinMetadata:
    def first(canonical: str) -> Optional[str]:
        header = columns.get(canonical)
        return _first_entry(str(row.get(header, "") or "")) if header else None

    organism = None
    if ORGANISMS in columns:
        organism = str(row.get(columns[ORGANISMS], "") or "").strip() or None
    return ProteinMetadata(
        protein_name=first(PROTEIN_NAMES),
        gene_name=first(GENES),
        organism=organism,
    )


# ------------------------------------------------------------------
# Public entry point
# ------------------------------------------------------------------

def parse_ptm_report(content: Union[bytes, str]) -> ParsedUpload:
    """Parse and validate a PTM site report.

    Raises StructuralValidationError (MissingColumns included) when the file
    cannot be ingested; row-level problems end up in ``row_errors``.
    """
    df, overflow_rows = read_table(content)
    columns = resolve_columns(list(df.columns))
    check_required_columns(columns)

    parsed = ParsedUpload(total_rows=len(df))
    for index, row in enumerate(df.to_dict(orient="records"), start=1):
        if index - 1 in overflow_rows:
            parsed.row_errors.append(RowValidationError(
                index, f"Row has more fields than the {len(df.columns)}-column header"
            ))
            continue
        try:
            observation = parse_row(row, columns)
        except ValueError as e:
            parsed.row_errors.append(RowValidationError(index, str(e)))
            continue

        parsed.observations.append(observation)
        if observation.uniprot_id not in parsed.protein_metadata:
            parsed.protein_metadata[observation.uniprot_id] = _row_metadata(row, columns)

    logger.info(
        f"Parsed {parsed.total_rows:,} rows: {len(parsed.observations):,} accepted, "
        f"{len(parsed.row_errors):,} rejected, {len(parsed.protein_metadata):,} proteins"
    )
    return parsed
