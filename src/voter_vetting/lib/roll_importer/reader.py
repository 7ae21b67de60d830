"""Roll file reader for CSV and Excel uploads.

Detects CSV delimiter and encoding, maps whatever headers the file uses onto
the canonical roll columns, and yields the rows in chunks.  Excel workbooks
are read one sheet at a time.
"""

import re
from collections.abc import Iterator
from pathlib import Path

import pandas as pd
from loguru import logger

from voter_vetting.lib.roll_importer.types import CANONICAL_COLUMNS

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}

# Normalized header → canonical column
COLUMN_ALIASES: dict[str, str] = {
    "first_name": "first_name",
    "fname": "first_name",
    "given_name": "first_name",
    "last_name": "last_name",
    "lname": "last_name",
    "surname": "last_name",
    "family_name": "last_name",
    "dob": "dob",
    "date_of_birth": "dob",
    "birth_date": "dob",
    "birthday": "dob",
    "birth_year": "birth_year",
    "year_of_birth": "birth_year",
    "yob": "birth_year",
    "birthyear": "birth_year",
    "jurisdiction": "jurisdiction_name",
    "jurisdiction_name": "jurisdiction_name",
    "village": "jurisdiction_name",
    "municipality": "jurisdiction_name",
    "district": "jurisdiction_name",
    "precinct_village": "jurisdiction_name",
    "voting_district": "jurisdiction_name",
    "registration_number": "registration_number",
    "voter_registration_number": "registration_number",
    "voter_reg": "registration_number",
    "reg_no": "registration_number",
    "reg_number": "registration_number",
    "vrn": "registration_number",
}

_WHITESPACE = re.compile(r"\s+")


def normalize_header(header: object) -> str:
    """Strip, lowercase, and join words with underscores."""
    return _WHITESPACE.sub("_", str(header).strip().lower())


def build_column_map(headers: list[object]) -> dict[str, str]:
    """Map file headers to canonical columns.

    The first header that resolves to a canonical column wins; later
    duplicates and unknown headers are ignored.

    Args:
        headers: Column headers as they appear in the file.

    Returns:
        Dictionary of file header → canonical column name.
    """
    mapping: dict[str, str] = {}
    taken: set[str] = set()
    for header in headers:
        canonical = COLUMN_ALIASES.get(normalize_header(header))
        if canonical is None:
            logger.debug(f"Ignoring unknown roll column: {header!r}")
            continue
        if canonical in taken:
            logger.warning(f"Column {header!r} duplicates {canonical!r}; ignoring it")
            continue
        mapping[str(header)] = canonical
        taken.add(canonical)
    return mapping


def missing_columns(column_map: dict[str, str]) -> list[str]:
    """Required canonical columns the column map does not cover."""
    present = set(column_map.values())
    missing = [name for name in ("first_name", "last_name", "jurisdiction_name") if name not in present]
    if "dob" not in present and "birth_year" not in present:
        missing.append("dob or birth_year")
    return missing


def is_excel(file_path: Path) -> bool:
    return file_path.suffix.lower() in EXCEL_SUFFIXES


def detect_delimiter(file_path: Path) -> str:
    """Detect the CSV delimiter by reading the first line.

    Args:
        file_path: Path to the CSV file.

    Returns:
        The detected delimiter character.

    Raises:
        ValueError: If the delimiter cannot be detected.
    """
    encoding = detect_encoding(file_path)
    with file_path.open("r", encoding=encoding) as f:
        first_line = f.readline()

    counts = {
        ",": first_line.count(","),
        "|": first_line.count("|"),
        "\t": first_line.count("\t"),
        ";": first_line.count(";"),
    }
    delimiter = max(counts, key=counts.get)  # type: ignore[arg-type]
    if counts[delimiter] == 0:
        msg = f"Cannot detect delimiter in {file_path}"
        raise ValueError(msg)

    logger.debug(f"Detected delimiter: {delimiter!r} for {file_path}")
    return delimiter


def detect_encoding(file_path: Path) -> str:
    """Detect file encoding by attempting to read with common encodings.

    Raises:
        ValueError: If encoding cannot be detected.
    """
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            with file_path.open("r", encoding=encoding) as f:
                f.read(8192)
            return encoding
        except UnicodeDecodeError:
            continue
    msg = f"Cannot detect encoding for {file_path}"
    raise ValueError(msg)


def list_sheets(file_path: Path) -> list[str]:
    """Sheet names of an Excel workbook; empty for CSV files."""
    if not is_excel(file_path):
        return []
    with pd.ExcelFile(file_path) as workbook:
        return [str(name) for name in workbook.sheet_names]


def _canonicalize(chunk: pd.DataFrame, column_map: dict[str, str]) -> pd.DataFrame:
    chunk = chunk.rename(columns=column_map)
    for name in CANONICAL_COLUMNS:
        if name not in chunk.columns:
            chunk[name] = None
    return chunk[list(CANONICAL_COLUMNS)]


def read_headers(file_path: Path, sheet_name: str | None = None) -> list[str]:
    """Read only the header row of a roll file."""
    if is_excel(file_path):
        frame = pd.read_excel(file_path, sheet_name=sheet_name or 0, nrows=0)
    else:
        frame = pd.read_csv(
            file_path,
            sep=detect_delimiter(file_path),
            encoding=detect_encoding(file_path),
            nrows=0,
        )
    return [str(c).strip() for c in frame.columns]


def read_roll_chunks(
    file_path: Path,
    batch_size: int = 5000,
    sheet_name: str | None = None,
) -> Iterator[pd.DataFrame]:
    """Read a roll file in chunks of canonical columns.

    CSV cells are read as strings (blank cells stay empty); Excel cells keep
    their native types so dates arrive as dates.

    Args:
        file_path: Path to a CSV or Excel file.
        batch_size: Number of rows per chunk.
        sheet_name: Excel sheet to read (first sheet when omitted).

    Yields:
        DataFrame chunks with exactly the canonical roll columns.

    Raises:
        ValueError: If the file cannot be parsed or lacks required columns.
    """
    if is_excel(file_path):
        frame = pd.read_excel(file_path, sheet_name=sheet_name or 0, dtype=object)
        frame.columns = [str(c).strip() for c in frame.columns]
        logger.info(f"Parsing {file_path} sheet={sheet_name or 0!r}, rows={len(frame)}, batch_size={batch_size}")
        chunks: Iterator[pd.DataFrame] = (
            frame.iloc[start : start + batch_size] for start in range(0, len(frame), batch_size)
        )
        headers: list[object] = list(frame.columns)
    else:
        delimiter = detect_delimiter(file_path)
        encoding = detect_encoding(file_path)
        logger.info(
            f"Parsing {file_path} with delimiter={delimiter!r}, encoding={encoding}, batch_size={batch_size}"
        )
        headers = list(read_headers(file_path))
        chunks = pd.read_csv(
            file_path,
            sep=delimiter,
            encoding=encoding,
            chunksize=batch_size,
            dtype=str,
            keep_default_na=False,
        )

    column_map = build_column_map(headers)
    missing = missing_columns(column_map)
    if missing:
        msg = f"Roll file is missing required columns: {', '.join(missing)}"
        raise ValueError(msg)

    for chunk in chunks:
        chunk.columns = [str(c).strip() for c in chunk.columns]
        yield _canonicalize(chunk, column_map)
