"""Module to read uploaded spreadsheets into loose rows"""

from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd

from dataalchemist.log import get_logger
from dataalchemist.normalize import rows_from_frame

logger = get_logger(__name__)

CSV_SUFFIXES = (".csv", ".txt")
EXCEL_SUFFIXES = (".xlsx", ".xlsm")


class TableReadError(Exception):
    """Raised when a spreadsheet cannot be read."""


def read_frame(
    file_path: Union[str, Path], sheet_name: Optional[Union[str, int]] = None
) -> pd.DataFrame:
    """loads a CSV or Excel file into a DataFrame of raw cells.

    args:
        file_path: The path to the .csv or .xlsx file
        sheet_name: The sheet to load for Excel files (defaults to the first one)

    returns:
        A DataFrame with the header row as columns and every cell as text or number
    """
    path = Path(file_path)
    suffix = path.suffix.lower()

    try:
        if suffix in CSV_SUFFIXES:
            df = pd.read_csv(path, dtype=object, skip_blank_lines=True)
        elif suffix in EXCEL_SUFFIXES:
            df = pd.read_excel(
                path,
                sheet_name=0 if sheet_name is None else sheet_name,
                dtype=object,
                engine="openpyxl",
            )
        else:
            raise TableReadError(
                f"Unsupported file type '{suffix}' for {path.name}; "
                f"expected one of {CSV_SUFFIXES + EXCEL_SUFFIXES}"
            )
    except TableReadError:
        raise
    except Exception as e:
        raise TableReadError(f"Error reading {path.name}: {e}") from e

    # Drop rows where every cell is blank
    return df.dropna(how="all")


def read_rows(
    file_path: Union[str, Path], sheet_name: Optional[Union[str, int]] = None
) -> list[dict[str, Any]]:
    """loads a CSV or Excel file as a list of row dicts keyed by header.

    args:
        file_path: The path to the .csv or .xlsx file
        sheet_name: The sheet to load for Excel files (defaults to the first one)

    returns:
        One dict per non-empty row, blank cells as None
    """
    rows = rows_from_frame(read_frame(file_path, sheet_name))
    logger.info("Read %d row(s) from %s", len(rows), Path(file_path).name)
    return rows
