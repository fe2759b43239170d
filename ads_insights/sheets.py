"""
Spreadsheet backends.

Both workbooks expose the same duck-typed surface so the pipeline does not
care where the ads data lives:

  title, read_values, read_display_column, write_block, clear_block,
  replace_table, delete_sheet, last_row, last_column

Rows and columns are 1-based, as in the sheet UI.
"""
from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, List, Optional

import gspread
from gspread.utils import ValueRenderOption, rowcol_to_a1
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from .config import Settings

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

# light grey banding, matching the default "applyRowBanding" look
HEADER_RGB = "BDBDBD"
FIRST_BAND_RGB = "FFFFFF"
SECOND_BAND_RGB = "F3F3F3"


class SheetNotFoundError(LookupError):
    pass


def _a1_range(first_row: int, first_col: int, last_row: int, last_col: int) -> str:
    return f"{rowcol_to_a1(first_row, first_col)}:{rowcol_to_a1(last_row, last_col)}"


def _rgb(hex_rgb: str) -> dict:
    return {
        "red": int(hex_rgb[0:2], 16) / 255.0,
        "green": int(hex_rgb[2:4], 16) / 255.0,
        "blue": int(hex_rgb[4:6], 16) / 255.0,
    }

# ----------------------------
# Google Sheets (gspread)
# ----------------------------
class GoogleSheetsWorkbook:
    def __init__(self, spreadsheet: gspread.Spreadsheet):
        self.spreadsheet = spreadsheet

    @classmethod
    def open(cls, key_or_url: str, service_account_file: Optional[str] = None) -> "GoogleSheetsWorkbook":
        if service_account_file:
            gc = gspread.service_account(filename=service_account_file, scopes=SCOPES)
        else:
            gc = gspread.oauth(scopes=SCOPES)
        if key_or_url.startswith("http"):
            sh = gc.open_by_url(key_or_url)
        else:
            sh = gc.open_by_key(key_or_url)
        return cls(sh)

    @property
    def title(self) -> str:
        return self.spreadsheet.title

    def _sheet(self, name: str) -> gspread.Worksheet:
        try:
            return self.spreadsheet.worksheet(name)
        except gspread.WorksheetNotFound as e:
            raise SheetNotFoundError(f"Sheet '{name}' not found in '{self.title}'") from e

    def _find(self, name: str) -> Optional[gspread.Worksheet]:
        try:
            return self.spreadsheet.worksheet(name)
        except gspread.WorksheetNotFound:
            return None

    def read_values(self, name: str) -> List[List[Any]]:
        return self._sheet(name).get_all_values(value_render_option=ValueRenderOption.unformatted)

    def read_display_column(self, name: str, col: int) -> List[str]:
        return self._sheet(name).col_values(col)

    def last_row(self, name: str) -> int:
        return len(self._sheet(name).get_all_values())

    def last_column(self, name: str) -> int:
        values = self._sheet(name).get_all_values()
        return max((len(r) for r in values), default=0)

    def write_block(self, name: str, first_row: int, first_col: int, rows: List[List[Any]]) -> None:
        if not rows:
            return
        ws = self._sheet(name)
        rng = _a1_range(first_row, first_col, first_row + len(rows) - 1, first_col + len(rows[0]) - 1)
        ws.update(values=rows, range_name=rng)

    def clear_block(self, name: str, first_row: int, first_col: int, last_row: int, last_col: int) -> None:
        if last_row < first_row or last_col < first_col:
            return
        self._sheet(name).batch_clear([_a1_range(first_row, first_col, last_row, last_col)])

    def _banding_requests(self, ws: gspread.Worksheet) -> List[dict]:
        meta = self.spreadsheet.fetch_sheet_metadata()
        out = []
        for sheet in meta.get("sheets", []):
            if sheet.get("properties", {}).get("sheetId") != ws.id:
                continue
            for band in sheet.get("bandedRanges", []):
                out.append({"deleteBanding": {"bandedRangeId": band["bandedRangeId"]}})
        return out

    def replace_table(self, name: str, rows: List[List[Any]]) -> None:
        ws = self._find(name)
        if ws is None:
            ws = self.spreadsheet.add_worksheet(title=name, rows=max(len(rows), 100), cols=max(len(rows[0]) if rows else 0, 26))
        ws.clear()
        ws.clear_basic_filter()
        cleanup = self._banding_requests(ws)
        if cleanup:
            self.spreadsheet.batch_update({"requests": cleanup})
        if not rows:
            logger.info("%s: nothing to write", name)
            return

        n_rows, n_cols = len(rows), len(rows[0])
        rng = _a1_range(1, 1, n_rows, n_cols)
        ws.update(values=rows, range_name=rng)
        self.spreadsheet.batch_update({"requests": [{
            "addBanding": {
                "bandedRange": {
                    "range": {
                        "sheetId": ws.id,
                        "startRowIndex": 0, "endRowIndex": n_rows,
                        "startColumnIndex": 0, "endColumnIndex": n_cols,
                    },
                    "rowProperties": {
                        "headerColor": _rgb(HEADER_RGB),
                        "firstBandColor": _rgb(FIRST_BAND_RGB),
                        "secondBandColor": _rgb(SECOND_BAND_RGB),
                    },
                }
            }
        }]})
        ws.set_basic_filter(rng)
        logger.info("%s: wrote %d row(s)", name, n_rows - 1)

    def delete_sheet(self, name: str) -> bool:
        ws = self._find(name)
        if ws is None:
            return False
        self.spreadsheet.del_worksheet(ws)
        return True

# ----------------------------
# Local workbook (openpyxl)
# ----------------------------
def _recreate_sheet(wb: Workbook, name: str):
    if name in wb.sheetnames:
        idx = wb.index(wb[name])
        wb.remove(wb[name])
        return wb.create_sheet(name, idx)
    return wb.create_sheet(name)


class ExcelWorkbook:
    """
    Two handles on the same file: `workbook` keeps formulas and is the one
    saved, `values` holds the cached results Excel stored for them and is
    the one read. Writes go to both so reads see them within a run.

    openpyxl does not evaluate formulas, so once this class has saved the
    file their cached results are gone until Excel recalculates it.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.workbook = load_workbook(self.path)
        self.values = load_workbook(self.path, data_only=True)

    @classmethod
    def open(cls, path: str) -> "ExcelWorkbook":
        p = Path(path).expanduser()
        if not p.exists():
            raise FileNotFoundError(f"Workbook not found: {p}")
        return cls(p)

    @property
    def title(self) -> str:
        return self.path.name

    def _sheet(self, name: str, wb: Optional[Workbook] = None):
        wb = self.workbook if wb is None else wb
        if name not in wb.sheetnames:
            raise SheetNotFoundError(f"Sheet '{name}' not found in '{self.title}'")
        return wb[name]

    def _save(self) -> None:
        self.workbook.save(self.path)

    def read_values(self, name: str) -> List[List[Any]]:
        ws = self._sheet(name, self.values)
        return [["" if v is None else v for v in r] for r in ws.iter_rows(values_only=True)]

    def read_display_column(self, name: str, col: int) -> List[str]:
        ws = self._sheet(name, self.values)
        out = [ws.cell(row=r, column=col).value for r in range(1, ws.max_row + 1)]
        while out and out[-1] is None:
            out.pop()
        return ["" if v is None else str(v) for v in out]

    def last_row(self, name: str) -> int:
        return self._sheet(name).max_row

    def last_column(self, name: str) -> int:
        return self._sheet(name).max_column

    def write_block(self, name: str, first_row: int, first_col: int, rows: List[List[Any]]) -> None:
        if not rows:
            return
        for ws in (self._sheet(name), self._sheet(name, self.values)):
            for i, row in enumerate(rows):
                for j, value in enumerate(row):
                    ws.cell(row=first_row + i, column=first_col + j, value=value)
        self._save()

    def clear_block(self, name: str, first_row: int, first_col: int, last_row: int, last_col: int) -> None:
        for ws in (self._sheet(name), self._sheet(name, self.values)):
            for r in range(first_row, last_row + 1):
                for c in range(first_col, last_col + 1):
                    ws.cell(row=r, column=c).value = None
        self._save()

    def replace_table(self, name: str, rows: List[List[Any]]) -> None:
        # recreating the sheet drops old values, fills and the auto filter
        ws = _recreate_sheet(self.workbook, name)
        cached = _recreate_sheet(self.values, name)

        if not rows:
            self._save()
            logger.info("%s: nothing to write", name)
            return

        header_fill = PatternFill("solid", fgColor=HEADER_RGB)
        bands = [PatternFill("solid", fgColor=FIRST_BAND_RGB), PatternFill("solid", fgColor=SECOND_BAND_RGB)]
        for i, row in enumerate(rows, start=1):
            for j, value in enumerate(row, start=1):
                cached.cell(row=i, column=j, value=value)
                cell = ws.cell(row=i, column=j, value=value)
                if i == 1:
                    cell.font = Font(bold=True)
                    cell.fill = header_fill
                else:
                    cell.fill = bands[i % 2]
        ws.auto_filter.ref = f"A1:{get_column_letter(len(rows[0]))}{len(rows)}"
        self._save()
        logger.info("%s: wrote %d row(s)", name, len(rows) - 1)

    def delete_sheet(self, name: str) -> bool:
        if name not in self.workbook.sheetnames:
            return False
        self.workbook.remove(self.workbook[name])
        if name in self.values.sheetnames:
            self.values.remove(self.values[name])
        self._save()
        return True



def open_workbook(settings: Settings):
    target = settings.spreadsheet
    if not target:
        raise ValueError("No spreadsheet configured; pass --spreadsheet or set ADS_SPREADSHEET.")
    if target.lower().endswith((".xlsx", ".xlsm")):
        return ExcelWorkbook.open(target)
    return GoogleSheetsWorkbook.open(target, settings.service_account_file)
