# freezer_server/app/db.py
import abc
import logging
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any

import gspread
import openpyxl

from .config import settings
from .models import SHEET_HEADERS

logger = logging.getLogger("uvicorn.error")


class StoreError(Exception):
    pass


class SheetNotFoundError(StoreError):
    def __init__(self, name: str):
        super().__init__(f"Sheet '{name}' not found.")
        self.name = name


class ColumnMappingError(StoreError):
    pass


def require_columns(table: str, headers: list[str], required: list[str]):
    """Fail before any write when the header row lacks a column we need."""
    missing = [c for c in required if c not in headers]
    if missing:
        raise ColumnMappingError(f"Sheet '{table}' is missing column(s): {', '.join(missing)}")


def _cell_text(value: Any) -> Any:
    return "" if value is None else value


def _rows_to_records(values: list[list[Any]]) -> tuple[list[str], list[dict]]:
    """Row 1 is the header row; every later row becomes header -> value.

    Trailing blank rows are dropped so the position of a record is its row key
    (sheet row = key + 2).
    """
    if not values:
        return [], []
    headers = [str(h).strip() if h is not None else "" for h in values[0]]
    body = [list(r) for r in values[1:]]
    while body and all(v is None or v == "" for v in body[-1]):
        body.pop()
    records = []
    for row in body:
        rec = {}
        for i, h in enumerate(headers):
            if not h:
                continue
            rec[h] = _cell_text(row[i]) if i < len(row) else ""
        records.append(rec)
    return [h for h in headers if h], records


class SheetStore(abc.ABC):
    """Tabular store keyed by sheet name and header row."""

    @abc.abstractmethod
    def list_rows(self, table: str) -> list[dict]:
        raise NotImplementedError

    @abc.abstractmethod
    def get_headers(self, table: str) -> list[str]:
        raise NotImplementedError

    @abc.abstractmethod
    def append_row(self, table: str, values: dict):
        raise NotImplementedError

    @abc.abstractmethod
    def update_cells(self, table: str, row_key: int, values: dict):
        raise NotImplementedError

    def update_cell(self, table: str, row_key: int, column: str, value: Any):
        self.update_cells(table, row_key, {column: value})

    @abc.abstractmethod
    def ensure_tables(self, headers: dict[str, list[str]]):
        raise NotImplementedError


class WorkbookStore(SheetStore):
    """Local .xlsx file read and written with openpyxl."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self):
        return openpyxl.load_workbook(self.path)

    def _sheet(self, wb, table: str):
        if table not in wb.sheetnames:
            raise SheetNotFoundError(table)
        return wb[table]

    def _read(self, table: str) -> tuple[list[str], list[dict]]:
        with self._lock:
            wb = self._load()
            try:
                ws = self._sheet(wb, table)
                values = [list(r) for r in ws.iter_rows(values_only=True)]
            finally:
                wb.close()
        return _rows_to_records(values)

    def list_rows(self, table: str) -> list[dict]:
        return self._read(table)[1]

    def get_headers(self, table: str) -> list[str]:
        return self._read(table)[0]

    @staticmethod
    def _header_row(ws) -> list[str]:
        if ws.max_row < 1:
            return []
        return [str(c.value).strip() if c.value is not None else "" for c in ws[1]]

    @staticmethod
    def _last_row(ws) -> int:
        for r in range(ws.max_row, 0, -1):
            if any(c.value not in (None, "") for c in ws[r]):
                return r
        return 0

    @staticmethod
    def _to_cell(value: Any) -> Any:
        return None if value == "" else value

    def append_row(self, table: str, values: dict):
        with self._lock:
            wb = self._load()
            try:
                ws = self._sheet(wb, table)
                last = self._last_row(ws)
                if last == 0:
                    headers = list(values.keys())
                    for i, h in enumerate(headers, start=1):
                        ws.cell(row=1, column=i, value=h)
                    last = 1
                else:
                    headers = self._header_row(ws)
                row = last + 1
                for i, h in enumerate(headers, start=1):
                    # columns the caller does not know about stay empty
                    ws.cell(row=row, column=i, value=self._to_cell(values.get(h, "")) if h else None)
                wb.save(self.path)
            finally:
                wb.close()

    def update_cells(self, table: str, row_key: int, values: dict):
        with self._lock:
            wb = self._load()
            try:
                ws = self._sheet(wb, table)
                headers = self._header_row(ws)
                require_columns(table, headers, list(values.keys()))
                for column, value in values.items():
                    ws.cell(row=row_key + 2, column=headers.index(column) + 1, value=self._to_cell(value))
                wb.save(self.path)
            finally:
                wb.close()

    def ensure_tables(self, headers: dict[str, list[str]]):
        with self._lock:
            if self.path.exists():
                wb = self._load()
            else:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                wb = openpyxl.Workbook()
                wb.remove(wb.active)
            try:
                changed = False
                for name, cols in headers.items():
                    if name in wb.sheetnames:
                        continue
                    ws = wb.create_sheet(title=name)
                    ws.append(cols)
                    changed = True
                    logger.info("created sheet %s in %s", name, self.path)
                if changed:
                    wb.save(self.path)
            finally:
                wb.close()


class GoogleSheetStore(SheetStore):
    """Google Spreadsheet accessed through gspread with a service account."""

    def __init__(self, spreadsheet_key: str, credentials_file: str):
        gc = gspread.service_account(filename=credentials_file)
        self.sh = gc.open_by_key(spreadsheet_key)

    def _sheet(self, table: str):
        try:
            return self.sh.worksheet(table)
        except gspread.exceptions.WorksheetNotFound:
            raise SheetNotFoundError(table) from None

    def _read(self, table: str) -> tuple[list[str], list[dict]]:
        return _rows_to_records(self._sheet(table).get_all_values())

    def list_rows(self, table: str) -> list[dict]:
        return self._read(table)[1]

    def get_headers(self, table: str) -> list[str]:
        return self._read(table)[0]

    def append_row(self, table: str, values: dict):
        ws = self._sheet(table)
        headers = [h.strip() for h in ws.row_values(1)]
        if not headers:
            headers = list(values.keys())
            ws.append_row(headers, value_input_option="RAW")
        ws.append_row([values.get(h, "") if h else "" for h in headers], value_input_option="RAW")

    def update_cells(self, table: str, row_key: int, values: dict):
        ws = self._sheet(table)
        headers = [h.strip() for h in ws.row_values(1)]
        require_columns(table, headers, list(values.keys()))
        data = []
        for column, value in values.items():
            a1 = gspread.utils.rowcol_to_a1(row_key + 2, headers.index(column) + 1)
            data.append({"range": a1, "values": [[value]]})
        if data:
            ws.batch_update(data, value_input_option="RAW")

    def ensure_tables(self, headers: dict[str, list[str]]):
        existing = {ws.title for ws in self.sh.worksheets()}
        for name, cols in headers.items():
            if name in existing:
                continue
            ws = self.sh.add_worksheet(title=name, rows=1000, cols=len(cols))
            ws.append_row(cols, value_input_option="RAW")
            logger.info("created worksheet %s", name)


@lru_cache(maxsize=1)
def get_store() -> SheetStore:
    if settings.STORE_BACKEND == "gsheet":
        return GoogleSheetStore(settings.GOOGLE_SPREADSHEET_KEY, settings.GOOGLE_SERVICE_ACCOUNT_FILE)
    if settings.STORE_BACKEND == "workbook":
        return WorkbookStore(settings.WORKBOOK_PATH)
    raise StoreError(f"unknown STORE_BACKEND: {settings.STORE_BACKEND}")


def init_db():
    get_store().ensure_tables(SHEET_HEADERS)
