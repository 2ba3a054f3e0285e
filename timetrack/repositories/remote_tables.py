"""
Remote table store: one Google Sheets worksheet per table, keyed by the `id` column.
"""

import threading
from typing import Callable, Optional, Protocol

from gspread.exceptions import APIError, WorksheetNotFound
from loguru import logger

from timetrack.config import CLIENTS_HEADERS, CLIENTS_TAB, EVENTS_HEADERS, EVENTS_TAB
from timetrack.errors import RemoteStoreError, TableMissingError

TABLE_HEADERS = {
    CLIENTS_TAB: CLIENTS_HEADERS,
    EVENTS_TAB: EVENTS_HEADERS,
}


class RemoteStore(Protocol):
    """Request/response contract of the hosted table service."""

    def select(self, table: str, order_by: Optional[str] = None, ascending: bool = True) -> list[dict]: ...

    def upsert(self, table: str, row: dict) -> None: ...

    def delete(self, table: str, row_id: str) -> None: ...


# -----------------------------
# Sheet helpers
# -----------------------------
def ensure_headers(ws, headers: list[str]) -> None:
    values = ws.get_all_values()
    if not values or values[0] != headers:
        ws.update(range_name="A1", values=[headers])


def find_row_index(ws, row_id: str) -> Optional[int]:
    """1-based sheet row holding `row_id` in column A, skipping the header."""
    col = ws.col_values(1)
    for i, v in enumerate(col[1:], start=2):
        if str(v) == str(row_id):
            return i
    return None


class GSheetsTableStore:
    def __init__(self, spreadsheet_provider: Callable):
        self._spreadsheet_provider = spreadsheet_provider
        self._ws_cache: dict = {}
        self._cache_lock = threading.Lock()
        # Find-then-write must not interleave between worker threads
        self._write_lock = threading.Lock()

    def _headers(self, table: str) -> list[str]:
        try:
            return TABLE_HEADERS[table]
        except KeyError:
            raise RemoteStoreError(f"Unknown table '{table}'") from None

    def _worksheet(self, table: str, create: bool):
        """
        Cached per store to avoid repeated fetch_sheet_metadata calls.
        Reads never create a table; a missing worksheet surfaces as TableMissingError.
        """
        headers = self._headers(table)
        sh = self._spreadsheet_provider()
        key = (sh.id, table)

        with self._cache_lock:
            if key in self._ws_cache:
                return self._ws_cache[key]

            try:
                ws = sh.worksheet(table)  # metadata read (expensive)
            except WorksheetNotFound:
                if not create:
                    raise TableMissingError(table) from None
                logger.info(f"Creating worksheet '{table}'")
                ws = sh.add_worksheet(title=table, rows=1000, cols=len(headers))

            ensure_headers(ws, headers)
            self._ws_cache[key] = ws
            return ws

    def select(self, table: str, order_by: Optional[str] = None, ascending: bool = True) -> list[dict]:
        ws = self._worksheet(table, create=False)
        try:
            records = ws.get_all_records()
        except APIError as e:
            raise RemoteStoreError(f"select from {table} failed: {e}") from e

        if order_by:
            records = sorted(records, key=lambda r: str(r.get(order_by, "")), reverse=not ascending)
        return records

    def upsert(self, table: str, row: dict) -> None:
        headers = self._headers(table)
        values = [row.get(h, "") for h in headers]
        values = ["" if v is None else v for v in values]

        with self._write_lock:
            ws = self._worksheet(table, create=True)
            try:
                idx = find_row_index(ws, row["id"])
                if idx is None:
                    ws.append_row(values, value_input_option="RAW")
                else:
                    ws.update(range_name=f"A{idx}", values=[values], value_input_option="RAW")
            except APIError as e:
                raise RemoteStoreError(f"upsert into {table} failed: {e}") from e

    def delete(self, table: str, row_id: str) -> None:
        with self._write_lock:
            ws = self._worksheet(table, create=False)
            try:
                idx = find_row_index(ws, row_id)
                if idx is not None:
                    ws.delete_rows(idx)
            except APIError as e:
                raise RemoteStoreError(f"delete from {table} failed: {e}") from e
