"""
Error taxonomy shared by the data layer, the stores and the stopwatch.
"""

from gspread.exceptions import WorksheetNotFound

MISSING_TABLE_MARKER = "does not exist"


class TimeTrackError(Exception):
    """Base class for all errors raised by timetrack."""


class ValidationError(TimeTrackError):
    """Input rejected before any state change."""


class UnknownRecordError(TimeTrackError):
    """No client, session or event with the requested id."""


class LocalCacheError(TimeTrackError):
    """The local cache file could not be read or written."""


class RemoteStoreError(TimeTrackError):
    """A remote table call failed."""


class TableMissingError(RemoteStoreError):
    """The remote table has not been created yet."""

    def __init__(self, table: str):
        super().__init__(f'relation "{table}" {MISSING_TABLE_MARKER}')
        self.table = table


def is_missing_table_error(exc: BaseException) -> bool:
    if isinstance(exc, (TableMissingError, WorksheetNotFound)):
        return True
    return MISSING_TABLE_MARKER in str(exc)
