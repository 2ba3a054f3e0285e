import json
from collections.abc import Mapping

import gspread
import streamlit as st
from google.oauth2.service_account import Credentials

from timetrack.errors import RemoteStoreError

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


def _read_secrets() -> tuple[dict, str]:
    """Service-account info and spreadsheet id from .streamlit/secrets.toml."""
    try:
        creds = st.secrets["GOOGLE_SHEETS_CREDENTIALS"]
        sheet_id = st.secrets["GOOGLE_SHEET_ID"]
    except (KeyError, FileNotFoundError) as e:
        raise RemoteStoreError(f"Google Sheets is not configured: {e}") from e

    # Accept either a TOML table or a pasted JSON string
    if isinstance(creds, str):
        creds = json.loads(creds)
    elif isinstance(creds, Mapping):
        creds = dict(creds)
    return creds, str(sheet_id)


# -----------------------------
# Spreadsheet handle (safe to cache; failures are not cached)
# -----------------------------
@st.cache_resource
def get_spreadsheet():
    creds, sheet_id = _read_secrets()
    credentials = Credentials.from_service_account_info(creds, scopes=SCOPES)
    return gspread.authorize(credentials).open_by_key(sheet_id)
