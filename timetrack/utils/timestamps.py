from datetime import datetime

import pandas as pd
import pytz

EPOCH = pd.Timestamp(0, tz="UTC")


def now_utc_iso() -> str:
    return datetime.now(pytz.UTC).isoformat()


def parse_timestamp(value) -> pd.Timestamp:
    """
    Parse an ISO timestamp for ordering purposes.
    Missing and unparseable values both rank as the epoch.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return EPOCH
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if pd.isna(ts):
        return EPOCH
    return ts
