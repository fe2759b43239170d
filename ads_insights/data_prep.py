import re
from typing import Any, List, Sequence

import pandas as pd

from .config import ENTITY_COLUMNS, METRICS, Settings

AD_COLUMNS = ["row", "url", *METRICS, *ENTITY_COLUMNS]

_WS = re.compile(r"\s+")


def _cell(row: Sequence[Any], idx: int) -> Any:
    return row[idx] if idx < len(row) else None


def read_ad_rows(values: List[List[Any]], settings: Settings) -> pd.DataFrame:
    """
    Turn raw sheet values (header included) into the ad-row frame:
      row (1-based sheet row), url, impressions, clicks, ctr, cost,
      objects, labels, text
    Metric cells that are not numbers become NaN; derived cells become "".
    """
    cols = settings.columns
    records = []
    for offset, raw in enumerate(values[1:], start=2):
        rec = {"row": offset}
        for name in ("url", *METRICS, *ENTITY_COLUMNS):
            rec[name] = _cell(raw, cols[name])
        records.append(rec)

    df = pd.DataFrame.from_records(records, columns=AD_COLUMNS)
    for m in METRICS:
        df[m] = pd.to_numeric(df[m], errors="coerce")
    for c in ("url", *ENTITY_COLUMNS):
        df[c] = df[c].fillna("").astype(str)
    return df


def split_entities(value: Any, kind: str) -> List[str]:
    """
    objects/labels are comma separated, text is split into words on any
    whitespace. Empty and repeated tokens are dropped, first-seen order kept.
    """
    s = "" if value is None or (isinstance(value, float) and pd.isna(value)) else str(value)
    parts = _WS.split(s) if kind == "text" else s.split(",")
    seen = set(); out = []
    for p in parts:
        if p and p not in seen:
            seen.add(p); out.append(p)
    return out
