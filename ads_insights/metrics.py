import logging
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np
import pandas as pd

from .config import METRICS, Settings, entity_kind
from .data_prep import split_entities

logger = logging.getLogger(__name__)

TABLE_METRICS = ["Impressions", "Clicks", "CTR", "Cost"]


@dataclass
class EntityPerformance:
    impressions: List[float] = field(default_factory=list)
    clicks: List[float] = field(default_factory=list)
    ctr: List[float] = field(default_factory=list)
    cost: List[float] = field(default_factory=list)

    def add(self, ad: pd.Series) -> None:
        for m in METRICS:
            getattr(self, m).append(ad[m])


def collect_entity_performance(ads: pd.DataFrame, column: str) -> Dict[str, EntityPerformance]:
    """
    Pivot ad rows into per-entity metric lists for one derived column
    ("objects", "labels" or "text"). Keys keep first-insertion order.
    """
    buckets: Dict[str, EntityPerformance] = {}
    for _, ad in ads.iterrows():
        try:
            for value in split_entities(ad[column], column):
                buckets.setdefault(value, EntityPerformance()).add(ad)
        except Exception as e:
            logger.exception("Error when analysing ad in row %s: %s", ad.get("row"), e)
            continue
    return buckets


def _mean(values: List[float]) -> float:
    s = pd.to_numeric(pd.Series(values, dtype="object"), errors="coerce")
    return float(s.mean()) if s.notna().any() else np.nan


def analysis_table(performance: Dict[str, EntityPerformance], kind: str) -> pd.DataFrame:
    rows = []
    for name, perf in performance.items():
        rows.append({
            kind: name,
            "Impressions": _mean(perf.impressions),
            "Clicks": _mean(perf.clicks),
            "CTR": _mean(perf.ctr),
            "Cost": _mean(perf.cost),
        })
    return pd.DataFrame(rows, columns=[kind, *TABLE_METRICS])


def performance_tables(ads: pd.DataFrame, settings: Settings) -> Dict[str, pd.DataFrame]:
    # objects, labels and words are aggregated independently
    out = {}
    for column, sheet in settings.analysis_sheets.items():
        perf = collect_entity_performance(ads, column)
        out[sheet] = analysis_table(perf, entity_kind(sheet))
        logger.info("%s: %d distinct value(s)", sheet, len(perf))
    return out


def table_to_rows(table: pd.DataFrame) -> List[List]:
    """Header + body as plain cell lists; NaN becomes an empty cell."""
    if table.empty:
        return []
    body = table.astype(object).where(table.notna(), "").values.tolist()
    return [list(table.columns), *body]
