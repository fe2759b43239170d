# ads_insights/pipeline.py
from __future__ import annotations
import logging
from typing import Callable, Dict, Optional

import pandas as pd

from .annotate import AnnotationRun, annotate_images, merge_into_rows
from .config import ENTITY_COLUMNS, Settings
from .credentials import ApiKeyStore
from .data_prep import read_ad_rows
from .metrics import performance_tables, table_to_rows
from .sheets import open_workbook
from .vision_api import VisionClient

logger = logging.getLogger(__name__)


def analyse_ads_images(workbook, client: VisionClient, settings: Settings) -> AnnotationRun:
    """
    Send every image URL of the data sheet to the Vision API and write the
    objects / labels / text columns back, row-aligned.
    """
    sheet = settings.data_sheet
    cols = settings.columns
    urls = workbook.read_display_column(sheet, cols["url"] + 1)[1:]
    rows = list(enumerate(urls, start=2))
    logger.info("%s: %d row(s) to annotate", sheet, len(rows))

    run = annotate_images(rows, client.annotate)
    if not run.results:
        return run

    # derived columns are contiguous: objects, labels, text
    first_col = cols["objects"] + 1
    values = workbook.read_values(sheet)
    existing = [
        [(r[cols[c]] if cols[c] < len(r) else "") for c in ENTITY_COLUMNS]
        for r in values[1:len(urls) + 1]
    ]
    existing += [["", "", ""]] * (len(urls) - len(existing))
    workbook.write_block(sheet, 2, first_col, merge_into_rows(existing, 2, run.results))
    return run


def output_performance_analyses(workbook, settings: Settings) -> Dict[str, pd.DataFrame]:
    """Aggregate metrics per object / label / word and rewrite the analysis sheets."""
    ads = read_ad_rows(workbook.read_values(settings.data_sheet), settings)
    tables = performance_tables(ads, settings)
    for sheet, table in tables.items():
        workbook.replace_table(sheet, table_to_rows(table))
    return tables


def analyse_images_performance(
    workbook,
    key_store: ApiKeyStore,
    settings: Settings,
    prompt: Optional[Callable[[str], Optional[str]]] = None,
    session=None,
) -> AnnotationRun:
    # a missing key aborts here, before any request is made
    api_key = key_store.ensure(prompt)
    client = VisionClient.from_settings(api_key, settings, session=session)
    run = analyse_ads_images(workbook, client, settings)
    output_performance_analyses(workbook, settings)
    return run


def reset_data(workbook, settings: Settings) -> None:
    """Clear the Vision-derived columns and drop the analysis sheets."""
    sheet = settings.data_sheet
    first_col = settings.first_entity_column + 1
    last_row = workbook.last_row(sheet)
    last_col = max(workbook.last_column(sheet), first_col + len(ENTITY_COLUMNS) - 1)
    workbook.clear_block(sheet, 2, first_col, last_row, last_col)
    for name in settings.analysis_sheets.values():
        if workbook.delete_sheet(name):
            logger.info("deleted sheet %s", name)


def reset_api_key(key_store: ApiKeyStore) -> bool:
    return key_store.delete()


def authorize(settings: Settings) -> str:
    """Open the spreadsheet once so any OAuth consent happens up front."""
    wb = open_workbook(settings)
    logger.info("authorized access to %s", wb.title)
    return wb.title
