# ads_insights/annotate.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Tuple

from .vision_api import VisionApiError

logger = logging.getLogger(__name__)

# ----------------------------
# Response parsing
# ----------------------------
OBJECT_SEP = ","
LABEL_SEP = ","
TEXT_SEP = "\n"


@dataclass(frozen=True)
class ImageAnnotations:
    objects: str = ""
    labels: str = ""
    text: str = ""

    def as_row(self) -> List[str]:
        return [self.objects, self.labels, self.text]


def unique_in_order(values: Iterable[Any]) -> List[str]:
    seen = set(); uniq = []
    for v in values:
        if v is None:
            continue
        v = str(v)
        if not v or v in seen:
            continue
        seen.add(v); uniq.append(v)
    return uniq


def _field_values(response: Dict[str, Any], key: str, attr: str) -> List[str]:
    items = response.get(key)
    if not items:
        return []
    if not isinstance(items, list):
        raise VisionApiError(f"'{key}' is not a list")
    out = []
    for it in items:
        if not isinstance(it, dict) or attr not in it:
            raise VisionApiError(f"'{key}' item without '{attr}'")
        out.append(it[attr])
    return out


def annotations_from_response(response: Dict[str, Any]) -> ImageAnnotations:
    """
    Collapse one `responses[i]` object into three joined strings:
      objects (comma), labels (comma), text (newline),
    each deduplicated in first-seen order.
    """
    objects = unique_in_order(_field_values(response, "localizedObjectAnnotations", "name"))
    labels = unique_in_order(_field_values(response, "labelAnnotations", "description"))
    text = unique_in_order(_field_values(response, "textAnnotations", "description"))
    return ImageAnnotations(
        objects=OBJECT_SEP.join(objects),
        labels=LABEL_SEP.join(labels),
        text=TEXT_SEP.join(text),
    )

# ----------------------------
# Result-or-skip loop
# ----------------------------
@dataclass(frozen=True)
class RowError:
    row: int
    url: str
    message: str


@dataclass
class AnnotationRun:
    results: Dict[int, ImageAnnotations] = field(default_factory=dict)
    errors: List[RowError] = field(default_factory=list)
    skipped_blank: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


def annotate_images(
    rows: Iterable[Tuple[int, str]],
    fetch: Callable[[str], Dict[str, Any]],
) -> AnnotationRun:
    """
    For each (sheet row, url) call `fetch` (one Vision request) and parse it.
    A failing row is logged and recorded in `errors`; the loop carries on.
    Blank URLs are skipped without a request.
    """
    run = AnnotationRun()
    for row, url in rows:
        url = (url or "").strip()
        if not url:
            run.skipped_blank += 1
            continue
        try:
            run.results[row] = annotations_from_response(fetch(url))
        except Exception as e:
            logger.exception("It was not possible to process image (row %d, URL: %s): %s", row, url, e)
            run.errors.append(RowError(row=row, url=url, message=str(e)))
            continue
    logger.info("annotated %d image(s), %d failed, %d blank",
                len(run.results), len(run.errors), run.skipped_blank)
    return run


def merge_into_rows(
    existing: List[List[str]],
    first_row: int,
    results: Dict[int, ImageAnnotations],
) -> List[List[str]]:
    """
    Lay the results over the existing derived-column cells (one list per sheet
    row starting at `first_row`). Rows without a result keep their old values.
    """
    merged = []
    for offset, old in enumerate(existing):
        ann = results.get(first_row + offset)
        if ann is None:
            merged.append((list(old) + ["", "", ""])[:3])
        else:
            merged.append(ann.as_row())
    return merged
