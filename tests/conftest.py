from __future__ import annotations

import re
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests
from openpyxl import Workbook

from ads_insights.config import Settings

HEADER = ["Image URL", "Ad", "Campaign", "Impressions", "Clicks", "CTR", "Cost", "Objects", "Labels", "Text"]


class FakeResponse:
    def __init__(self, payload: Any, status: int = 200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=None)

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Answers Vision POSTs from a url -> responses[0] mapping."""

    def __init__(self, by_url: Dict[str, Any], status: Optional[Dict[str, int]] = None):
        self.by_url = by_url
        self.status = status or {}
        self.calls: List[dict] = []

    def post(self, url, params=None, json=None, timeout=None):
        self.calls.append({"url": url, "params": params, "json": json, "timeout": timeout})
        image_url = json["requests"][0]["image"]["source"]["imageUri"]
        body = self.by_url.get(image_url, {})
        if isinstance(body, Exception):
            return FakeResponse(body)
        return FakeResponse({"responses": [body]}, self.status.get(image_url, 200))


def vision_body(objects=(), labels=(), text=()) -> dict:
    body: dict = {}
    if objects:
        body["localizedObjectAnnotations"] = [{"name": o, "score": 0.9} for o in objects]
    if labels:
        body["labelAnnotations"] = [{"description": l, "score": 0.8} for l in labels]
    if text:
        body["textAnnotations"] = [{"description": t} for t in text]
    return body


def write_ads_workbook(path: Path, rows: List[list], sheet: str = "Ads Sample Data") -> Path:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet
    ws.append(HEADER)
    for r in rows:
        ws.append(r)
    wb.save(path)
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(spreadsheet=str(tmp_path / "ads.xlsx"), key_file=tmp_path / "creds.json")


def cache_formula_results(path: Path, results: Dict[str, str]) -> Path:
    """
    Store cached results for formula cells the way Excel does on save
    (`<f>..</f><v>..</v>`); openpyxl itself writes formulas without them.
    `results` maps the formula text (no leading '=') to its cached value.
    """
    with zipfile.ZipFile(path) as zf:
        parts = {n: zf.read(n) for n in zf.namelist()}
    sheet = "xl/worksheets/sheet1.xml"
    xml = parts[sheet].decode("utf-8")
    for formula, value in results.items():
        pattern = r"(<f>" + re.escape(formula) + r"</f>)\s*(?:<v\s*/>|<v></v>)?"
        xml, n = re.subn(pattern, lambda m: m.group(1) + f"<v>{value}</v>", xml)
        assert n == 1, f"formula {formula!r} not found in {sheet}"
    parts[sheet] = xml.encode("utf-8")
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in parts.items():
            zf.writestr(name, data)
    return path
