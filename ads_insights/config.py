# ads_insights/config.py
from __future__ import annotations
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

VISION_ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"

# 0-based positions in a data row (A=0). URL is column A, metrics D..G,
# derived entity columns H..J.
DEFAULT_COLUMNS: Dict[str, int] = {
    "url": 0,
    "impressions": 3,
    "clicks": 4,
    "ctr": 5,
    "cost": 6,
    "objects": 7,
    "labels": 8,
    "text": 9,
}

METRICS = ("impressions", "clicks", "ctr", "cost")
ENTITY_COLUMNS = ("objects", "labels", "text")


def _default_key_file() -> Path:
    base = os.getenv("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return Path(base) / "ads-insights" / "credentials.json"


@dataclass(frozen=True)
class Settings:
    spreadsheet: Optional[str] = None           # Google Sheets key/URL or a local .xlsx path
    data_sheet: str = "Ads Sample Data"
    objects_sheet: str = "Objects Analysis"
    labels_sheet: str = "Labels Analysis"
    words_sheet: str = "Words Analysis"
    columns: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_COLUMNS))
    vision_endpoint: str = VISION_ENDPOINT
    max_results: int = 10
    timeout: float = 30.0
    api_key_env: str = "ADS_ANALYSIS_API_KEY"
    key_file: Path = field(default_factory=_default_key_file)
    service_account_file: Optional[str] = None

    @property
    def analysis_sheets(self) -> Dict[str, str]:
        """Derived column -> analysis sheet it is aggregated into."""
        return {
            "objects": self.objects_sheet,
            "labels": self.labels_sheet,
            "text": self.words_sheet,
        }

    @property
    def first_entity_column(self) -> int:
        return min(self.columns[c] for c in ENTITY_COLUMNS)


def entity_kind(sheet_name: str) -> str:
    # "Labels Analysis" -> "Labels"
    return sheet_name.split(" ")[0]


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None


def load_settings(env_file: Optional[str] = None, **overrides) -> Settings:
    """
    Build Settings from the environment (and an optional .env file),
    then apply explicit overrides. None-valued overrides are ignored so
    CLI flags that were not passed keep the environment value.
    """
    load_dotenv(env_file)
    base = Settings()
    from_env = {
        "spreadsheet": os.getenv("ADS_SPREADSHEET"),
        "data_sheet": os.getenv("ADS_DATA_SHEET"),
        "service_account_file": os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
        "key_file": Path(os.environ["ADS_KEY_FILE"]) if os.getenv("ADS_KEY_FILE") else None,
        "timeout": _env_float("ADS_VISION_TIMEOUT"),
    }
    values = {k: v for k, v in from_env.items() if v is not None}
    values.update({k: v for k, v in overrides.items() if v is not None})
    if "key_file" in values:
        values["key_file"] = Path(values["key_file"]).expanduser()
    return replace(base, **values)
