# ads_insights/credentials.py
from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class MissingApiKeyError(RuntimeError):
    pass


class ApiKeyStore:
    """
    Per-user store for the Vision API key.
    The environment variable wins over the persisted key; the persisted key
    lives in a small JSON file readable by the owner only.
    """

    def __init__(self, path: Path, env_var: str = "ADS_ANALYSIS_API_KEY"):
        self.path = Path(path)
        self.env_var = env_var

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def get(self) -> Optional[str]:
        key = os.getenv(self.env_var)
        if key:
            return key
        return self._read().get("api_key") or None

    def set(self, key: str) -> None:
        key = (key or "").strip()
        if not key:
            raise MissingApiKeyError("Refusing to store an empty API key.")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = self._read()
        data["api_key"] = key
        self._write(data)
        logger.info("Stored API key in %s", self.path)

    def _write(self, data: dict) -> None:
        # O_CREAT mode only applies to new files; chmod covers an existing one
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        os.chmod(self.path, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f)

    def delete(self) -> bool:
        data = self._read()
        if "api_key" not in data:
            return False
        del data["api_key"]
        if data:
            self._write(data)
        else:
            self.path.unlink()
        logger.info("Removed stored API key from %s", self.path)
        return True

    def ensure(self, prompt: Optional[Callable[[str], Optional[str]]] = None) -> str:
        """Return the key, asking `prompt` for one (and persisting it) when none is stored."""
        key = self.get()
        if key:
            return key
        answer = prompt("Enter your Google Vision API key: ") if prompt else None
        if not answer or not answer.strip():
            raise MissingApiKeyError("Google Vision API key not specified.")
        self.set(answer)
        return answer.strip()
