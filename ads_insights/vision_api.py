# ads_insights/vision_api.py
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import requests

from .config import VISION_ENDPOINT
from .credentials import MissingApiKeyError

logger = logging.getLogger(__name__)


class VisionApiError(RuntimeError):
    pass


def build_annotate_request(image_url: str, max_results: int = 10) -> Dict[str, Any]:
    # labels/objects are capped, text detection returns everything
    return {
        "requests": [
            {
                "image": {"source": {"imageUri": image_url}},
                "features": [
                    {"type": "LABEL_DETECTION", "maxResults": max_results},
                    {"type": "OBJECT_LOCALIZATION", "maxResults": max_results},
                    {"type": "TEXT_DETECTION"},
                ],
            }
        ]
    }


_session: Optional[requests.Session] = None
def _get_session() -> requests.Session:
    global _session
    if _session is None:
        _session = requests.Session()
        _session.headers.update({"Content-Type": "application/json"})
    return _session


class VisionClient:
    """
    Thin client for the Cloud Vision `images:annotate` endpoint.
    One POST per image, no retries: a failure surfaces as VisionApiError
    and the caller decides whether to skip the row.
    """

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = VISION_ENDPOINT,
        max_results: int = 10,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise MissingApiKeyError("It was not possible to find the Google Vision API key.")
        self.api_key = api_key
        self.endpoint = endpoint
        self.max_results = max_results
        self.timeout = timeout
        self.session = session or _get_session()

    @classmethod
    def from_settings(cls, api_key: str, settings, session: Optional[requests.Session] = None) -> "VisionClient":
        return cls(
            api_key,
            endpoint=settings.vision_endpoint,
            max_results=settings.max_results,
            timeout=settings.timeout,
            session=session,
        )

    def annotate(self, image_url: str) -> Dict[str, Any]:
        """Returns the single per-image response object (`responses[0]`)."""
        payload = build_annotate_request(image_url, self.max_results)
        try:
            resp = self.session.post(
                self.endpoint,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise VisionApiError(f"Vision request failed: {e}") from e

        try:
            body = resp.json()
        except ValueError as e:
            raise VisionApiError("Vision API returned a non-JSON body") from e

        responses = body.get("responses") if isinstance(body, dict) else None
        if not responses or not isinstance(responses[0], dict):
            raise VisionApiError("Vision API response has no 'responses' entry")
        first = responses[0]
        if "error" in first:
            err = first["error"] or {}
            raise VisionApiError(f"Vision API error {err.get('code', '?')}: {err.get('message', '')}")
        logger.debug("annotated %s (%d keys)", image_url, len(first))
        return first
