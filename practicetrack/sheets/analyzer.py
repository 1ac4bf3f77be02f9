"""Sheet-music analysis via an external vision service.

The service is a black box: it receives a base64 image and answers with
(possibly markdown-wrapped) JSON of this shape::

    {
      "key_signature": "C Major",
      "tempo": 96,
      "time_signature": "4/4",
      "difficulty": "beginner" | "intermediate" | "advanced",
      "techniques": ["..."],
      "recommendations": [{"type": "...", "name": "...",
                           "description": "...", "suggested_tempo": 80}],
      "analysis_notes": "..."
    }
"""

from __future__ import annotations

import json
import logging
import re
from typing import Protocol

import requests

from ..errors import UpstreamError, ValidationError


logger = logging.getLogger(__name__)

# base64 prefix → media type
IMAGE_SIGNATURES: dict[str, str] = {
    "/9j/": "image/jpeg",
    "iVBORw0KGgo": "image/png",
    "R0lGODlh": "image/gif",
    "PHN2Zy": "image/svg+xml",
    "PD94bWw": "image/svg+xml",
    "Qk": "image/bmp",
    "UklGR": "image/webp",
}
DEFAULT_MEDIA_TYPE = "image/jpeg"

ANALYSIS_FIELDS = (
    "key_signature",
    "tempo",
    "time_signature",
    "difficulty",
    "techniques",
    "recommendations",
    "analysis_notes",
)

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


class SheetAnalyzer(Protocol):
    def analyze(self, image_b64: str, media_type: str) -> dict | str: ...


def strip_data_uri(image: str) -> str:
    """'data:image/png;base64,iVBOR...' → 'iVBOR...'."""
    if "base64," in image:
        return image.split("base64,", 1)[1]
    return image


def detect_image_format(image_b64: str) -> str:
    """Guess the media type from the first base64 characters."""
    for signature, media_type in IMAGE_SIGNATURES.items():
        if image_b64.startswith(signature):
            return media_type
    return DEFAULT_MEDIA_TYPE


def parse_analysis(raw: dict | str) -> dict:
    """Normalise the service output into the fields we store.

    Text answers may wrap the JSON in prose or markdown fences; the first
    ``{...}`` block is used.
    """
    if isinstance(raw, str):
        match = _JSON_BLOCK.search(raw)
        try:
            raw = json.loads(match.group(0) if match else raw)
        except ValueError as exc:
            raise UpstreamError("Failed to parse analysis results") from exc
    if not isinstance(raw, dict):
        raise UpstreamError("Failed to parse analysis results")

    data = {name: raw.get(name) for name in ANALYSIS_FIELDS}
    data["techniques"] = list(data["techniques"] or [])
    data["recommendations"] = list(data["recommendations"] or [])
    if data["tempo"] is not None:
        try:
            data["tempo"] = int(round(float(data["tempo"])))
        except (TypeError, ValueError):
            data["tempo"] = None
    if isinstance(data["difficulty"], str):
        data["difficulty"] = data["difficulty"].lower()
    return data


class HttpSheetAnalyzer:
    """Posts the image to ``url`` and returns the decoded answer."""

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        *,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._http = session or requests.Session()

    def analyze(self, image_b64: str, media_type: str) -> dict | str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            response = self._http.post(
                self.url,
                json={"image": image_b64, "media_type": media_type},
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Sheet analysis request failed: %s", exc)
            raise UpstreamError("Sheet analysis service is unavailable") from exc

        try:
            return response.json()
        except ValueError:
            return response.text


def analyze_image(analyzer: SheetAnalyzer | None, image: str) -> dict:
    """Run *image* (raw or data-URI base64) through *analyzer*."""
    if not image or not isinstance(image, str):
        raise ValidationError("Image is required")
    if analyzer is None:
        raise UpstreamError("Sheet analysis is not configured")

    image_b64 = strip_data_uri(image)
    media_type = detect_image_format(image_b64)
    logger.info("Analyzing sheet music (%s, %d bytes base64)", media_type, len(image_b64))
    return parse_analysis(analyzer.analyze(image_b64, media_type))
