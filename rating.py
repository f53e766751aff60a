"""Facial-aesthetics rating via Google Gemini, and the parser for its reply.

The model answers in a fixed free-text grammar:

    Golden Ratio - 5.4, Facial Symmetry - 5, Averageness - 7,
    Facial Feature Ratios - 8, Dress Code - 5, Picture Angle - 6, appearance - "cute"

or with the rejection sentinel ``file_type:"No"`` when the photo shows a
celebrity, is not a human, or is AI-generated/CGI.
"""
import logging
import re
from typing import Any, Dict, Optional, Protocol

import config
from errors import UpstreamError

log = logging.getLogger(__name__)

PROMPT = """Check if the provided image is of a celebrity or is not human, or is AI-generated or CGI. If any of these conditions are true, **just reply file_type:"No"** Nothing else.

You are a skilled mathematician specializing in facial analysis. I will provide an image for you to assess.

Otherwise, please rate the following aspects on a scale of 1 to 10, now use decimal numbers:

1. Golden Ratio
2. Facial Symmetry
3. Averageness
4. Facial Feature Ratios
5. Dress Code
6. Picture Angle

Please provide feedback on the image. Describe the person's appearance using one of these terms: cute, hot, handsome (for men), sexy, or nerdy.

**Note: Please reply only in this format: Golden Ratio - 5.4, Facial Symmetry - 5, Averageness - 7, Facial Feature Ratios - 8, Dress Code - 5, Picture Angle - 6, appearance - "cute"**"""

SCORE_KEYS = (
    "Golden Ratio",
    "Facial Symmetry",
    "Averageness",
    "Facial Feature Ratios",
    "Dress Code",
    "Picture Angle",
)
APPEARANCE_KEY = "appearance"

# Shown for every accepted photo until weighted scoring is switched back on.
FIXED_SCORE = 85
REJECTED_SCORE = 0

GENERATION_CONFIG = {
    "temperature": 1,
    "top_p": 0.95,
    "top_k": 64,
    "max_output_tokens": 8192,
}

_SENTINEL_RE = re.compile(r"""file_type\s*:\s*["']?\s*no\b""", re.IGNORECASE)


class RatingService(Protocol):
    def rate(self, data: bytes) -> str:
        ...


class GeminiRatingService:
    """Sends JPEG bytes and PROMPT to Gemini, returns the raw reply text."""

    def __init__(self, api_key: str = None, model_name: str = None):
        self.api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self.model_name = model_name or config.GEMINI_MODEL
        self._model = None

    def _get_model(self):
        if self._model is None:
            if not self.api_key:
                raise UpstreamError("GEMINI_API_KEY is not set")
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name, generation_config=GENERATION_CONFIG)
        return self._model

    def rate(self, data: bytes) -> str:
        model = self._get_model()
        try:
            response = model.generate_content([
                {"mime_type": "image/jpeg", "data": data},
                PROMPT,
            ])
            return response.text
        except Exception as e:
            log.error("Gemini request failed: %s", e)
            raise UpstreamError(f"Rating service failed: {e}") from e


def is_rejected(text: str) -> bool:
    return bool(_SENTINEL_RE.search(text or ""))


def _to_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return number


def _strip_wrapping(text: str) -> str:
    text = text.strip()
    # Strip markdown code fences if present
    if text.startswith("```"):
        text = text.split("\n", 1)[-1]
        text = text.rsplit("```", 1)[0]
    return text.strip().strip("{}").strip().strip('"').strip()


def parse_analysis(text: str) -> Optional[Dict[str, Any]]:
    """Parse the model reply into the six sub-scores plus ``appearance``.

    Returns None for the rejection sentinel. Missing or non-numeric scores
    become 0.0; unknown keys are ignored.
    """
    if is_rejected(text):
        return None

    raw: Dict[str, str] = {}
    for item in _strip_wrapping(text or "").split(","):
        key, sep, value = item.strip().partition("-")
        key = key.strip().strip('"').strip()
        value = value.replace('"', "").strip()
        if sep and key and value:
            raw[key] = value

    lowered = {k.lower(): v for k, v in raw.items()}
    parsed: Dict[str, Any] = {k: _to_float(lowered.get(k.lower())) for k in SCORE_KEYS}
    parsed[APPEARANCE_KEY] = lowered.get(APPEARANCE_KEY) or None
    return parsed


def calculate_final_score(results: Optional[Dict[str, Any]]) -> int:
    if results is None:
        return REJECTED_SCORE
    # TODO: switch back to the weighted score once it is re-enabled:
    # round(sum(results[k] for k in SCORE_KEYS) / 60 * 100) - 10
    return FIXED_SCORE
