"""
classify.py - Screenshot classifier.

Asks a vision model whether an image is a screenshot of a table/spreadsheet
before any OCR cost is spent on it. Photos, stickers and chat screenshots
answer NO and are ignored by the pipeline.
"""

from __future__ import annotations

import base64
from typing import Optional

from openai import OpenAI, OpenAIError

import config
from logging_config import get_logger
from ocr import CollaboratorError

logger = get_logger(__name__)

PROMPT = (
    "Is this image a screenshot or photo of a table or spreadsheet with rows "
    "and columns of numbers? Answer with exactly one word: YES or NO."
)


class ClassifierError(CollaboratorError):
    """The classifier could not give an answer."""


_client: Optional[OpenAI] = None


def get_client() -> OpenAI:
    """Return a singleton OpenAI client instance."""
    global _client
    if _client is None:
        if not config.OPENAI_API_KEY:
            raise ClassifierError("OPENAI_API_KEY is not set.")
        _client = OpenAI(api_key=config.OPENAI_API_KEY)
    return _client


def _sniff_mime(image_bytes: bytes) -> str:
    if image_bytes.startswith(b"\x89PNG"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def is_table_screenshot(image_bytes: bytes, client: Optional[OpenAI] = None) -> bool:
    """True when the model answers YES."""
    if not image_bytes:
        raise ClassifierError("Image is empty (0 bytes).")

    client = client or get_client()
    encoded = base64.b64encode(image_bytes).decode("ascii")
    data_url = f"data:{_sniff_mime(image_bytes)};base64,{encoded}"

    try:
        response = client.chat.completions.create(
            model=config.CLASSIFIER_MODEL,
            max_tokens=5,
            temperature=0,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": PROMPT},
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                }
            ],
        )
    except OpenAIError as exc:
        logger.error(
            "classify_failure | model=%s | error_type=%s | error=%s",
            config.CLASSIFIER_MODEL,
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        raise ClassifierError(f"Classifier request failed: {exc}") from exc

    answer = (response.choices[0].message.content or "").strip().upper()
    is_table = answer.startswith("YES")
    logger.info("classify_complete | model=%s | answer=%r | is_table=%s", config.CLASSIFIER_MODEL, answer, is_table)
    return is_table
