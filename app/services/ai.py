"""Thin client for the LLM used to categorize documents and suggest recipients.

Both calls ask for a JSON array of strings through the ``generateContent``
response schema. Any transport, HTTP or parse failure surfaces as
:class:`UpstreamProcessingError`; callers decide what a failure means.
"""

from __future__ import annotations

import json
import logging
import re

import httpx

from app.config import settings
from app.errors import UpstreamProcessingError

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[^\]]*\]", re.DOTALL)

CATEGORY_EXAMPLES = [
    "Press Release",
    "General Report",
    "Contract / Agreement",
    "Policy",
    "Financial Statement",
    "Legal Document",
    "Article / Blog Post",
    "Marketing Material",
]


def is_configured() -> bool:
    return bool(settings.ai_api_key)


def _extract_text(body: dict) -> str:
    try:
        parts = body["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as exc:
        raise UpstreamProcessingError("AI response had no candidates") from exc
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text.strip():
        raise UpstreamProcessingError("AI response was empty")
    return text


def parse_string_array(text: str) -> list[str]:
    match = _JSON_ARRAY.search(text)
    try:
        parsed = json.loads(match.group(0) if match else text)
    except json.JSONDecodeError as exc:
        raise UpstreamProcessingError(f"AI response was not JSON: {text[:200]}") from exc
    if not isinstance(parsed, list) or not all(isinstance(i, str) for i in parsed):
        raise UpstreamProcessingError("AI response was not a JSON array of strings")
    return [item.strip() for item in parsed if item.strip()]


def generate_string_array(prompt: str) -> list[str]:
    if not is_configured():
        raise UpstreamProcessingError("AI service is not configured. Set AI_API_KEY.")
    url = f"{settings.ai_base_url}/models/{settings.ai_model}:generateContent"
    payload = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": {"type": "ARRAY", "items": {"type": "STRING"}},
        },
    }
    try:
        resp = httpx.post(
            url,
            params={"key": settings.ai_api_key},
            json=payload,
            timeout=settings.ai_timeout_seconds,
        )
        resp.raise_for_status()
        body = resp.json()
    except (httpx.HTTPError, OSError, ValueError) as exc:
        logger.warning("AI request to %s failed: %s", settings.ai_model, exc)
        raise UpstreamProcessingError(f"AI request failed: {exc}") from exc
    return parse_string_array(_extract_text(body))


def categorize(document_name: str, document_url: str, mime_type: str) -> list[str]:
    examples = "\n".join(f'- "{c}"' for c in CATEGORY_EXAMPLES)
    prompt = (
        "Classify the document below into one or more categories. The examples "
        "are guidance only; create a better-fitting category when none applies.\n"
        f"Example categories:\n{examples}\n\n"
        f"Document name: {document_name}\n"
        f"Document type: {mime_type}\n"
        f"Document content: {document_url}\n\n"
        "Return only a JSON array of category names."
    )
    categories = parse_unique(generate_string_array(prompt))
    if not categories:
        raise UpstreamProcessingError("AI returned no categories")
    return categories


def suggest_recipients(document_name: str, document_url: str, owner_id, roster) -> list[str]:
    """``roster`` is an iterable of users with ``id``, ``name``, ``email`` and ``department``."""
    lines = []
    for user in roster:
        line = f"- User ID: {user.id}, Name: {user.name or 'N/A'}, Email: {user.email}"
        if user.department is not None:
            line += f", Department: {user.department.name}"
        lines.append(line)
    prompt = (
        "Suggest the users this document is most relevant to.\n"
        f"The owner (User ID: {owner_id}) must not be included.\n"
        "Return only a JSON array of User IDs, or [] when nobody is relevant.\n\n"
        f"Document name: {document_name}\n"
        f"Document content: {document_url}\n\n"
        "Available users:\n" + "\n".join(lines)
    )
    return parse_unique(generate_string_array(prompt))


def parse_unique(values: list[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen
