"""Extraction of JSON objects from language-model completions.

Both enrichment providers run in forced JSON mode, but some
OpenAI-compatible gateways still wrap the object in markdown fences or add
a short preamble.  :func:`parse_json_object` strips both before decoding
and raises :class:`MalformedResponseError` with the user-facing message
when nothing usable remains.
"""

import json
import re
from typing import Any

from rag_studio.utils.errors import MalformedResponseError

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

INVALID_JSON_MESSAGE = "La réponse IA n'est pas un JSON valide"


def parse_json_object(content: str, provider_name: str | None = None) -> dict[str, Any]:
    """Decode the first JSON object found in *content*.

    Raises
    ------
    MalformedResponseError
        If the text holds no decodable JSON object.
    """
    text = content.strip()

    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    # Preamble before the object: keep the outermost brace pair.
    if not text.startswith("{"):
        brace_start = text.find("{")
        brace_end = text.rfind("}")
        if brace_start != -1 and brace_end > brace_start:
            text = text[brace_start : brace_end + 1]

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(
            message=INVALID_JSON_MESSAGE, provider_name=provider_name
        ) from exc

    if not isinstance(parsed, dict):
        raise MalformedResponseError(message=INVALID_JSON_MESSAGE, provider_name=provider_name)
    return parsed
