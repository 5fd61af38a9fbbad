"""Request templating and response extraction for generic HTTP backends.

Two small, total functions sit at the core of this module:

- ``render_template`` substitutes ``{{name}}`` placeholders in a JSON-ish
  template string. A placeholder that is the whole content of a JSON string
  literal (``"{{prompt}}"``) becomes a properly escaped JSON string, or
  ``null`` when the value is absent. A placeholder inside a longer string
  literal is spliced in as escaped text. A bare placeholder becomes the JSON
  encoding of its value. Unknown placeholders are left as they are.
- ``extract_value`` walks a dotted/bracket-indexed path such as
  ``choices[0].message.content`` through a decoded JSON payload.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from switchyard.errors import TemplateError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from switchyard.request import GenerateRequest

PLACEHOLDERS: frozenset[str] = frozenset(
    {"model", "prompt", "systemPrompt", "temperature", "maxTokens", "topP", "texts"}
)

#: Tried in order when no response path is configured.
DEFAULT_RESPONSE_PATHS: tuple[str, ...] = (
    "text",
    "output",
    "result",
    "content",
    "data",
    "response",
    "choices[0].message.content",
    "choices[0].text",
)

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
_PATH_TOKEN_RE = re.compile(r"\[(\d+)\]|\[([^\]]*)\]|([^.\[\]]+)")


def placeholder_values(
    model_id: str,
    request: GenerateRequest | None = None,
    *,
    texts: Sequence[str] | None = None,
) -> dict[str, Any]:
    """Map placeholder names to the values they stand for."""
    values: dict[str, Any] = dict.fromkeys(PLACEHOLDERS)
    values["model"] = model_id
    if request is not None:
        values["prompt"] = request.prompt
        values["systemPrompt"] = request.system_instruction
        values["temperature"] = request.temperature
        values["maxTokens"] = request.max_tokens
        values["topP"] = request.top_p
    if texts is not None:
        values["texts"] = list(texts)
    return values


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _escape(text: str) -> str:
    """Escape *text* for splicing inside a JSON string literal."""
    return json.dumps(text)[1:-1]


def render_template(template: str, values: Mapping[str, Any]) -> str:
    """Substitute known placeholders in *template* and return the text."""
    out: list[str] = []
    in_string = False
    string_start = -1
    i = 0
    n = len(template)
    while i < n:
        if template.startswith("{{", i):
            m = _PLACEHOLDER_RE.match(template, i)
            if m is not None and m.group(1) in values:
                value = values[m.group(1)]
                end = m.end()
                if not in_string:
                    out.append(json.dumps(value))
                    i = end
                    continue
                whole = string_start == i - 1 and end < n and template[end] == '"'
                if whole and value is None:
                    out.pop()  # opening quote
                    out.append("null")
                    in_string = False
                    i = end + 1
                    continue
                out.append(_escape(_as_text(value)))
                i = end
                continue

        ch = template[i]
        if in_string:
            if ch == "\\" and i + 1 < n:
                out.append(template[i : i + 2])
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            string_start = i
        out.append(ch)
        i += 1
    return "".join(out)


def render_request_body(
    template: str | None,
    values: Mapping[str, Any],
    *,
    default: Mapping[str, Any],
) -> dict[str, Any]:
    """Render *template* into a JSON object, or return *default* without one.

    Raises:
        TemplateError: If the rendered text is not a JSON object.
    """
    if template is None:
        return dict(default)
    rendered = render_template(template, values)
    try:
        body = json.loads(rendered)
    except json.JSONDecodeError as e:
        raise TemplateError(
            f"Request template did not render to valid JSON: {e.msg}",
            hint="Quote string placeholders, e.g. \"prompt\": \"{{prompt}}\".",
        ) from e
    if not isinstance(body, dict):
        raise TemplateError(
            f"Request template must render to a JSON object, got {type(body).__name__}"
        )
    return body


def parse_path(path: str) -> list[str | int]:
    """Split ``a.b[0]['c']`` style paths into keys and list indices."""
    segments: list[str | int] = []
    for index, bracket_key, key in _PATH_TOKEN_RE.findall(path):
        if index:
            segments.append(int(index))
        elif bracket_key:
            segments.append(bracket_key.strip("'\""))
        elif key:
            segments.append(key)
    return segments


def extract_value(payload: Any, path: str | None) -> Any:
    """Return the value at *path* in *payload*, or ``None`` if any step is missing.

    With no *path*, the conventional ``DEFAULT_RESPONSE_PATHS`` are tried in
    order and the first non-``None`` value wins.
    """
    if path is None:
        for candidate in DEFAULT_RESPONSE_PATHS:
            value = extract_value(payload, candidate)
            if value is not None:
                return value
        return None

    current = payload
    for segment in parse_path(path):
        if isinstance(segment, int):
            if not isinstance(current, list) or segment >= len(current):
                return None
            current = current[segment]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(segment)
        if current is None:
            return None
    return current
