"""Variable token parsing.

Payload fields bind upstream values with "{{name}}" tokens, e.g.
"Hello {{trigger.first_name}}". Tokens are weak references: nothing keeps the
referenced step alive, so a token can dangle after a deletion.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

TOKEN_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")


def extract_tokens(text: str) -> list[str]:
    """Return the variable names referenced in a string, in order of appearance."""
    return [m.group(1) for m in TOKEN_PATTERN.finditer(text)]


def make_token(name: str) -> str:
    """Wrap a variable name in token braces."""
    return f"{{{{{name}}}}}"


def is_single_token(text: str) -> bool:
    """Check if a string consists of exactly one token and nothing else."""
    return TOKEN_PATTERN.fullmatch(text.strip()) is not None


def render_tokens(text: str, values: Mapping[str, Any]) -> Any:
    """Substitute tokens in a string with values.

    A string made of a single token resolves to the raw value (keeping its
    type); tokens embedded in longer text are stringified. Unknown tokens are
    left as-is.
    """
    match = TOKEN_PATTERN.fullmatch(text.strip())
    if match:
        name = match.group(1)
        return values[name] if name in values else text

    def _sub(m: re.Match[str]) -> str:
        name = m.group(1)
        return str(values[name]) if name in values else m.group(0)

    return TOKEN_PATTERN.sub(_sub, text)
