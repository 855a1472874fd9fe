"""Shared Pydantic types and validators for reuse across models.

Centralises tag normalisation, metadata coercion and content-hash
constraints so every model speaks the same language.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BeforeValidator, Field

# ---------------------------------------------------------------------------
# Tag normalisation
# ---------------------------------------------------------------------------


def normalize_tags(v: Any) -> list[str]:
    """Accept ``str | list | None`` and return a clean, de-duplicated ``list[str]``.

    * ``"a, b, c"`` → ``["a", "b", "c"]``
    * ``["a", None, " b ", "a"]`` → ``["a", "b"]``
    * ``None`` → ``[]``

    First-seen order is kept; it carries no meaning beyond display.
    """
    if v is None:
        return []
    if isinstance(v, str):
        items = [t.strip() for t in v.split(",")]
    elif isinstance(v, list | tuple | set | frozenset):
        items = [str(item).strip() for item in v if item is not None]
    else:
        return []
    return list(dict.fromkeys(t for t in items if t))


Tags = Annotated[list[str], BeforeValidator(normalize_tags)]
"""Flexible tag input: accepts str, list, or None; always outputs list[str]."""


# ---------------------------------------------------------------------------
# Metadata coercion
# ---------------------------------------------------------------------------


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize_metadata(v: Any) -> dict[str, str]:
    """Coerce a metadata mapping to ``dict[str, str]``.

    Scalar values are stringified (booleans as ``true``/``false``) and
    ``None`` values are dropped.  Anything that is not a mapping is left for
    Pydantic to reject.
    """
    if v is None:
        return {}
    if not isinstance(v, dict):
        return v
    return {str(k): _stringify(val) for k, val in v.items() if val is not None}


Metadata = Annotated[dict[str, str], BeforeValidator(normalize_metadata)]
"""Flat string-to-string metadata map."""


# ---------------------------------------------------------------------------
# String constraints
# ---------------------------------------------------------------------------

ContentHash = Annotated[str, Field(min_length=1)]
"""Non-empty content hash identifier."""
