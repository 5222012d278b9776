"""Placeholder tokens: key derivation and ``{{name}}`` substitution."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping

from notify_templates.template.models import GraphElement, StatisticsLayout

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\{\{(\w+)\}\}")

_NON_WORD = re.compile(r"\W")


def _key_part(value: object) -> str:
    return _NON_WORD.sub("_", str(value))


# ── Derived keys ──────────────────────────────────────────────────────────


def stat_key(stat_id: str) -> str:
    """Formatted statistic value."""
    return f"stat_{stat_id}"


def stat_value_key(stat_id: str) -> str:
    """Raw statistic value."""
    return f"stat_{stat_id}_value"


def stat_label_key(stat_id: str) -> str:
    return f"stat_{stat_id}_label"


def statistics_key(element: StatisticsLayout) -> str:
    """Key for the cards HTML of one statistics (or row) element.

    Display options are part of the key so two elements with different
    layouts never share rendered HTML.
    """
    parts = (
        element.id,
        element.value_size,
        element.value_alignment,
        element.container_width,
        element.container_alignment,
    )
    return "statisticsHtml_" + "_".join(_key_part(p) for p in parts)


def graph_key(element: GraphElement) -> str:
    return f"graph_{_key_part(element.id)}"


# ── Substitution ──────────────────────────────────────────────────────────


def find_tokens(html: str) -> list[str]:
    """Return the distinct token names in *html*, in first-seen order."""
    return list(dict.fromkeys(TOKEN_PATTERN.findall(html or "")))


def find_unresolved_tokens(html: str, known: Iterable[str]) -> list[str]:
    known_set = set(known)
    return [name for name in find_tokens(html) if name not in known_set]


def substitute(html: str, context: Mapping[str, str], *, max_passes: int = 5) -> str:
    """Replace ``{{name}}`` tokens with values from *context*.

    Substitution repeats while a pass still resolves a context key, since
    inserted values may carry tokens of their own (a header title of
    ``{{organizationName}}``, for instance).  Tokens without a resolver are
    removed from the final output.
    """
    if not html:
        return ""

    def _resolve(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in context:
            return str(context[name])
        return match.group(0)

    result = html
    for _ in range(max_passes):
        updated = TOKEN_PATTERN.sub(_resolve, result)
        if updated == result:
            break
        result = updated

    leftover = find_unresolved_tokens(result, context)
    if leftover:
        logger.warning("Removing unresolved placeholders: %s", ", ".join(leftover))
        result = TOKEN_PATTERN.sub(lambda m: "" if m.group(1) not in context else m.group(0), result)
    return result
