"""Where-clause construction for statistic and graph filters."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from notify_templates.aggregation.records import is_blank, lookup_field
from notify_templates.rendering.formatting import try_parse_numeric
from notify_templates.template.models import FilterRule, StatisticFilter
from notify_templates.types import LogicOperator

MATCH_ALL = "1=1"

COMPARISON_OPERATORS = frozenset({"=", "!=", "<>", ">", ">=", "<", "<=", "LIKE", "NOT LIKE"})
LIST_OPERATORS = frozenset({"IN", "NOT IN"})
NULL_OPERATORS = frozenset({"IS NULL", "IS NOT NULL"})
SUPPORTED_OPERATORS = COMPARISON_OPERATORS | LIST_OPERATORS | NULL_OPERATORS

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")
_NUMERIC_LITERAL = re.compile(r"^-?\d+(\.\d+)?$")


def quote_value(value: Any) -> str:
    """Render a literal: numeric-looking values bare, everything else single-quoted."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    text = str(value)
    if _NUMERIC_LITERAL.match(text.strip()):
        return text.strip()
    return "'" + text.replace("'", "''") + "'"


def rule_clause(rule: FilterRule) -> str | None:
    """Return the SQL fragment for *rule*, or ``None`` when the rule is incomplete."""
    operator = (rule.operator or "=").strip().upper()
    if not _FIELD_NAME.match(rule.field or "") or operator not in SUPPORTED_OPERATORS:
        return None
    if operator in NULL_OPERATORS:
        return f"{rule.field} {operator}"
    if operator in LIST_OPERATORS:
        items = [item.strip() for item in str(rule.value or "").split(",") if item.strip()]
        if not items:
            return None
        return f"{rule.field} {operator} ({', '.join(quote_value(i) for i in items)})"
    if rule.value is None:
        return None
    return f"{rule.field} {operator} {quote_value(rule.value)}"


def build_where_clause(filter_: StatisticFilter | None) -> str:
    """Build the where clause for a filter; ``1=1`` when there is nothing to filter."""
    if filter_ is None:
        return MATCH_ALL
    if filter_.advanced.strip():
        return filter_.advanced.strip()
    clauses = [c for c in (rule_clause(r) for r in filter_.rules) if c]
    if not clauses:
        return MATCH_ALL
    return f" {filter_.logic.value} ".join(clauses)


def validate_advanced_filter(expression: str) -> list[str]:
    """Sanity-check a raw where expression; returns error messages."""
    errors: list[str] = []
    depth = 0
    in_quote = False
    chars = expression or ""
    i = 0
    while i < len(chars):
        ch = chars[i]
        if ch == "'":
            if in_quote and i + 1 < len(chars) and chars[i + 1] == "'":
                i += 2
                continue
            in_quote = not in_quote
        elif not in_quote:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth < 0:
                    errors.append("Unbalanced parentheses in advanced filter")
                    depth = 0
            elif ch == ";":
                errors.append("Advanced filter must be a single expression (no ';')")
            elif chars.startswith("--", i):
                errors.append("Comments are not allowed in advanced filters")
        i += 1
    if in_quote:
        errors.append("Unterminated quoted string in advanced filter")
    if depth > 0:
        errors.append("Unbalanced parentheses in advanced filter")
    return list(dict.fromkeys(errors))


# ── In-memory matching ────────────────────────────────────────────────────


def _like(value: Any, pattern: Any) -> bool:
    regex = "".join(".*" if ch == "%" else "." if ch == "_" else re.escape(ch) for ch in str(pattern))
    return re.fullmatch(regex, str(value), flags=re.IGNORECASE | re.DOTALL) is not None


def _compare(left: Any, operator: str, right: Any) -> bool:
    lnum, rnum = try_parse_numeric(left), try_parse_numeric(right)
    if lnum is not None and rnum is not None:
        a, b = lnum, rnum
    else:
        a, b = str(left), str(right)
    if operator == "=":
        return a == b
    if operator in ("!=", "<>"):
        return a != b
    if operator == ">":
        return a > b
    if operator == ">=":
        return a >= b
    if operator == "<":
        return a < b
    return a <= b


def rule_matches(record: Mapping[str, Any], rule: FilterRule) -> bool:
    operator = (rule.operator or "=").strip().upper()
    value = lookup_field(record, rule.field)
    if operator == "IS NULL":
        return is_blank(value)
    if operator == "IS NOT NULL":
        return not is_blank(value)
    if is_blank(value):
        return False
    if operator in LIST_OPERATORS:
        items = [item.strip() for item in str(rule.value or "").split(",") if item.strip()]
        hit = any(_compare(value, "=", item) for item in items)
        return hit if operator == "IN" else not hit
    if operator == "LIKE":
        return _like(value, rule.value)
    if operator == "NOT LIKE":
        return not _like(value, rule.value)
    return _compare(value, operator, rule.value)


def supports_local_matching(filter_: StatisticFilter | None) -> bool:
    """Advanced expressions can only be evaluated by the remote service."""
    return filter_ is None or not filter_.advanced.strip()


def filter_records(records: Iterable[Mapping[str, Any]], filter_: StatisticFilter | None) -> list[Mapping[str, Any]]:
    """Apply a rule-based filter to records already in memory.

    Incomplete rules are ignored, matching :func:`build_where_clause`.
    """
    if filter_ is None:
        return list(records)
    rules = [r for r in filter_.rules if rule_clause(r) is not None]
    if not rules:
        return list(records)
    combine = all if filter_.logic == LogicOperator.AND else any
    return [rec for rec in records if combine(rule_matches(rec, r) for r in rules)]
