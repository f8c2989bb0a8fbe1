"""Host property filters in query-builder form.

A filter is a tree of groups and rules::

    {"condition": "AND",
     "rules": [{"field": "bk_os_type", "operator": "equal", "value": "1"},
               {"condition": "OR", "rules": [...]}]}

``compile_filter`` validates the tree and turns it into the store's filter
language.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

from .errors import ValidationError

MAX_DEPTH = 3
MAX_RULES = 20


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _text(pattern: str) -> Callable[[Any], Dict[str, Any]]:
    return lambda v: {"$like": pattern.format(_escape_like(v))}


_RULE_OPERATORS: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    "equal": lambda v: {"$eq": v},
    "not_equal": lambda v: {"$ne": v},
    "in": lambda v: {"$in": v},
    "not_in": lambda v: {"$nin": v},
    "less": lambda v: {"$lt": v},
    "less_or_equal": lambda v: {"$lte": v},
    "greater": lambda v: {"$gt": v},
    "greater_or_equal": lambda v: {"$gte": v},
    "contains": _text("%{}%"),
    "begins_with": _text("{}%"),
    "ends_with": _text("%{}"),
    "exist": lambda v: {"$exists": True},
    "not_exist": lambda v: {"$exists": False},
}

_LIST_OPERATORS = {"in", "not_in"}
_TEXT_OPERATORS = {"contains", "begins_with", "ends_with"}
_NUMERIC_OPERATORS = {"less", "less_or_equal", "greater", "greater_or_equal"}
_VALUELESS_OPERATORS = {"exist", "not_exist"}


def _compile_rule(rule: Mapping[str, Any], key: str) -> Dict[str, Any]:
    field = rule.get("field")
    if not isinstance(field, str) or not field:
        raise ValidationError(f"{key}.field must be a non-empty string", key=f"{key}.field")
    operator = rule.get("operator")
    if operator not in _RULE_OPERATORS:
        raise ValidationError(f"{key}.operator {operator!r} is not supported", key=f"{key}.operator")
    value = rule.get("value")
    if operator in _LIST_OPERATORS:
        if not isinstance(value, list) or not value:
            raise ValidationError(f"{key}.value must be a non-empty list", key=f"{key}.value")
    elif operator in _TEXT_OPERATORS:
        if not isinstance(value, str) or not value:
            raise ValidationError(f"{key}.value must be a non-empty string", key=f"{key}.value")
    elif operator in _NUMERIC_OPERATORS:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{key}.value must be a number", key=f"{key}.value")
    elif operator not in _VALUELESS_OPERATORS and isinstance(value, (list, dict)):
        raise ValidationError(f"{key}.value must be a scalar", key=f"{key}.value")
    return {field: _RULE_OPERATORS[operator](value)}


def compile_filter(
    tree: Any, key: str = "host_property_filter", depth: int = 1
) -> Dict[str, Any]:
    if not isinstance(tree, Mapping):
        raise ValidationError(f"{key} must be an object", key=key)
    if "condition" not in tree:
        return _compile_rule(tree, key)

    if depth > MAX_DEPTH:
        raise ValidationError(f"{key} is nested deeper than {MAX_DEPTH}", key=key)
    condition = str(tree["condition"]).upper()
    if condition not in ("AND", "OR"):
        raise ValidationError(f"{key}.condition must be AND or OR", key=f"{key}.condition")
    rules = tree.get("rules")
    if not isinstance(rules, list) or not rules:
        raise ValidationError(f"{key}.rules must be a non-empty list", key=f"{key}.rules")
    if len(rules) > MAX_RULES:
        raise ValidationError(f"{key}.rules exceeds {MAX_RULES} items", key=f"{key}.rules")
    parts = [
        compile_filter(rule, f"{key}.rules[{index}]", depth + 1)
        for index, rule in enumerate(rules)
    ]
    return {"$and" if condition == "AND" else "$or": parts}
