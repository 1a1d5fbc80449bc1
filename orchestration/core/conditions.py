"""Step condition evaluation against an execution context."""

from typing import Any

from orchestration.models import ConditionOperator, StepCondition

_MISSING = object()


def resolve_path(context: dict[str, Any], path: str) -> Any:
    """Look up a dotted path (``lead.score``) in nested dicts.

    Returns None when any segment is missing.
    """
    current: Any = context
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return None
    return current


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def evaluate_condition(condition: StepCondition, context: dict[str, Any]) -> bool:
    actual = resolve_path(context, condition.field)
    expected = condition.value
    operator = condition.operator

    if operator == ConditionOperator.EQUALS:
        return actual == expected
    if operator == ConditionOperator.NOT_EQUALS:
        return actual != expected
    if operator == ConditionOperator.CONTAINS:
        # string containment only
        return (
            isinstance(actual, str)
            and isinstance(expected, str)
            and expected in actual
        )
    if operator == ConditionOperator.GREATER_THAN:
        return _is_number(actual) and _is_number(expected) and actual > expected
    if operator == ConditionOperator.LESS_THAN:
        return _is_number(actual) and _is_number(expected) and actual < expected
    if operator == ConditionOperator.EXISTS:
        return actual is not None
    return False


def evaluate_conditions(
    conditions: list[StepCondition] | None, context: dict[str, Any]
) -> bool:
    """All conditions must hold; an empty list always holds."""
    if not conditions:
        return True
    return all(evaluate_condition(condition, context) for condition in conditions)
