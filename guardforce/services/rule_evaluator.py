"""
JSON-logic rule evaluation for lead scoring.

Scoring rules carry a small JSON-logic condition such as
``{">=": ["yearsExperience", 5]}`` or
``{"and": [{"==": ["hasLicense", true]}, {"in": ["source", ["referral"]]}]}``.
Conditions are compiled ONCE, when a scoring configuration is loaded, into a
closed set of node types, and evaluated many times against per-lead
contexts.

Supported operators:
- Comparison: >, >=, <, <=, == (loose), === (strict), !=
- Membership: in (value must be a list)
- Logical: and, or (list or single sub-condition), not
- Literal booleans pass through

Failure policy:
    evaluate() never raises. An unknown operator, a malformed shape,
    undecodable JSON, a missing context key or an incomparable pair of
    values all evaluate to False. A malformed sub-condition poisons the
    whole expression, so ``{"not": <garbage>}`` is False rather than True.
    validate_condition() is the strict counterpart used when a config is
    saved; it raises ConfigurationError instead.

Usage:
    from guardforce.services.rule_evaluator import parse_condition, evaluate

    condition = parse_condition('{">=": ["yearsExperience", 5]}')
    evaluate(condition, {"yearsExperience": 7})   # True
    evaluate(condition, {})                        # False
"""

import json
import logging
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Tuple, Union

from guardforce.core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


# =============================================================================
# Condition Tree
# =============================================================================

@dataclass(frozen=True)
class Constant:
    value: bool


@dataclass(frozen=True)
class Comparison:
    op: str
    key: str
    operand: Any


@dataclass(frozen=True)
class Membership:
    key: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class AllOf:
    terms: Tuple['Condition', ...]


@dataclass(frozen=True)
class AnyOf:
    terms: Tuple['Condition', ...]


@dataclass(frozen=True)
class Negation:
    term: 'Condition'


@dataclass(frozen=True)
class Invalid:
    """A condition that could not be compiled. Always evaluates to False."""
    reason: str


Condition = Union[Constant, Comparison, Membership, AllOf, AnyOf, Negation, Invalid]


ORDERING_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    '>': operator.gt,
    '>=': operator.ge,
    '<': operator.lt,
    '<=': operator.le,
}

EQUALITY_OPERATORS = ('==', '===', '!=')


# =============================================================================
# Parsing
# =============================================================================

def parse_condition(raw: Any) -> Condition:
    """
    Compile a raw condition (JSON text or decoded value) into a Condition.

    Never raises; problems are represented by an Invalid node.

    Args:
        raw: JSON string, bool, or decoded JSON-logic dict.

    Returns:
        Condition: Compiled condition tree.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except (TypeError, ValueError) as e:
            return Invalid(f"undecodable condition: {e}")
        if isinstance(raw, str):
            return Invalid("condition text decodes to a bare string")

    return _parse_node(raw)


def _parse_node(node: Any) -> Condition:
    if isinstance(node, bool):
        return Constant(node)

    if not isinstance(node, dict) or len(node) != 1:
        return Invalid(f"expected a single-operator object, got {node!r}")

    op, args = next(iter(node.items()))

    if op in ORDERING_OPERATORS or op in EQUALITY_OPERATORS:
        if not isinstance(args, list) or len(args) != 2 or not isinstance(args[0], str):
            return Invalid(f"'{op}' expects [field, value]")
        return Comparison(op=op, key=args[0], operand=args[1])

    if op == 'in':
        if (
            not isinstance(args, list)
            or len(args) != 2
            or not isinstance(args[0], str)
            or not isinstance(args[1], list)
        ):
            return Invalid("'in' expects [field, [values...]]")
        return Membership(key=args[0], values=tuple(args[1]))

    if op in ('and', 'or'):
        items = args if isinstance(args, list) else [args]
        terms = tuple(_parse_node(item) for item in items)
        for term in terms:
            if isinstance(term, Invalid):
                return term
        return AllOf(terms) if op == 'and' else AnyOf(terms)

    if op == 'not':
        if isinstance(args, list):
            if len(args) != 1:
                return Invalid("'not' expects exactly one sub-condition")
            args = args[0]
        term = _parse_node(args)
        if isinstance(term, Invalid):
            return term
        return Negation(term)

    return Invalid(f"unknown operator '{op}'")


def validate_condition(raw: Any) -> Condition:
    """
    Compile a condition, raising if it is malformed.

    Raises:
        ConfigurationError: If the condition cannot be compiled.
    """
    condition = parse_condition(raw)
    if isinstance(condition, Invalid):
        raise ConfigurationError(
            f"Invalid scoring rule condition: {condition.reason}",
            details={'condition': raw},
        )
    return condition


# =============================================================================
# Evaluation
# =============================================================================

def evaluate(condition: Condition, context: Mapping[str, Any]) -> bool:
    """
    Evaluate a compiled condition against a context mapping.

    Returns:
        bool: True only when the condition definitely holds.
    """
    try:
        return _evaluate(condition, context)
    except Exception as e:
        logger.warning(f"Rule evaluation failed for {condition!r}: {e}")
        return False


def evaluate_condition(raw: Any, context: Mapping[str, Any]) -> bool:
    """Compile and evaluate in one step (for ad-hoc conditions)."""
    return evaluate(parse_condition(raw), context)


def _evaluate(condition: Condition, context: Mapping[str, Any]) -> bool:
    if isinstance(condition, Constant):
        return condition.value

    if isinstance(condition, Comparison):
        if condition.key not in context:
            return False
        value = context[condition.key]
        if condition.op == '==':
            return _loose_equals(value, condition.operand)
        if condition.op == '===':
            return _strict_equals(value, condition.operand)
        if condition.op == '!=':
            return not _loose_equals(value, condition.operand)
        return _ordered(condition.op, value, condition.operand)

    if isinstance(condition, Membership):
        if condition.key not in context:
            return False
        value = context[condition.key]
        return any(_strict_equals(value, candidate) for candidate in condition.values)

    if isinstance(condition, AllOf):
        return all(_evaluate(term, context) for term in condition.terms)

    if isinstance(condition, AnyOf):
        return any(_evaluate(term, context) for term in condition.terms)

    if isinstance(condition, Negation):
        return not _evaluate(condition.term, context)

    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: Any):
    """Numeric view of a value, or None when it has none."""
    if isinstance(value, bool):
        return float(value)
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _ordered(op: str, left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False

    if isinstance(left, str) and isinstance(right, str):
        return ORDERING_OPERATORS[op](left, right)

    left_num = _as_number(left)
    right_num = _as_number(right)
    if left_num is None or right_num is None:
        return False
    return ORDERING_OPERATORS[op](left_num, right_num)


def _loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None

    if type(left) is type(right) or (_is_number(left) and _is_number(right)):
        return left == right

    # Mixed scalar types compare numerically ("5" == 5, True == 1)
    left_num = _as_number(left)
    right_num = _as_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    return False


def _strict_equals(left: Any, right: Any) -> bool:
    if _is_number(left) and _is_number(right):
        return left == right
    return type(left) is type(right) and left == right


__all__ = [
    'Constant',
    'Comparison',
    'Membership',
    'AllOf',
    'AnyOf',
    'Negation',
    'Invalid',
    'Condition',
    'parse_condition',
    'validate_condition',
    'evaluate',
    'evaluate_condition',
]
