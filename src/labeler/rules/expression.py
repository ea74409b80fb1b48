"""
Match expressions.

A match expression is an operator plus zero or more string operands,
evaluated against a single feature element. A match expression set
combines named expressions with AND logic and returns the subset of a
feature set that matched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from labeler.features.models import InstanceFeature, to_str
from labeler.rules.errors import ExpressionError


class MatchOp(Enum):
    """Match expression operator."""

    IN = "In"
    NOT_IN = "NotIn"
    IN_REGEXP = "InRegexp"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "DoesNotExist"
    GT = "Gt"
    LT = "Lt"
    GT_LT = "GtLt"
    IS_TRUE = "IsTrue"
    IS_FALSE = "IsFalse"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> MatchOp:
        """Look up an operator by name (case-insensitive)."""
        for op in cls:
            if op.value.lower() == str(name).lower():
                return op
        raise ExpressionError(f"Invalid match operator: {name}")


# Number of operands each operator takes: (min, max)
_OPERAND_COUNT: dict[MatchOp, tuple[int, int | None]] = {
    MatchOp.IN: (1, None),
    MatchOp.NOT_IN: (1, None),
    MatchOp.IN_REGEXP: (1, None),
    MatchOp.EXISTS: (0, 0),
    MatchOp.DOES_NOT_EXIST: (0, 0),
    MatchOp.GT: (1, 1),
    MatchOp.LT: (1, 1),
    MatchOp.GT_LT: (2, 2),
    MatchOp.IS_TRUE: (0, 0),
    MatchOp.IS_FALSE: (0, 0),
}

NUMERIC_OPS = {MatchOp.GT, MatchOp.LT, MatchOp.GT_LT}


# Decimal integer with an optional sign, nothing else
_INTEGER = re.compile(r"[+-]?[0-9]+")


def is_integer(value: str) -> bool:
    """Check if value is a decimal integer with an optional sign."""
    return _INTEGER.fullmatch(value) is not None


def _parse_int(value: str, what: str) -> int:
    if not is_integer(value):
        raise ExpressionError(f"not a number {value!r} in {what}")
    return int(value)


@dataclass(frozen=True)
class MatchedKey:
    """A key feature element that matched."""

    name: str


@dataclass(frozen=True)
class MatchedValue:
    """A value feature element that matched."""

    name: str
    value: str


@dataclass
class MatchExpression:
    """
    A single operator with its operands.

    Operand counts are checked on construction. Regular expressions are
    compiled on construction too, but an invalid one is only reported
    when the expression is evaluated. Numeric operands are parsed on
    evaluation. Evaluation never modifies the expression.
    """

    op: MatchOp
    value: list[str] = field(default_factory=list)
    _regexps: list[re.Pattern] = field(
        default_factory=list, init=False, repr=False, compare=False
    )
    _regexp_error: str | None = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if not isinstance(self.op, MatchOp):
            self.op = MatchOp.from_name(self.op)
        self.value = [to_str(v) for v in self.value]

        low, high = _OPERAND_COUNT[self.op]
        count = len(self.value)
        if count < low or (high is not None and count > high):
            if high == 0:
                expected = "no values"
            elif high is None:
                expected = f"at least {low} value(s)"
            else:
                expected = f"exactly {low} value(s)"
            raise ExpressionError(
                f"{self.op} expects {expected}, got {count}"
            )

        if self.op == MatchOp.IN_REGEXP:
            self._compile_regexps()

    def _compile_regexps(self) -> None:
        for pattern in self.value:
            try:
                self._regexps.append(re.compile(pattern))
            except re.error as e:
                self._regexps = []
                self._regexp_error = f"invalid regexp {pattern!r} in {self}: {e}"
                return

    @classmethod
    def create(cls, op: MatchOp | str, *values: Any) -> MatchExpression:
        """Create an expression from an operator and operands."""
        return cls(op=op, value=list(values))

    def __str__(self) -> str:
        return f"{self.op} {self.value}"

    def match_key(self, present: bool) -> bool:
        """
        Evaluate against a key feature set element.

        Only Exists and DoesNotExist are meaningful for keys.
        """
        if self.op == MatchOp.EXISTS:
            return present
        if self.op == MatchOp.DOES_NOT_EXIST:
            return not present
        raise ExpressionError(f"invalid op {self.op} when matching keys")

    def match_value(self, present: bool, value: str = "") -> bool:
        """
        Evaluate against a single (possibly absent) string value.

        Args:
            present: Whether the attribute exists
            value: Attribute value

        Returns:
            True if the expression matches

        Raises:
            ExpressionError: If a numeric operator gets a non-integer
        """
        if self.op == MatchOp.EXISTS:
            return present
        if self.op == MatchOp.DOES_NOT_EXIST:
            return not present
        if not present:
            return False

        if self.op == MatchOp.IN:
            return value in self.value
        if self.op == MatchOp.NOT_IN:
            return value not in self.value
        if self.op == MatchOp.IN_REGEXP:
            return any(r.search(value) for r in self.regexps())
        if self.op in NUMERIC_OPS:
            candidate = _parse_int(value, str(self))
            bounds = [_parse_int(v, str(self)) for v in self.value]
            if self.op == MatchOp.LT:
                return candidate < bounds[0]
            if self.op == MatchOp.GT:
                return candidate > bounds[0]
            if bounds[0] >= bounds[1]:
                raise ExpressionError(
                    f"invalid range in {self}: lower bound must be less than upper"
                )
            return bounds[0] < candidate < bounds[1]
        if self.op == MatchOp.IS_TRUE:
            return value.lower() == "true"
        if self.op == MatchOp.IS_FALSE:
            return value.lower() == "false"

        raise ExpressionError(f"unsupported op {self.op}")

    def regexps(self) -> list[re.Pattern]:
        """
        Compiled operands of an InRegexp expression.

        Raises:
            ExpressionError: If an operand is not a valid regular expression
        """
        if self._regexp_error is not None:
            raise ExpressionError(self._regexp_error)
        return self._regexps

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {"op": str(self.op)}
        if self.value:
            result["value"] = list(self.value)
        return result

    @classmethod
    def from_data(cls, data: Any) -> MatchExpression:
        """
        Create from decoded YAML/JSON data.

        Accepts {op, value} mappings, or a scalar/list shorthand for In.
        A null expression means Exists.
        """
        if data is None:
            return cls(MatchOp.EXISTS)
        if isinstance(data, dict):
            if "op" not in data:
                raise ExpressionError("match expression must have 'op' field")
            value = data.get("value")
            if value is None:
                values = []
            elif isinstance(value, list):
                values = value
            else:
                values = [value]
            return cls(op=data["op"], value=values)
        if isinstance(data, list):
            return cls(MatchOp.IN, value=data)
        if isinstance(data, (str, bool, int, float)):
            return cls(MatchOp.IN, value=[data])
        raise ExpressionError(f"invalid match expression: {data!r}")


@dataclass
class MatchExpressionSet:
    """
    Named match expressions combined with AND logic.

    The name of each expression refers to a key, value or instance
    attribute of the feature set it is evaluated against.
    """

    expressions: dict[str, MatchExpression] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.expressions)

    def __iter__(self):
        return iter(self.expressions.items())

    def match_keys(self, keys: set[str] | Mapping[str, Any]) -> list[MatchedKey]:
        """
        Evaluate against a key feature set.

        Returns:
            Matched keys sorted by name, or an empty list on no match
        """
        matched = []
        for name, expr in self.expressions.items():
            if not expr.match_key(name in keys):
                return []
            matched.append(MatchedKey(name))
        return sorted(matched, key=lambda m: m.name)

    def match_values(self, values: Mapping[str, str]) -> list[MatchedValue]:
        """
        Evaluate against a value feature set.

        Returns:
            Matched name/value pairs sorted by name, or an empty list
        """
        matched = []
        for name, expr in self.expressions.items():
            present = name in values
            value = values.get(name, "")
            if not expr.match_value(present, value):
                return []
            matched.append(MatchedValue(name, value))
        return sorted(matched, key=lambda m: m.name)

    def match_attributes(self, attributes: Mapping[str, str]) -> bool:
        """Check if all expressions match an attribute map."""
        for name, expr in self.expressions.items():
            if not expr.match_value(name in attributes, attributes.get(name, "")):
                return False
        return True

    def match_instances(
        self,
        instances: Sequence[InstanceFeature],
    ) -> list[dict[str, str]]:
        """
        Evaluate against an instance feature set.

        Returns:
            Attribute maps of every matching instance, in order
        """
        return [
            dict(instance.attributes)
            for instance in instances
            if self.match_attributes(instance.attributes)
        ]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {name: expr.to_dict() for name, expr in self.expressions.items()}

    @classmethod
    def from_data(cls, data: Any) -> MatchExpressionSet:
        """
        Create from decoded YAML/JSON data.

        Accepts a mapping of name to expression, or a list of "name"
        (Exists) and "name=value" (In) strings.
        """
        if data is None:
            return cls()
        if isinstance(data, list):
            expressions = {}
            for item in data:
                if not isinstance(item, str):
                    raise ExpressionError(
                        f"match expression list items must be strings, got {item!r}"
                    )
                name, sep, value = item.partition("=")
                if sep:
                    expressions[name] = MatchExpression(MatchOp.IN, [value])
                else:
                    expressions[name] = MatchExpression(MatchOp.EXISTS)
            return cls(expressions)
        if isinstance(data, dict):
            return cls({
                str(name): MatchExpression.from_data(expr)
                for name, expr in data.items()
            })
        raise ExpressionError(f"invalid match expressions: {data!r}")
