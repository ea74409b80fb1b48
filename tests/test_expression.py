"""
Tests for match expressions.
"""

from __future__ import annotations

import pytest

from labeler.features.models import InstanceFeature
from labeler.rules.errors import ExpressionError
from labeler.rules.expression import (
    MatchedKey,
    MatchedValue,
    MatchExpression,
    MatchExpressionSet,
    MatchOp,
)


def expr(op: str, *values: str) -> MatchExpression:
    return MatchExpression.create(op, *values)


# =============================================================================
# Test MatchExpression
# =============================================================================


class TestMatchExpressionCreate:
    """Tests for creating match expressions."""

    def test_op_by_name(self) -> None:
        """Test operators are looked up by name."""
        assert expr("In", "a").op == MatchOp.IN
        assert expr("gtlt", "1", "5").op == MatchOp.GT_LT

    def test_invalid_op(self) -> None:
        """Test unknown operator."""
        with pytest.raises(ExpressionError, match="Invalid match operator"):
            expr("Between", "1")

    @pytest.mark.parametrize("op,values", [
        ("Exists", ["x"]),
        ("In", []),
        ("Gt", ["1", "2"]),
        ("GtLt", ["1"]),
        ("IsTrue", ["true"]),
    ])
    def test_operand_count(self, op: str, values: list[str]) -> None:
        """Test operand counts are checked."""
        with pytest.raises(ExpressionError):
            expr(op, *values)

    def test_operands_coerced_to_str(self) -> None:
        """Test non-string operands become strings."""
        assert MatchExpression(MatchOp.IN, [1, True]).value == ["1", "true"]


class TestMatchValue:
    """Tests for evaluating expressions against values."""

    def test_exists(self) -> None:
        assert expr("Exists").match_value(True, "") is True
        assert expr("Exists").match_value(False) is False

    def test_does_not_exist(self) -> None:
        assert expr("DoesNotExist").match_value(False) is True
        assert expr("DoesNotExist").match_value(True, "x") is False

    def test_in(self) -> None:
        e = expr("In", "a", "b")
        assert e.match_value(True, "b") is True
        assert e.match_value(True, "c") is False

    def test_not_in(self) -> None:
        e = expr("NotIn", "a", "b")
        assert e.match_value(True, "c") is True
        assert e.match_value(True, "a") is False

    def test_absent_value_never_matches(self) -> None:
        """Test value operators fail on an absent attribute."""
        assert expr("In", "a").match_value(False) is False
        assert expr("NotIn", "a").match_value(False) is False
        assert expr("Gt", "1").match_value(False) is False

    def test_in_regexp(self) -> None:
        e = expr("InRegexp", "^val-[0-9]+$", "foo")
        assert e.match_value(True, "val-12") is True
        assert e.match_value(True, "xfoox") is True
        assert e.match_value(True, "val-x") is False

    def test_in_regexp_invalid(self) -> None:
        with pytest.raises(ExpressionError, match="invalid regexp"):
            expr("InRegexp", "[oops").match_value(True, "x")

    def test_in_regexp_compiled_once(self) -> None:
        """Test patterns are compiled on construction and not on evaluation."""
        e = expr("InRegexp", "^a", "b$")
        compiled = e.regexps()

        assert [r.pattern for r in compiled] == ["^a", "b$"]
        e.match_value(True, "ab")
        assert e.regexps() is compiled

    def test_in_regexp_invalid_constructs(self) -> None:
        """Test an invalid pattern fails every evaluation, not construction."""
        e = expr("InRegexp", "ok", "[oops")
        for _ in range(2):
            with pytest.raises(ExpressionError, match=r"invalid regexp '\[oops'"):
                e.match_value(True, "ok")

    def test_lt_gt(self) -> None:
        assert expr("Lt", "100").match_value(True, "10") is True
        assert expr("Lt", "100").match_value(True, "100") is False
        assert expr("Gt", "5").match_value(True, "6") is True
        assert expr("Gt", "5").match_value(True, "5") is False

    def test_gtlt(self) -> None:
        e = expr("GtLt", "1", "10")
        assert e.match_value(True, "5") is True
        assert e.match_value(True, "1") is False
        assert e.match_value(True, "10") is False

    def test_gtlt_invalid_range(self) -> None:
        with pytest.raises(ExpressionError, match="invalid range"):
            expr("GtLt", "10", "1").match_value(True, "5")

    def test_numeric_candidate_not_a_number(self) -> None:
        with pytest.raises(ExpressionError, match="not a number"):
            expr("Lt", "10").match_value(True, "abc")

    def test_numeric_operand_not_a_number(self) -> None:
        with pytest.raises(ExpressionError, match="not a number"):
            expr("Gt", "ten").match_value(True, "5")

    @pytest.mark.parametrize("number", ["1_000", " 5", "5 ", "٣", "0x10", "1.5", "", "+-1"])
    def test_non_decimal_integers_rejected(self, number: str) -> None:
        with pytest.raises(ExpressionError, match="not a number"):
            expr("Gt", number).match_value(True, "5")
        with pytest.raises(ExpressionError, match="not a number"):
            expr("Lt", "10").match_value(True, number)

    def test_signed_integers(self) -> None:
        assert expr("Gt", "-3").match_value(True, "+5") is True
        assert expr("Lt", "+5").match_value(True, "-3") is True

    def test_is_true_false(self) -> None:
        assert expr("IsTrue").match_value(True, "TRUE") is True
        assert expr("IsTrue").match_value(True, "yes") is False
        assert expr("IsFalse").match_value(True, "False") is True
        assert expr("IsFalse").match_value(True, "true") is False


class TestMatchKey:
    """Tests for evaluating expressions against key sets."""

    def test_exists(self) -> None:
        assert expr("Exists").match_key(True) is True
        assert expr("Exists").match_key(False) is False

    def test_does_not_exist(self) -> None:
        assert expr("DoesNotExist").match_key(False) is True

    def test_invalid_op_for_keys(self) -> None:
        with pytest.raises(ExpressionError, match="when matching keys"):
            expr("In", "x").match_key(True)


class TestMatchExpressionDecoding:
    """Tests for decoding expressions from YAML data."""

    def test_mapping(self) -> None:
        e = MatchExpression.from_data({"op": "In", "value": ["a", "b"]})
        assert e.op == MatchOp.IN
        assert e.value == ["a", "b"]

    def test_mapping_scalar_value(self) -> None:
        e = MatchExpression.from_data({"op": "Gt", "value": 5})
        assert e.value == ["5"]

    def test_mapping_without_value(self) -> None:
        assert MatchExpression.from_data({"op": "Exists"}).value == []

    def test_mapping_without_op(self) -> None:
        with pytest.raises(ExpressionError, match="'op'"):
            MatchExpression.from_data({"value": ["a"]})

    def test_shorthand(self) -> None:
        assert MatchExpression.from_data("a") == MatchExpression(MatchOp.IN, ["a"])
        assert MatchExpression.from_data(["a", "b"]).value == ["a", "b"]
        assert MatchExpression.from_data(True).value == ["true"]
        assert MatchExpression.from_data(None).op == MatchOp.EXISTS

    def test_to_dict(self) -> None:
        assert expr("In", "a").to_dict() == {"op": "In", "value": ["a"]}
        assert expr("Exists").to_dict() == {"op": "Exists"}


# =============================================================================
# Test MatchExpressionSet
# =============================================================================


class TestMatchExpressionSet:
    """Tests for MatchExpressionSet."""

    def test_match_keys(self) -> None:
        """Test matched keys include DoesNotExist names, sorted."""
        s = MatchExpressionSet({
            "key-c": expr("Exists"),
            "key-a": expr("Exists"),
            "foo": expr("DoesNotExist"),
        })
        matched = s.match_keys({"key-a", "key-b", "key-c"})

        assert matched == [MatchedKey("foo"), MatchedKey("key-a"), MatchedKey("key-c")]

    def test_match_keys_and(self) -> None:
        """Test one failing expression fails the whole set."""
        s = MatchExpressionSet({"key-a": expr("Exists"), "key-x": expr("Exists")})
        assert s.match_keys({"key-a"}) == []

    def test_match_values(self) -> None:
        s = MatchExpressionSet({
            "key-1": expr("In", "val-1", "val-2"),
            "bar": expr("DoesNotExist"),
        })
        matched = s.match_values({"key-1": "val-1", "key-3": "val-3"})

        assert matched == [MatchedValue("bar", ""), MatchedValue("key-1", "val-1")]

    def test_match_values_no_match(self) -> None:
        s = MatchExpressionSet({"key-1": expr("In", "val-1")})
        assert s.match_values({"key-1": "val-x"}) == []

    def test_match_instances(self) -> None:
        instances = [
            InstanceFeature({"attr-1": "1"}),
            InstanceFeature({"attr-1": "10"}),
            InstanceFeature({"attr-1": "100"}),
        ]
        s = MatchExpressionSet({"attr-1": expr("Lt", "100")})

        assert s.match_instances(instances) == [{"attr-1": "1"}, {"attr-1": "10"}]

    def test_match_instances_error_propagates(self) -> None:
        s = MatchExpressionSet({"attr-1": expr("Lt", "100")})
        with pytest.raises(ExpressionError):
            s.match_instances([InstanceFeature({"attr-1": "x"})])

    def test_empty_set(self) -> None:
        """Test an empty set matches no keys but every instance."""
        s = MatchExpressionSet()
        assert s.match_keys({"a"}) == []
        assert s.match_instances([InstanceFeature({"a": "1"})]) == [{"a": "1"}]

    def test_from_mapping(self) -> None:
        s = MatchExpressionSet.from_data({"a": None, "b": {"op": "IsTrue"}})
        assert s.expressions["a"].op == MatchOp.EXISTS
        assert s.expressions["b"].op == MatchOp.IS_TRUE

    def test_from_list(self) -> None:
        s = MatchExpressionSet.from_data(["a", "b=1"])
        assert s.expressions["a"] == MatchExpression(MatchOp.EXISTS)
        assert s.expressions["b"] == MatchExpression(MatchOp.IN, ["1"])

    def test_from_list_invalid_item(self) -> None:
        with pytest.raises(ExpressionError):
            MatchExpressionSet.from_data([{"a": 1}])
