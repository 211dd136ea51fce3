"""Tests for the expression parser."""

import pytest
from tierplan.resolver.expressions import (
    parse_expression, parse_template, traversal_names,
    Literal, ListExpr, Traversal, FunctionCall, Conditional, BinaryOp, ForExpr,
)
from tierplan.utils.errors import ExpressionSyntaxError


class TestParseExpression:
    """Test parsing of single expressions."""

    def test_traversal_with_index(self):
        """Test attribute and index steps are kept in order."""
        node = parse_expression("var.cidrs[count.index]")
        assert isinstance(node, Traversal)
        assert node.root == "var"
        assert [s.kind for s in node.steps] == ["attr", "index"]
        assert isinstance(node.steps[1].value, Traversal)

    def test_literals(self):
        """Test numbers, strings and keywords."""
        assert parse_expression("42") == Literal(42)
        assert parse_expression('"a\\"b"') == Literal('a"b')
        assert parse_expression("true") == Literal(True)
        assert parse_expression("null") == Literal(None)

    def test_function_call(self):
        """Test function call with one argument."""
        node = parse_expression("length(var.zones)")
        assert isinstance(node, FunctionCall)
        assert node.name == "length"
        assert len(node.args) == 1

    def test_conditional_and_comparison(self):
        """Test ternary over a comparison."""
        node = parse_expression("var.n > 1 ? \"many\" : \"one\"")
        assert isinstance(node, Conditional)
        assert isinstance(node.condition, BinaryOp)
        assert node.condition.op == ">"

    def test_for_expression(self):
        """Test list comprehension with filter."""
        node = parse_expression("[for s in aws_subnet.private : s.id if s != null]")
        assert isinstance(node, ForExpr)
        assert node.var == "s"
        assert node.condition is not None

    def test_list_literal(self):
        """Test list literal with trailing comma."""
        node = parse_expression("[1, 2,]")
        assert isinstance(node, ListExpr)
        assert len(node.items) == 2

    def test_splat(self):
        """Test [*] step."""
        node = parse_expression("aws_subnet.public[*].id")
        assert [s.kind for s in node.steps] == ["attr", "splat", "attr"]

    def test_trailing_input_rejected(self):
        """Test garbage after a complete expression."""
        with pytest.raises(ExpressionSyntaxError, match="unexpected trailing input"):
            parse_expression("var.a var.b")

    def test_unexpected_character(self):
        """Test characters outside the grammar."""
        with pytest.raises(ExpressionSyntaxError, match="Unexpected character"):
            parse_expression("var.a + 1")


class TestParseTemplate:
    """Test splitting of strings into literal text and expressions."""

    def test_plain_string(self):
        """Test string without interpolation."""
        assert parse_template("10.0.0.0/16") == ["10.0.0.0/16"]

    def test_mixed_template(self):
        """Test literal text around an interpolation."""
        parts = parse_template("web-${count.index}-a")
        assert parts[0] == "web-"
        assert isinstance(parts[1], Traversal)
        assert parts[2] == "-a"

    def test_escaped_interpolation(self):
        """Test $${ produces a literal ${."""
        assert parse_template("$${not.an.expr}") == ["${not.an.expr}"]

    def test_unterminated(self):
        """Test missing closing brace."""
        with pytest.raises(ExpressionSyntaxError, match="Unterminated"):
            parse_template("${var.a")


class TestTraversalNames:
    """Test identifier-chain extraction."""

    def test_collects_nested_chains(self):
        """Test chains inside index expressions are found."""
        node = parse_expression("data.aws_availability_zones.available.names[count.index]")
        chains = traversal_names(node)
        assert ("data", "aws_availability_zones", "available", "names") in chains
        assert ("count", "index") in chains
