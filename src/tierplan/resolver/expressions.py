"""Parse ``${...}`` templates and the expression language used inside them."""

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union
from ..utils.errors import ExpressionSyntaxError

_TOKEN_RE = re.compile(r'''
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d+)?(?![A-Za-z_]))
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<op>==|!=|<=|>=|&&|\|\||[<>!?:.,\[\]()*])
  | (?P<ident>[A-Za-z_][A-Za-z0-9_\-]*)
''', re.VERBOSE)

_ESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\"}

KEYWORD_LITERALS = {"true": True, "false": False, "null": None}
COMPARISON_OPS = ("==", "!=", "<", ">", "<=", ">=")


@dataclass
class Token:
    kind: str
    value: Any
    pos: int


# AST nodes

@dataclass
class Literal:
    value: Any


@dataclass
class ListExpr:
    items: List[Any]


@dataclass
class Step:
    """One traversal step: attribute access, index, or splat."""
    kind: str  # "attr" | "index" | "splat"
    value: Any = None


@dataclass
class Traversal:
    """``root.step[step]...``; root is an identifier or a parenthesised node."""
    root: Union[str, Any]
    steps: List[Step] = field(default_factory=list)


@dataclass
class FunctionCall:
    name: str
    args: List[Any]


@dataclass
class Conditional:
    condition: Any
    then: Any
    otherwise: Any


@dataclass
class BinaryOp:
    op: str
    left: Any
    right: Any


@dataclass
class Not:
    operand: Any


@dataclass
class ForExpr:
    var: str
    collection: Any
    body: Any
    condition: Optional[Any] = None


def tokenize(text: str) -> List[Token]:
    """Split an expression into tokens."""
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise ExpressionSyntaxError(f"Unexpected character {text[pos]!r} at position {pos} in '{text}'")
        kind = match.lastgroup
        raw = match.group(kind)
        if kind == "number":
            tokens.append(Token("number", float(raw) if "." in raw else int(raw), pos))
        elif kind == "string":
            tokens.append(Token("string", _unescape(raw[1:-1]), pos))
        elif kind != "ws":
            tokens.append(Token(kind, raw, pos))
        pos = match.end()
    tokens.append(Token("eof", None, pos))
    return tokens


def _unescape(body: str) -> str:
    return re.sub(r'\\(.)', lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _is_op(self, *ops: str) -> bool:
        return self.current.kind == "op" and self.current.value in ops

    def _expect_op(self, op: str) -> None:
        if not self._is_op(op):
            self._error(f"expected '{op}'")
        self._advance()

    def _error(self, message: str):
        token = self.current
        found = "end of expression" if token.kind == "eof" else repr(token.value)
        raise ExpressionSyntaxError(f"{message} at position {token.pos} (found {found}) in '{self.text}'")

    def parse(self) -> Any:
        node = self._expression()
        if self.current.kind != "eof":
            self._error("unexpected trailing input")
        return node

    def _expression(self) -> Any:
        condition = self._or()
        if self._is_op("?"):
            self._advance()
            then = self._expression()
            self._expect_op(":")
            otherwise = self._expression()
            return Conditional(condition, then, otherwise)
        return condition

    def _or(self) -> Any:
        node = self._and()
        while self._is_op("||"):
            self._advance()
            node = BinaryOp("||", node, self._and())
        return node

    def _and(self) -> Any:
        node = self._comparison()
        while self._is_op("&&"):
            self._advance()
            node = BinaryOp("&&", node, self._comparison())
        return node

    def _comparison(self) -> Any:
        node = self._unary()
        if self._is_op(*COMPARISON_OPS):
            op = self._advance().value
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self) -> Any:
        if self._is_op("!"):
            self._advance()
            return Not(self._unary())
        return self._postfix()

    def _postfix(self) -> Any:
        node = self._primary()
        steps = []
        while True:
            if self._is_op("."):
                self._advance()
                token = self._advance()
                if token.kind == "ident":
                    steps.append(Step("attr", token.value))
                elif token.kind == "number" and isinstance(token.value, int):
                    steps.append(Step("index", Literal(token.value)))
                elif token.kind == "op" and token.value == "*":
                    steps.append(Step("splat"))
                else:
                    self.pos -= 1
                    self._error("expected attribute name after '.'")
            elif self._is_op("["):
                self._advance()
                if self._is_op("*"):
                    self._advance()
                    steps.append(Step("splat"))
                else:
                    steps.append(Step("index", self._expression()))
                self._expect_op("]")
            else:
                break

        if not steps:
            return node
        if isinstance(node, Traversal):
            node.steps.extend(steps)
            return node
        return Traversal(node, steps)

    def _primary(self) -> Any:
        token = self.current
        if token.kind in ("number", "string"):
            self._advance()
            return Literal(token.value)
        if token.kind == "ident":
            self._advance()
            if token.value in KEYWORD_LITERALS:
                return Literal(KEYWORD_LITERALS[token.value])
            if self._is_op("("):
                return self._call(token.value)
            return Traversal(token.value)
        if self._is_op("("):
            self._advance()
            node = self._expression()
            self._expect_op(")")
            return node
        if self._is_op("["):
            return self._list_or_for()
        self._error("expected a value")

    def _call(self, name: str) -> FunctionCall:
        self._expect_op("(")
        args = []
        while not self._is_op(")"):
            args.append(self._expression())
            if not self._is_op(","):
                break
            self._advance()
        self._expect_op(")")
        return FunctionCall(name, args)

    def _list_or_for(self) -> Any:
        self._expect_op("[")
        if self.current.kind == "ident" and self.current.value == "for":
            self._advance()
            var_token = self._advance()
            if var_token.kind != "ident":
                self.pos -= 1
                self._error("expected loop variable name")
            in_token = self._advance()
            if in_token.kind != "ident" or in_token.value != "in":
                self.pos -= 1
                self._error("expected 'in'")
            collection = self._expression()
            self._expect_op(":")
            body = self._expression()
            condition = None
            if self.current.kind == "ident" and self.current.value == "if":
                self._advance()
                condition = self._expression()
            self._expect_op("]")
            return ForExpr(var_token.value, collection, body, condition)

        items = []
        while not self._is_op("]"):
            items.append(self._expression())
            if not self._is_op(","):
                break
            self._advance()
        self._expect_op("]")
        return ListExpr(items)


def parse_expression(text: str) -> Any:
    """Parse one expression (the inside of ``${...}``) into an AST."""
    return _Parser(text.strip()).parse()


def parse_template(text: str) -> List[Union[str, Any]]:
    """
    Split a string into literal text and parsed expressions.

    ``$${`` escapes a literal ``${``.

    Returns:
        List whose items are str (literal text) or AST nodes
    """
    parts: List[Union[str, Any]] = []
    literal = []
    pos = 0
    while pos < len(text):
        if text.startswith("$${", pos):
            literal.append("${")
            pos += 3
            continue
        if text.startswith("${", pos):
            end = _find_closing_brace(text, pos + 2)
            if literal:
                parts.append("".join(literal))
                literal = []
            parts.append(parse_expression(text[pos + 2:end]))
            pos = end + 1
            continue
        literal.append(text[pos])
        pos += 1
    if literal:
        parts.append("".join(literal))
    return parts


def _find_closing_brace(text: str, start: int) -> int:
    """Index of the ``}`` closing an interpolation opened before start."""
    depth = 0
    in_string = False
    pos = start
    while pos < len(text):
        char = text[pos]
        if in_string:
            if char == "\\":
                pos += 1
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            if depth == 0:
                return pos
            depth -= 1
        pos += 1
    raise ExpressionSyntaxError(f"Unterminated interpolation in '{text}'")



def traversal_names(node: Any) -> List[Tuple[str, ...]]:
    """Collect the leading identifier chain of every traversal in an AST."""
    found = []

    def visit(n: Any) -> None:
        if isinstance(n, Traversal):
            if isinstance(n.root, str):
                chain = [n.root]
                for step in n.steps:
                    if step.kind != "attr":
                        break
                    chain.append(step.value)
                found.append(tuple(chain))
            else:
                visit(n.root)
            for step in n.steps:
                if step.kind == "index":
                    visit(step.value)
        elif isinstance(n, ListExpr):
            for item in n.items:
                visit(item)
        elif isinstance(n, FunctionCall):
            for arg in n.args:
                visit(arg)
        elif isinstance(n, Conditional):
            visit(n.condition)
            visit(n.then)
            visit(n.otherwise)
        elif isinstance(n, BinaryOp):
            visit(n.left)
            visit(n.right)
        elif isinstance(n, Not):
            visit(n.operand)
        elif isinstance(n, ForExpr):
            visit(n.collection)
            visit(n.body)
            if n.condition is not None:
                visit(n.condition)

    visit(node)
    return found
