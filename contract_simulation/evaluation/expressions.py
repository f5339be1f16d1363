# evaluation/expressions.py
"""
Logical expressions over the read-only methods of a program.

Two surface syntaxes parse to the same tree: s-expressions such as
`(and (> balance 0) (= owner 0x...))` and infix such as
`balance > 0 && !paused`. Evaluation resolves every method reference
concretely, substitutes the values into a z3 term and simplifies it.
"""

import ast
import asyncio
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Tuple, Union

import z3

from ..core.values import Value
from ..errors import TypeMismatch

ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")
INTEGER = re.compile(r"^-?\d+$")
TOKEN = re.compile(r"\s*(\(|\)|[^\s()]+)")
NEGATION = re.compile(r"!(?!=)")
ADDRESS_LITERAL = re.compile(r"\b0x[0-9a-fA-F]{40}\b")

BOOLEAN_OPERATORS = ("and", "or", "not", "=>", "implies", "ite")
COMPARISON_OPERATORS = ("=", "==", "distinct", "!=", "<", "<=", ">", ">=")
ARITHMETIC_OPERATORS = ("+", "-", "*", "/", "div", "%", "mod")
OPERATORS = BOOLEAN_OPERATORS + COMPARISON_OPERATORS + ARITHMETIC_OPERATORS

# (minimum, maximum) operand counts; None is unbounded
ARITY = {
    "and": (1, None),
    "or": (1, None),
    "not": (1, 1),
    "=>": (2, 2),
    "implies": (2, 2),
    "ite": (3, 3),
    "=": (2, 2),
    "==": (2, 2),
    "distinct": (2, None),
    "!=": (2, None),
    "<": (2, 2),
    "<=": (2, 2),
    ">": (2, 2),
    ">=": (2, 2),
    "+": (1, None),
    "-": (1, 2),
    "*": (1, None),
    "/": (2, 2),
    "div": (2, 2),
    "%": (2, 2),
    "mod": (2, 2),
}


class ExpressionSyntaxError(ValueError):
    pass


@dataclass(frozen=True)
class Symbol:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Apply:
    head: str
    args: Tuple["Expr", ...] = ()

    def is_operator(self) -> bool:
        return self.head in OPERATORS

    def __str__(self) -> str:
        return f"({' '.join([self.head] + [_literal_string(a) for a in self.args])})"


Expr = Union[Symbol, Apply, int, bool, str]


@dataclass(frozen=True)
class Reference:
    """A read-only method named in an expression, with literal arguments."""

    name: str
    args: Tuple[Value, ...] = ()

    def __str__(self) -> str:
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


def _literal_string(expr: Expr) -> str:
    if isinstance(expr, bool):
        return "true" if expr else "false"
    return str(expr)


# --- parsing ---


def _atom(token: str) -> Expr:
    if token == "true":
        return True
    if token == "false":
        return False
    if INTEGER.match(token):
        return int(token)
    if ADDRESS.match(token):
        return token
    return Symbol(token)


def parse_sexpr(text: str) -> Expr:
    tokens = TOKEN.findall(text)
    if not tokens:
        raise ExpressionSyntaxError("empty expression")

    position = 0

    def read() -> Expr:
        nonlocal position
        if position >= len(tokens):
            raise ExpressionSyntaxError(f"unexpected end of expression: {text}")
        token = tokens[position]
        position += 1

        if token == ")":
            raise ExpressionSyntaxError(f"unexpected ')' in {text}")
        if token != "(":
            return _atom(token)

        items: List[Expr] = []
        while position < len(tokens) and tokens[position] != ")":
            items.append(read())
        if position >= len(tokens):
            raise ExpressionSyntaxError(f"missing ')' in {text}")
        position += 1

        if not items or not isinstance(items[0], Symbol):
            raise ExpressionSyntaxError(f"expected operator or method name in {text}")
        return Apply(items[0].name, tuple(items[1:]))

    expr = read()
    if position != len(tokens):
        raise ExpressionSyntaxError(f"trailing input in {text}")
    return expr


_BINARY = {ast.Add: "+", ast.Sub: "-", ast.Mult: "*", ast.Div: "/", ast.FloorDiv: "/", ast.Mod: "%"}
_COMPARE = {ast.Eq: "=", ast.NotEq: "distinct", ast.Lt: "<", ast.LtE: "<=", ast.Gt: ">", ast.GtE: ">="}


def _dotted(node: ast.AST) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return f"{_dotted(node.value)}.{node.attr}"
    raise ExpressionSyntaxError(f"unsupported reference: {ast.dump(node)}")


def _from_python(node: ast.AST) -> Expr:
    if isinstance(node, ast.Expression):
        return _from_python(node.body)
    if isinstance(node, ast.BoolOp):
        head = "and" if isinstance(node.op, ast.And) else "or"
        return Apply(head, tuple(_from_python(v) for v in node.values))
    if isinstance(node, ast.UnaryOp):
        operand = _from_python(node.operand)
        if isinstance(node.op, ast.Not):
            return Apply("not", (operand,))
        if isinstance(node.op, ast.USub):
            if isinstance(operand, int) and not isinstance(operand, bool):
                return -operand
            return Apply("-", (operand,))
        if isinstance(node.op, ast.UAdd):
            return operand
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY:
        return Apply(_BINARY[type(node.op)], (_from_python(node.left), _from_python(node.right)))
    if isinstance(node, ast.Compare):
        operands = [_from_python(node.left)] + [_from_python(c) for c in node.comparators]
        pairs = [
            Apply(_COMPARE[type(op)], (operands[i], operands[i + 1]))
            for i, op in enumerate(node.ops)
            if type(op) in _COMPARE
        ]
        if len(pairs) != len(node.ops):
            raise ExpressionSyntaxError("unsupported comparison")
        return pairs[0] if len(pairs) == 1 else Apply("and", tuple(pairs))
    if isinstance(node, ast.IfExp):
        return Apply("ite", (_from_python(node.test), _from_python(node.body), _from_python(node.orelse)))
    if isinstance(node, ast.Constant):
        if isinstance(node.value, (bool, int)):
            return node.value
        if isinstance(node.value, str) and ADDRESS.match(node.value):
            return node.value
    if isinstance(node, ast.Name):
        if node.id in ("true", "false"):
            return node.id == "true"
        return Symbol(node.id)
    if isinstance(node, ast.Attribute):
        return Symbol(_dotted(node))
    if isinstance(node, ast.Call) and not node.keywords:
        return Apply(_dotted(node.func), tuple(_from_python(a) for a in node.args))
    raise ExpressionSyntaxError(f"unsupported expression: {ast.dump(node)}")


def parse_infix(text: str) -> Expr:
    source = NEGATION.sub(" not ", text.replace("&&", " and ").replace("||", " or "))
    # addresses stay strings rather than becoming hex integers
    source = ADDRESS_LITERAL.sub(lambda m: repr(m.group(0)), source)
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as e:
        raise ExpressionSyntaxError(f"cannot parse {text!r}: {e.msg}") from e
    return _from_python(tree)


def check(expr: Expr) -> None:
    """Reject operators applied to the wrong number of operands."""
    if not isinstance(expr, Apply):
        return
    if expr.is_operator():
        least, most = ARITY[expr.head]
        if len(expr.args) < least or (most is not None and len(expr.args) > most):
            raise ExpressionSyntaxError(f"wrong number of operands for {expr.head!r}: {expr}")
    for arg in expr.args:
        check(arg)


def parse(text: str) -> Expr:
    """Parse either surface syntax; method arguments must be literals."""
    stripped = text.strip()
    if not stripped:
        raise ExpressionSyntaxError("empty expression")
    if stripped.startswith("("):
        expr = parse_sexpr(stripped)
    else:
        expr = parse_infix(stripped)
    check(expr)
    references(expr)
    return expr


# --- evaluation ---


def _reference(expr: Expr) -> Reference:
    if isinstance(expr, Symbol):
        # `Contract.field` names the getter of `field`
        return Reference(expr.name.rsplit(".", 1)[-1])

    assert isinstance(expr, Apply)
    args = []
    for arg in expr.args:
        if isinstance(arg, (Symbol, Apply)):
            raise ExpressionSyntaxError(f"method arguments must be literals: {expr}")
        args.append(arg)
    return Reference(expr.head.rsplit(".", 1)[-1], tuple(args))


def references(expr: Expr) -> List[Reference]:
    """Method references in evaluation order, without duplicates."""
    found: Dict[Reference, None] = {}

    def visit(node: Expr) -> None:
        if isinstance(node, Symbol) or (isinstance(node, Apply) and not node.is_operator()):
            found.setdefault(_reference(node), None)
        elif isinstance(node, Apply):
            for arg in node.args:
                visit(arg)

    visit(expr)
    return list(found)


def _constant(value: Value) -> z3.ExprRef:
    if isinstance(value, bool):
        return z3.BoolVal(value)
    if isinstance(value, int):
        return z3.IntVal(value)
    if isinstance(value, str) and ADDRESS.match(value):
        return z3.IntVal(int(value, 16))
    return z3.StringVal(str(value))


def _apply(head: str, args: List[z3.ExprRef]) -> z3.ExprRef:
    if head == "and":
        return z3.And(*args)
    if head == "or":
        return z3.Or(*args)
    if head == "not":
        (operand,) = args
        return z3.Not(operand)
    if head in ("=>", "implies"):
        return z3.Implies(*args)
    if head == "ite":
        return z3.If(*args)
    if head in ("=", "=="):
        left, right = args
        return left == right
    if head in ("distinct", "!="):
        return z3.Distinct(*args)
    if head in ("<", "<=", ">", ">="):
        left, right = args
        return {"<": left < right, "<=": left <= right, ">": left > right, ">=": left >= right}[head]
    if head == "+":
        return z3.Sum(*args)
    if head == "-":
        if len(args) == 1:
            return -args[0]
        left, right = args
        return left - right
    if head == "*":
        return z3.Product(*args)
    if head in ("/", "div"):
        left, right = args
        return left / right
    left, right = args
    return left % right


def to_z3(expr: Expr, values: Dict[Reference, Value]) -> z3.ExprRef:
    if isinstance(expr, (Symbol, Apply)) and not (isinstance(expr, Apply) and expr.is_operator()):
        return _constant(values[_reference(expr)])
    if isinstance(expr, Apply):
        return _apply(expr.head, [to_z3(a, values) for a in expr.args])
    return _constant(expr)


async def evaluate(expr: Expr, resolve: Callable[[Reference], Awaitable[Value]]) -> bool:
    """Resolve every reference concurrently, then decide the expression."""
    refs = references(expr)
    resolved = await asyncio.gather(*(resolve(r) for r in refs))
    values = dict(zip(refs, resolved))

    try:
        term = z3.simplify(to_z3(expr, values))
    except (z3.Z3Exception, ValueError) as e:
        raise TypeMismatch(expr, str(e)) from e

    if not z3.is_bool(term) or not (z3.is_true(term) or z3.is_false(term)):
        raise TypeMismatch(expr, term)
    return z3.is_true(term)
