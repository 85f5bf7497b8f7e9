"""Expression trees for per-amplitude program bodies.

A body is written once as a small tree of frozen nodes and then lowered by
a backend: ``shader/glsl.py`` prints GLSL, ``kernel/ref_dispatch.py``
evaluates it with numpy over every output pixel at once.

Value kinds:
  "float"  a scalar (all integer arithmetic happens in float registers)
  "vec2"   a complex number (re, im)
  "bool"   the result of a comparison

Python operators build nodes: ``OUT_ID + 1.0``, ``d * factor``,
``OUT_ID < d``. Equality uses :func:`eq` / :func:`ne` so that nodes stay
hashable.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Union

Number = Union[int, float]


class Expr:
    kind: str = "float"

    # arithmetic
    def __add__(self, other):
        return BinOp("+", self, lift(other))

    def __radd__(self, other):
        return BinOp("+", lift(other), self)

    def __sub__(self, other):
        return BinOp("-", self, lift(other))

    def __rsub__(self, other):
        return BinOp("-", lift(other), self)

    def __mul__(self, other):
        return BinOp("*", self, lift(other))

    def __rmul__(self, other):
        return BinOp("*", lift(other), self)

    def __truediv__(self, other):
        return BinOp("/", self, lift(other))

    def __rtruediv__(self, other):
        return BinOp("/", lift(other), self)

    def __neg__(self):
        return BinOp("*", Const(-1.0), self)

    # comparisons
    def __lt__(self, other):
        return Compare("<", self, lift(other))

    def __le__(self, other):
        return Compare("<=", self, lift(other))

    def __gt__(self, other):
        return Compare(">", self, lift(other))

    def __ge__(self, other):
        return Compare(">=", self, lift(other))

    def children(self) -> tuple["Expr", ...]:
        return ()

    def walk(self) -> Iterator["Expr"]:
        yield self
        for c in self.children():
            yield from c.walk()


def _require_expr(v, where: str) -> None:
    # `a == b` on nodes is identity and yields a Python bool
    if not isinstance(v, Expr):
        raise TypeError(f"{where} got {v!r}, not an expression; compare with eq() / ne()")


@dataclass(frozen=True, eq=False)
class Const(Expr):
    value: float


@dataclass(frozen=True, eq=False)
class Ref(Expr):
    """A named value: a builtin, a uniform, or a local of the body."""

    name: str
    kind: str = "float"
    scope: str = "builtin"      # "builtin" | "uniform" | "local"


@dataclass(frozen=True, eq=False)
class BinOp(Expr):
    op: str
    lhs: Expr
    rhs: Expr

    def __post_init__(self):
        kinds = {self.lhs.kind, self.rhs.kind}
        if "bool" in kinds:
            raise TypeError(f"arithmetic '{self.op}' on a bool; wrap it with as_float()")
        if "vec2" in kinds and self.op == "/" and self.rhs.kind == "vec2":
            raise TypeError("division by a vec2 is not supported")
        if self.lhs.kind == "vec2" and self.rhs.kind == "vec2" and self.op == "*":
            raise TypeError("vec2 * vec2 is component-wise on devices; use cmul()")
        if self.kind == "vec2" and self.op in ("+", "-") and kinds != {"vec2"}:
            raise TypeError(f"'{self.op}' between a float and a vec2")

    @property
    def kind(self) -> str:
        return "vec2" if "vec2" in (self.lhs.kind, self.rhs.kind) else "float"

    def children(self):
        return self.lhs, self.rhs


@dataclass(frozen=True, eq=False)
class Compare(Expr):
    op: str
    lhs: Expr
    rhs: Expr
    kind = "bool"

    def __post_init__(self):
        if self.lhs.kind != "float" or self.rhs.kind != "float":
            raise TypeError(f"comparison '{self.op}' needs float operands")

    def children(self):
        return self.lhs, self.rhs


_CALLS = {
    # name: (arity, argument kinds or None for any, result kind)
    "mod": (2, ("float", "float"), "float"),
    "floor": (1, ("float",), "float"),
    "abs": (1, ("float",), "float"),
    "cos": (1, ("float",), "float"),
    "sin": (1, ("float",), "float"),
    "float": (1, ("bool",), "float"),
    "vec2": (2, ("float", "float"), "vec2"),
    "cmul": (2, ("vec2", "vec2"), "vec2"),
    "inp": (1, ("float",), "vec2"),
}


@dataclass(frozen=True, eq=False)
class Call(Expr):
    fn: str
    args: tuple[Expr, ...]

    def __post_init__(self):
        if self.fn not in _CALLS:
            raise TypeError(f"unknown function {self.fn!r}")
        arity, arg_kinds, _ = _CALLS[self.fn]
        if len(self.args) != arity:
            raise TypeError(f"{self.fn} takes {arity} argument(s), got {len(self.args)}")
        for a in self.args:
            _require_expr(a, self.fn)
        got = tuple(a.kind for a in self.args)
        if got != arg_kinds:
            raise TypeError(f"{self.fn}{arg_kinds} called with {got}")

    @property
    def kind(self) -> str:
        return _CALLS[self.fn][2]

    def children(self):
        return self.args


@dataclass(frozen=True, eq=False)
class Select(Expr):
    cond: Expr
    if_true: Expr
    if_false: Expr

    def __post_init__(self):
        _require_expr(self.cond, "select()")
        if self.cond.kind != "bool":
            raise TypeError("select() condition must be a comparison")
        if self.if_true.kind != self.if_false.kind:
            raise TypeError(
                f"select() branches differ: {self.if_true.kind} vs {self.if_false.kind}"
            )

    @property
    def kind(self) -> str:
        return self.if_true.kind

    def children(self):
        return self.cond, self.if_true, self.if_false


@dataclass(frozen=True, eq=False)
class Body:
    """A body result plus named intermediate float values, bound in order."""

    result: Expr
    lets: tuple[tuple[str, Expr], ...] = ()

    def exprs(self) -> Iterator[Expr]:
        for _, e in self.lets:
            yield e
        yield self.result

    def nodes(self) -> Iterator[Expr]:
        for e in self.exprs():
            yield from e.walk()

    def uniforms(self) -> dict[str, str]:
        """Uniform name → kind, in first-use order."""
        found: dict[str, str] = {}
        for node in self.nodes():
            if isinstance(node, Ref) and node.scope == "uniform":
                prior = found.setdefault(node.name, node.kind)
                if prior != node.kind:
                    raise TypeError(f"uniform {node.name!r} used as {prior} and {node.kind}")
        return found

    def validate(self) -> "Body":
        bound: set[str] = set()
        for name, e in self.lets:
            _check_locals(e, bound)
            if e.kind != "float":
                raise TypeError(f"local {name!r} must be a float, got {e.kind}")
            bound.add(name)
        _check_locals(self.result, bound)
        return self


def _check_locals(e: Expr, bound: set[str]) -> None:
    for node in e.walk():
        if isinstance(node, Ref) and node.scope == "local" and node.name not in bound:
            raise NameError(f"local {node.name!r} used before it is bound")


# ── builders ─────────────────────────────────────────────────────────

def lift(v) -> Expr:
    if isinstance(v, Expr):
        return v
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise TypeError(f"cannot use {v!r} in a program body")
    return Const(float(v))


def const(v: Number) -> Const:
    return Const(float(v))


def uniform(name: str, kind: str = "float") -> Ref:
    return Ref(name, kind, "uniform")


def local(name: str) -> Ref:
    return Ref(name, "float", "local")


def mod(a, b) -> Call:
    return Call("mod", (lift(a), lift(b)))


def floor(a) -> Call:
    return Call("floor", (lift(a),))


def fabs(a) -> Call:
    return Call("abs", (lift(a),))


def cos(a) -> Call:
    return Call("cos", (lift(a),))


def sin(a) -> Call:
    return Call("sin", (lift(a),))


def vec2(x, y) -> Call:
    return Call("vec2", (lift(x), lift(y)))


def cmul(a: Expr, b: Expr) -> Call:
    return Call("cmul", (a, b))


def inp(k) -> Call:
    """Amplitude of the basis state equal to the current one with out_id := k."""
    return Call("inp", (lift(k),))


def as_float(cond: Expr) -> Call:
    return Call("float", (cond,))


def select(cond: Expr, if_true, if_false) -> Select:
    return Select(cond, lift(if_true), lift(if_false))


def eq(a, b) -> Compare:
    return Compare("==", lift(a), lift(b))


def ne(a, b) -> Compare:
    return Compare("!=", lift(a), lift(b))


# Builtins every ket program can read.
OUT_ID = Ref("out_id")
FULL_OUT_ID = Ref("full_out_id")
SPAN = Ref("span")


def range_value(offset_pow: Expr, span_pow: Expr) -> Call:
    """Value of the qubit range with 2^offset = offset_pow and 2^length = span_pow."""
    return mod(floor(FULL_OUT_ID / offset_pow), span_pow)
