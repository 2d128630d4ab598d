"""Rewrite marked constructs so their evaluation is reported to the monitor.

Instrumentation happens in two passes over a parsed module:

1. :func:`plan_constructs` walks the original tree, asks the
   :class:`~inline_debugger.markers.MarkerScanner` which nodes are marked and
   classifies each marked node into one of the construct variants below.
   Shapes that fit no variant are left out of the plan.
2. :class:`_Rewriter` replaces the planned nodes with code calling the
   installed entry points ``inline_debugger_watch`` and
   ``inline_debugger_log``.

Bindings, bare expressions, returns and raises evaluate the marked operand
twice: once inside a thunk handed to the monitor (its result is discarded)
and once for real. This is only behaviour-preserving for side-effect free
operands. A marked ``await`` evaluates its operand once and awaits the object
the monitor hands back.
"""
from __future__ import annotations

import ast
import copy
import logging
from dataclasses import dataclass
from types import CodeType
from typing import Dict, List, Optional, Tuple, Union

from .comments import CommentMap
from .config import DebuggerConfig
from .markers import MarkerScanner
from .records import RecordKind

logger = logging.getLogger(__name__)

WATCH_ENTRY: str = "inline_debugger_watch"
LOG_ENTRY: str = "inline_debugger_log"
MONITOR_ENTRY_POINTS = frozenset({WATCH_ENTRY, LOG_ENTRY})

LOG_FUNCTIONS = frozenset({"print"})
LOG_RECEIVERS = frozenset({"logging", "logger", "log", "console"})
CLASS_MEMBER_DECORATORS = frozenset({"classmethod", "staticmethod"})
ANONYMOUS_LABEL: str = "anonymous"

_BOUND_VALUE = "_inline_debugger_value"

_MODULE, _FUNCTION, _CLASS = "module", "function", "class"


# ------------------------------------------------------------------ variants
@dataclass(frozen=True)
class Binding:
    name: str
    value: ast.expr


@dataclass(frozen=True)
class BareExpression:
    value: ast.expr


@dataclass(frozen=True)
class LogCall:
    callee: ast.expr
    args: List[ast.expr]
    keywords: List[ast.keyword]


@dataclass(frozen=True)
class Suspension:
    operand: ast.expr


@dataclass(frozen=True)
class Throw:
    exc: ast.expr


@dataclass(frozen=True)
class Return:
    value: ast.expr


@dataclass(frozen=True)
class Declaration:
    name: str
    kind: RecordKind


@dataclass(frozen=True)
class FunctionValue:
    function: ast.Lambda


Construct = Union[
    Binding, BareExpression, LogCall, Suspension, Throw, Return, Declaration, FunctionValue
]


# ------------------------------------------------------------------ shapes
def _is_monitor_call(node: ast.AST) -> bool:
    return (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in MONITOR_ENTRY_POINTS
    )


def _is_monitor_statement(node: ast.AST) -> bool:
    """A statement emitted next to a definition or a raise."""
    return isinstance(node, ast.Expr) and _is_monitor_call(node.value)


def _is_watched(node: ast.AST) -> bool:
    """``(inline_debugger_watch(...), E)[1]`` as emitted by this module."""
    return (
        isinstance(node, ast.Subscript)
        and isinstance(node.value, ast.Tuple)
        and len(node.value.elts) == 2
        and _is_monitor_call(node.value.elts[0])
    )


def _is_log_call(node: ast.AST) -> bool:
    if not isinstance(node, ast.Call) or _is_monitor_call(node):
        return False
    func = node.func
    if isinstance(func, ast.Name):
        return func.id in LOG_FUNCTIONS
    return (
        isinstance(func, ast.Attribute)
        and isinstance(func.value, ast.Name)
        and func.value.id in LOG_RECEIVERS
    )


def _is_deferrable(expr: ast.expr) -> bool:
    """Whether ``expr`` keeps its meaning inside ``lambda: expr``."""
    for node in ast.walk(expr):
        if isinstance(node, (ast.Await, ast.Yield, ast.YieldFrom)):
            return False
        # zero-argument super() needs the enclosing method's frame
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id == "super"
            and not node.args
        ):
            return False
    return True


def _decorator_name(node: ast.expr) -> Optional[str]:
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _declaration_kind(node: ast.stmt, scope: str) -> RecordKind:
    if scope != _CLASS:
        return RecordKind.FUNCTION
    decorators = {_decorator_name(d) for d in node.decorator_list}
    if decorators & CLASS_MEMBER_DECORATORS:
        return RecordKind.OBJECT_METHOD
    return RecordKind.METHOD


# ------------------------------------------------------------------ planning
class _Planner:
    def __init__(self, scanner: MarkerScanner) -> None:
        self.scanner = scanner
        self.plan: Dict[int, Construct] = {}

    def walk(self, node: ast.AST, scope: str) -> None:
        children = list(ast.iter_child_nodes(node))
        for index, child in enumerate(children):
            if isinstance(child, ast.stmt):
                neighbours = children[max(index - 1, 0) : index] + children[index + 1 : index + 2]
                if not any(_is_monitor_statement(n) for n in neighbours):
                    self._consider_statement(child, scope)
            if isinstance(child, ast.ClassDef):
                child_scope = _CLASS
            elif isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)):
                child_scope = _FUNCTION
            else:
                child_scope = scope
            self.walk(child, child_scope)

    def _consider_statement(self, stmt: ast.stmt, scope: str) -> None:
        # statements sit in blocks, which carry no comments of their own
        if not self.scanner.is_selected(stmt):
            return
        construct = self._classify_statement(stmt, scope)
        if construct is not None:
            self.plan[id(stmt)] = construct
            return
        for child in ast.iter_child_nodes(stmt):
            if isinstance(child, ast.expr) and self.scanner.is_selected(child, stmt):
                construct = self._classify_expression(child, scope)
                if construct is not None:
                    self.plan[id(child)] = construct

    def _classify_statement(self, stmt: ast.stmt, scope: str) -> Optional[Construct]:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            return Declaration(stmt.name or ANONYMOUS_LABEL, _declaration_kind(stmt, scope))
        if scope == _CLASS:
            # class-level names are invisible to lambdas defined in the class body
            return None

        if isinstance(stmt, ast.Assign):
            if len(stmt.targets) == 1 and isinstance(stmt.targets[0], ast.Name):
                if self._deferrable(stmt.value):
                    return Binding(stmt.targets[0].id, stmt.value)
        elif isinstance(stmt, ast.AnnAssign):
            if isinstance(stmt.target, ast.Name) and stmt.value is not None:
                if self._deferrable(stmt.value):
                    return Binding(stmt.target.id, stmt.value)
        elif isinstance(stmt, ast.Expr):
            # call statements are run for their effect; only logging calls are traced
            if not isinstance(stmt.value, ast.Call) and self._deferrable(stmt.value):
                return BareExpression(stmt.value)
        elif isinstance(stmt, ast.Return):
            if stmt.value is not None and self._deferrable(stmt.value):
                return Return(stmt.value)
        elif isinstance(stmt, ast.Raise):
            if stmt.exc is not None and _is_deferrable(stmt.exc):
                return Throw(stmt.exc)
        return None

    def _classify_expression(self, expr: ast.expr, scope: str) -> Optional[Construct]:
        if _is_log_call(expr):
            return LogCall(expr.func, expr.args, expr.keywords)
        if (
            isinstance(expr, ast.Await)
            and not _is_monitor_call(expr.value)
            and _is_deferrable(expr.value)
        ):
            return Suspension(expr.value)
        if isinstance(expr, ast.Lambda) and scope != _CLASS:
            return FunctionValue(expr)
        return None

    @staticmethod
    def _deferrable(value: ast.expr) -> bool:
        # logging calls are left to the LogCall strategy so they run once
        return _is_deferrable(value) and not _is_watched(value) and not _is_log_call(value)


def plan_constructs(tree: ast.AST, scanner: MarkerScanner) -> Dict[int, Construct]:
    """Map ``id(node)`` to the construct variant of every node to rewrite."""
    planner = _Planner(scanner)
    planner.walk(tree, _MODULE)
    return planner.plan


# ----------------------------------------------------------------- rewriting
def _no_arguments(*names: str, defaults: Optional[List[ast.expr]] = None) -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=[ast.arg(arg=name) for name in names],
        vararg=None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=defaults or [],
    )


def _comma(first: ast.expr, second: ast.expr) -> ast.expr:
    """``(first, second)[1]``: evaluate both in order, keep the second."""
    return ast.Subscript(
        value=ast.Tuple(elts=[first, second], ctx=ast.Load()),
        slice=ast.Constant(1),
        ctx=ast.Load(),
    )


class _Rewriter(ast.NodeTransformer):
    def __init__(self, plan: Dict[int, Construct], filename: str) -> None:
        self.plan = plan
        self.filename = filename

    def visit(self, node: ast.AST):
        construct = self.plan.get(id(node))
        node = self.generic_visit(node)
        if construct is None:
            return node
        return self._rewrite(construct, node)

    def _rewrite(self, construct: Construct, node):
        if isinstance(construct, Binding):
            node.value = self._observed(node, construct.value, RecordKind.VARIABLE, construct.name)
            return node
        if isinstance(construct, BareExpression):
            node.value = self._observed(node, construct.value, RecordKind.EXPRESSION)
            return node
        if isinstance(construct, Return):
            node.value = self._observed(node, construct.value, RecordKind.RETURN)
            return node
        if isinstance(construct, Suspension):
            # the program awaits what the monitor hands back, so the operand runs once
            thunk = self._located(ast.Lambda(args=_no_arguments(), body=node.value), node)
            node.value = self._watch_call(node, thunk, RecordKind.AWAIT)
            return node
        if isinstance(construct, FunctionValue):
            return self._located(_comma(self._watch(node, construct.function, RecordKind.ARROW), node), node)
        if isinstance(construct, Throw):
            report = self._located(ast.Expr(value=self._watch(node, construct.exc, RecordKind.THROW)), node)
            return [report, node]
        if isinstance(construct, Declaration):
            return [node, self._located(ast.Expr(value=self._declared(node, construct)), node)]
        if isinstance(construct, LogCall):
            return self._located(self._log(node, construct), node)
        raise TypeError(f"unsupported construct {construct!r}")  # pragma: no cover

    # ---------------------------------------------------------------- builders
    def _located(self, new: ast.AST, old: ast.AST) -> ast.AST:
        return ast.copy_location(new, old)

    def _position(self, node: ast.AST) -> List[ast.keyword]:
        return [
            ast.keyword(arg="file_path", value=ast.Constant(self.filename)),
            ast.keyword(arg="line", value=ast.Constant(getattr(node, "lineno", 0))),
        ]

    def _watch_call(
        self,
        node: ast.AST,
        thunk: ast.Lambda,
        kind: RecordKind,
        label: Optional[str] = None,
        fresh: bool = False,
    ) -> ast.Call:
        keywords = [ast.keyword(arg="kind", value=ast.Constant(kind.value))]
        keywords.extend(self._position(node))
        if label is not None:
            keywords.append(ast.keyword(arg="label", value=ast.Constant(label)))
        if fresh:
            keywords.append(ast.keyword(arg="fresh", value=ast.Constant(True)))
        call = ast.Call(func=ast.Name(id=WATCH_ENTRY, ctx=ast.Load()), args=[thunk], keywords=keywords)
        return self._located(call, node)

    def _watch(
        self,
        node: ast.AST,
        operand: ast.expr,
        kind: RecordKind,
        label: Optional[str] = None,
        fresh: bool = False,
    ) -> ast.Call:
        thunk = ast.Lambda(args=_no_arguments(), body=copy.deepcopy(operand))
        return self._watch_call(node, self._located(thunk, node), kind, label, fresh)

    def _observed(
        self, node: ast.AST, value: ast.expr, kind: RecordKind, label: Optional[str] = None
    ) -> ast.expr:
        # a call in the thunk builds its own object, never the one the program keeps
        watch = self._watch(node, value, kind, label, fresh=isinstance(value, ast.Call))
        return self._located(_comma(watch, value), value)

    def _declared(self, node: ast.stmt, construct: Declaration) -> ast.Call:
        # the default is evaluated where the definition lives, class bodies included
        thunk = ast.Lambda(
            args=_no_arguments(_BOUND_VALUE, defaults=[ast.Name(id=construct.name, ctx=ast.Load())]),
            body=ast.Name(id=_BOUND_VALUE, ctx=ast.Load()),
        )
        return self._watch_call(node, self._located(thunk, node), construct.kind, construct.name)

    def _log(self, node: ast.Call, construct: LogCall) -> ast.Call:
        args = ast.Tuple(elts=list(construct.args), ctx=ast.Load())
        kwargs = ast.Dict(
            keys=[kw.arg and ast.Constant(kw.arg) for kw in construct.keywords],
            values=[kw.value for kw in construct.keywords],
        )
        return ast.Call(
            func=ast.Name(id=LOG_ENTRY, ctx=ast.Load()),
            args=[construct.callee, args, kwargs],
            keywords=self._position(node),
        )


# ---------------------------------------------------------------- public API
def _instrument(
    tree: ast.Module, source: str, filename: str, config: Optional[DebuggerConfig]
) -> Tuple[ast.Module, int]:
    if config is None:
        config = DebuggerConfig.from_env()
    if not config.enabled:
        return tree, 0
    scanner = MarkerScanner(CommentMap(tree, source))
    plan = plan_constructs(tree, scanner)
    if not plan:
        return tree, 0
    logger.debug(
        "instrumenting %d construct(s) in %s (trace output: %s)",
        len(plan),
        filename,
        config.output_file,
    )
    tree = _Rewriter(plan, filename).visit(tree)
    return ast.fix_missing_locations(tree), len(plan)


def transform_tree(
    tree: ast.Module,
    source: str,
    filename: str = "<unknown>",
    config: Optional[DebuggerConfig] = None,
) -> ast.Module:
    """Instrument the marked constructs of ``tree`` (parsed from ``source``)."""
    tree, _ = _instrument(tree, source, filename, config)
    return tree


def transform_source(
    source: str,
    filename: str = "<unknown>",
    config: Optional[DebuggerConfig] = None,
) -> str:
    """Return instrumented source text, or ``source`` itself when nothing is marked."""
    tree, count = _instrument(ast.parse(source, filename), source, filename, config)
    if not count:
        return source
    return ast.unparse(tree)


def compile_source(
    source: str,
    filename: str = "<unknown>",
    config: Optional[DebuggerConfig] = None,
) -> CodeType:
    tree = transform_tree(ast.parse(source, filename), source, filename, config)
    return compile(tree, filename, "exec", dont_inherit=True)


__all__ = [
    "BareExpression",
    "Binding",
    "Construct",
    "Declaration",
    "FunctionValue",
    "LOG_ENTRY",
    "LogCall",
    "MONITOR_ENTRY_POINTS",
    "Return",
    "Suspension",
    "Throw",
    "WATCH_ENTRY",
    "compile_source",
    "plan_constructs",
    "transform_source",
    "transform_tree",
]
