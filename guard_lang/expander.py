import ast
import copy
import logging
from typing import Dict, Iterable, List, Optional, Set

from .handlers import Action, default_handler, group_handler, leaf_handler, resolve_program
from .hostgrammar import is_irrefutable, pattern_captures
from .models import Destructure, GuardConfig, GuardEntry, GuardProgram, Group, Test
from .scope import BindingScope

logger = logging.getLogger(__name__)


class _Renamer(ast.NodeTransformer):
    """Respell names according to a scope snapshot.

    ``renames`` applies to names read or assigned in expressions;
    ``captures`` applies to the names a pattern binds. Lambda parameters and
    comprehension variables shadow both.

    With a ``scope``, ``:=`` targets are declared in evaluation order: the
    value is respelled first, then the target, then every later read.
    """

    def __init__(
        self,
        renames: Dict[str, str],
        captures: Optional[Dict[str, str]] = None,
        scope: Optional[BindingScope] = None,
    ):
        self.renames = dict(renames)
        self.captures = captures or {}
        self.scope = scope
        self.shadowed: List[Set[str]] = []

    def _respell(self, name: str) -> str:
        if any(name in names for names in self.shadowed):
            return name
        return self.renames.get(name, name)

    def visit_Name(self, node: ast.Name) -> ast.Name:
        node.id = self._respell(node.id)
        return node

    def visit_Global(self, node: ast.Global) -> ast.Global:
        node.names = [self._respell(n) for n in node.names]
        return node

    visit_Nonlocal = visit_Global

    def visit_NamedExpr(self, node: ast.NamedExpr) -> ast.NamedExpr:
        node.value = self.visit(node.value)
        name = node.target.id
        if self.scope is not None:
            self.renames[name] = self.scope.declare(name)
        node.target.id = self._respell(name)
        return node

    def _capture(self, node):
        if node.name is not None:
            node.name = self.captures.get(node.name, node.name)
        return self.generic_visit(node)

    visit_MatchAs = _capture
    visit_MatchStar = _capture

    def visit_MatchMapping(self, node: ast.MatchMapping) -> ast.MatchMapping:
        if node.rest is not None:
            node.rest = self.captures.get(node.rest, node.rest)
        return self.generic_visit(node)

    def visit_Lambda(self, node: ast.Lambda) -> ast.Lambda:
        node.args = self.visit(node.args)
        args = node.args
        params = {a.arg for a in args.posonlyargs + args.args + args.kwonlyargs}
        params.update(a.arg for a in (args.vararg, args.kwarg) if a is not None)
        # ':=' inside a lambda binds in the lambda.
        scope, self.scope = self.scope, None
        self.shadowed.append(params)
        node.body = self.visit(node.body)
        self.shadowed.pop()
        self.scope = scope
        return node

    def _comprehension(self, node, fields: Iterable[str]):
        generators = node.generators
        generators[0].iter = self.visit(generators[0].iter)
        targets = {
            n.id
            for gen in generators
            for n in ast.walk(gen.target)
            if isinstance(n, ast.Name)
        }
        self.shadowed.append(targets)
        for idx, gen in enumerate(generators):
            if idx:
                gen.iter = self.visit(gen.iter)
            gen.ifs = [self.visit(cond) for cond in gen.ifs]
        for name in fields:
            setattr(node, name, self.visit(getattr(node, name)))
        self.shadowed.pop()
        return node

    def visit_ListComp(self, node):
        return self._comprehension(node, ("elt",))

    def visit_SetComp(self, node):
        return self._comprehension(node, ("elt",))

    def visit_GeneratorExp(self, node):
        return self._comprehension(node, ("elt",))

    def visit_DictComp(self, node):
        return self._comprehension(node, ("key", "value"))


class GuardExpander:
    """Turns a parsed guard program into Python statements.

    Every entry becomes one statement, in declaration order:

    * ``pattern = source`` -> ``match source: case pattern: pass / case _: H``
    * ``condition``        -> ``if not condition: H``

    where ``H`` is the entry's effective refute handler. Groups resolve their
    handler first and then expand their body, either into the current binding
    scope (``*{...}``) or into a fresh one.
    """

    def __init__(self, config: Optional[GuardConfig] = None):
        self.config = config if config is not None else GuardConfig()
        self.default = default_handler(self.config)
        self.scope = BindingScope(self.config.hygiene_prefix)

    def expand(self, program: GuardProgram, ambient: Optional[Action] = None) -> List[ast.stmt]:
        self.scope = BindingScope(self.config.hygiene_prefix)
        ambient = self.default if ambient is None else ambient
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("expanding:\n%s", format_tree(program, ambient))
        return self._program(program, ambient)

    def _program(self, program: GuardProgram, ambient: Action) -> List[ast.stmt]:
        out: List[ast.stmt] = []
        for entry in program:
            out.extend(self._entry(entry, ambient))
        return out

    def _entry(self, entry: GuardEntry, ambient: Action) -> List[ast.stmt]:
        if isinstance(entry, Group):
            return self._group(entry, ambient)
        handler = leaf_handler(entry, ambient)
        if isinstance(entry.clause, Destructure):
            return [self._destructure(entry.clause, handler)]
        return [self._test(entry.clause, handler)]

    def _group(self, group: Group, ambient: Action) -> List[ast.stmt]:
        handler = group_handler(group, ambient)
        if group.flatten:
            return self._program(group.body, handler)
        self.scope.push_frame()
        try:
            return self._program(group.body, handler)
        finally:
            self.scope.pop_frame()

    def _destructure(self, clause: Destructure, handler: Action) -> ast.Match:
        subject = _Renamer(self.scope.visible(), scope=self.scope).visit(
            copy.deepcopy(clause.source)
        )
        evaluated = self.scope.visible()
        refute = self._action(handler, evaluated)

        captures = {name: self.scope.declare(name) for name in pattern_captures(clause.pattern)}
        pattern = _Renamer(evaluated, captures).visit(copy.deepcopy(clause.pattern))

        cases = [ast.match_case(pattern=pattern, guard=None, body=[ast.Pass()])]
        if not is_irrefutable(clause.pattern):
            cases.append(
                ast.match_case(
                    pattern=ast.MatchAs(pattern=None, name=None), guard=None, body=refute
                )
            )
        return ast.Match(subject=subject, cases=cases)

    def _test(self, clause: Test, handler: Action) -> ast.If:
        condition = _Renamer(self.scope.visible(), scope=self.scope).visit(
            copy.deepcopy(clause.condition)
        )
        return ast.If(
            test=ast.UnaryOp(op=ast.Not(), operand=condition),
            body=self._action(handler, self.scope.visible()),
            orelse=[],
        )

    @staticmethod
    def _action(handler: Action, renames: Dict[str, str]) -> List[ast.stmt]:
        renamer = _Renamer(renames)
        return [renamer.visit(copy.deepcopy(stmt)) for stmt in handler]


def render(stmts: Iterable[ast.stmt]) -> str:
    return ast.unparse(ast.Module(body=list(stmts), type_ignores=[]))


def format_tree(program: GuardProgram, ambient: Action) -> str:
    """Indented listing of entries with their resolved handlers."""
    lines = []
    for depth, entry, handler in resolve_program(program, ambient):
        pad = "  " * depth
        action = render(handler).replace("\n", "; ")
        if isinstance(entry, Group):
            kind = "*group" if entry.flatten else "group"
            lines.append(f"{pad}{kind} => {action}")
        elif isinstance(entry.clause, Destructure):
            clause = entry.clause
            lines.append(
                f"{pad}let {ast.unparse(clause.pattern)} = {ast.unparse(clause.source)} => {action}"
            )
        else:
            lines.append(f"{pad}if {ast.unparse(entry.clause.condition)} => {action}")
    return "\n".join(lines)
