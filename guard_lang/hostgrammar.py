"""Delegation of expressions, patterns and actions to Python's own grammar.

Every helper returns ``None`` instead of raising so that it can be used inside
a speculative parse without leaving anything behind.
"""

import ast
from typing import List, Optional, Tuple

SIMPLE_STATEMENTS = (
    ast.Assert,
    ast.Assign,
    ast.AnnAssign,
    ast.AugAssign,
    ast.Break,
    ast.Continue,
    ast.Delete,
    ast.Expr,
    ast.Global,
    ast.Import,
    ast.ImportFrom,
    ast.Nonlocal,
    ast.Pass,
    ast.Raise,
    ast.Return,
)


def parse_expression(src: str) -> Optional[ast.expr]:
    if not src.strip():
        return None
    try:
        tree = ast.parse(f"(\n{src}\n)", mode="eval")
    except (SyntaxError, ValueError):
        return None
    return tree.body


def parse_pattern(src: str) -> Optional[ast.pattern]:
    if not src.strip():
        return None
    try:
        tree = ast.parse(f"match _:\n case (\n{src}\n):\n  pass\n")
    except (SyntaxError, ValueError):
        return None
    return tree.body[0].cases[0].pattern


def parse_action(src: str) -> Optional[Tuple[ast.stmt, ...]]:
    if not src.strip():
        return None
    try:
        tree = ast.parse(src)
    except (SyntaxError, ValueError):
        return None
    if not tree.body or not all(isinstance(s, SIMPLE_STATEMENTS) for s in tree.body):
        return None
    return tuple(tree.body)


def is_irrefutable(pattern: ast.pattern) -> bool:
    if isinstance(pattern, ast.MatchAs):
        return pattern.pattern is None or is_irrefutable(pattern.pattern)
    if isinstance(pattern, ast.MatchOr):
        return any(is_irrefutable(p) for p in pattern.patterns)
    return False


def pattern_captures(pattern: ast.pattern) -> List[str]:
    """Names a pattern binds, in source order."""
    names: List[str] = []
    for node in ast.walk(pattern):
        if isinstance(node, (ast.MatchAs, ast.MatchStar)) and node.name:
            names.append(node.name)
        elif isinstance(node, ast.MatchMapping) and node.rest:
            names.append(node.rest)
    return list(dict.fromkeys(names))
