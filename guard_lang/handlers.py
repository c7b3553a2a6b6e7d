"""Refute handler resolution.

A leaf uses its own handler when it has one, otherwise the ambient handler of
the program it sits in. A group always names a handler: an explicit action
becomes the ambient handler of its body, ``=> _`` forwards the group's own
ambient handler unchanged.
"""

import ast
from typing import List, Tuple

from .exceptions import GuardError
from .hostgrammar import parse_action
from .models import (
    Explicit,
    GuardConfig,
    GuardEntry,
    GuardProgram,
    Group,
    Inherit,
    Leaf,
    RefuteHandlerInheritable,
)

Action = Tuple[ast.stmt, ...]


def action_from_text(src: str) -> Action:
    action = parse_action(src)
    if action is None:
        raise GuardError(f"Invalid refute handler {src!r}: expected Python statement(s)")
    return action


def default_handler(config: GuardConfig) -> Action:
    return action_from_text(config.default_handler)


def leaf_handler(leaf: Leaf, ambient: Action) -> Action:
    if leaf.handler is not None:
        return leaf.handler.action
    return ambient


def group_handler(group: Group, ambient: Action) -> Action:
    return inheritable_handler(group.handler, ambient)


def inheritable_handler(handler: RefuteHandlerInheritable, ambient: Action) -> Action:
    if isinstance(handler, Explicit):
        return handler.action
    if isinstance(handler, Inherit):
        return ambient
    raise GuardError(f"Unknown refute handler {handler!r}")


def resolve_program(
    program: GuardProgram, ambient: Action, depth: int = 0
) -> List[Tuple[int, GuardEntry, Action]]:
    """Flatten a program into (depth, entry, effective handler) rows, parents first."""
    rows: List[Tuple[int, GuardEntry, Action]] = []
    for entry in program:
        if isinstance(entry, Group):
            effective = group_handler(entry, ambient)
            rows.append((depth, entry, effective))
            rows.extend(resolve_program(entry.body, effective, depth + 1))
        else:
            rows.append((depth, entry, leaf_handler(entry, ambient)))
    return rows
