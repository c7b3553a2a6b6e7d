import logging
from typing import Optional

from .exceptions import GuardSyntaxError
from .handlers import Action
from .hostgrammar import parse_action, parse_expression, parse_pattern
from .models import (
    INHERIT,
    Clause,
    Destructure,
    Explicit,
    GuardConfig,
    GuardEntry,
    GuardProgram,
    Group,
    Leaf,
    RefuteHandler,
    RefuteHandlerInheritable,
    Test,
)
from .tokens import Cursor, TokenStream

logger = logging.getLogger(__name__)

CLAUSE_STOPS = ("COMMA", "ARROW")
CLAUSE_EXPECTED = ("pattern = expression", "expression")


class GuardParser:
    """Recursive-descent parser for guard programs.

    Python expressions, patterns and statements are located by scanning for
    the structural tokens at bracket depth 0 and are then parsed by ``ast``.
    Alternatives are tried on forked cursors, so a failed attempt leaves the
    caller's position untouched.
    """

    def __init__(self, config: Optional[GuardConfig] = None):
        self.config = config if config is not None else GuardConfig()

    def parse_text(self, text: str) -> GuardProgram:
        return self.parse(TokenStream.from_text(text).cursor())

    def parse(self, cursor: Cursor) -> GuardProgram:
        entries = []
        while not cursor.at_end():
            entries.append(self._entry(cursor))
            if cursor.at_end():
                break
            if cursor.accept("COMMA") is None:
                raise GuardSyntaxError(
                    "expected ',' between guard entries",
                    *cursor.location(),
                    expected=("','",),
                )
        return GuardProgram(tuple(entries))

    # --- Entries ---

    def _entry(self, cursor: Cursor) -> GuardEntry:
        group = self._try_group(cursor)
        if group is not None:
            return group

        brace_idx = self._bare_brace_block(cursor)
        if brace_idx is not None and self.config.strict_braces:
            tok = cursor.stream.tokens[brace_idx]
            raise GuardSyntaxError(
                "brace block without refute handler; add '=> _' to make it a guard group",
                tok.line,
                tok.column,
                expected=("=>",),
            )

        clause = self._clause(cursor)
        if brace_idx is not None:
            logger.debug(
                "brace block at line %s read as a boolean test", clause.line
            )
        return Leaf(clause, self._local_handler(cursor))

    def _try_group(self, cursor: Cursor) -> Optional[Group]:
        fork = cursor.fork()
        flatten = fork.accept("STAR") is not None
        if fork.peek_type() != "LBRACE":
            return None
        open_idx = fork.pos
        fork.pos = fork.partner(open_idx) + 1
        if fork.accept("ARROW") is None:
            return None

        # Committed: the closing brace is followed by a handler.
        handler = self.inheritable_handler(fork)
        body = self.parse(cursor.enter(open_idx))
        cursor.advance_to(fork)
        logger.debug(
            "group at line %s: flatten=%s, %d entries, handler=%s",
            cursor.stream.tokens[open_idx].line,
            flatten,
            len(body),
            type(handler).__name__,
        )
        return Group(flatten, body, handler)

    def _bare_brace_block(self, cursor: Cursor) -> Optional[int]:
        """Index of a ``{`` that alone makes up the next entry, if any."""
        if cursor.peek_type() != "LBRACE":
            return None
        after = cursor.fork()
        after.pos = after.partner(cursor.pos) + 1
        if after.at_end() or after.peek_type() == "COMMA":
            return cursor.pos
        return None

    # --- Clauses ---

    def _clause(self, cursor: Cursor) -> Clause:
        line, column = cursor.location()
        clause = self._try_destructure(cursor, line, column)
        if clause is None:
            clause = self._try_test(cursor, line, column)
        if clause is None:
            raise GuardSyntaxError(
                "expected destructure clause 'pattern = expression' "
                "or boolean test 'expression'",
                line,
                column,
                expected=CLAUSE_EXPECTED,
            )
        return clause

    def _try_destructure(
        self, cursor: Cursor, line: int, column: int
    ) -> Optional[Destructure]:
        fork = cursor.fork()
        eq_idx = fork.scan_until(("ASSIGN",) + CLAUSE_STOPS)
        if eq_idx >= fork.end or fork.stream.tokens[eq_idx].type != "ASSIGN":
            return None
        pattern = parse_pattern(fork.text(fork.pos, eq_idx))
        if pattern is None:
            return None

        fork.pos = eq_idx + 1
        stop = fork.scan_until(CLAUSE_STOPS)
        source = parse_expression(fork.text(fork.pos, stop))
        if source is None:
            return None

        fork.pos = stop
        cursor.advance_to(fork)
        return Destructure(pattern, source, line, column)

    def _try_test(self, cursor: Cursor, line: int, column: int) -> Optional[Test]:
        fork = cursor.fork()
        stop = fork.scan_until(CLAUSE_STOPS)
        condition = parse_expression(fork.text(fork.pos, stop))
        if condition is None:
            return None
        fork.pos = stop
        cursor.advance_to(fork)
        return Test(condition, line, column)

    # --- Handlers ---

    def _local_handler(self, cursor: Cursor) -> Optional[RefuteHandler]:
        if cursor.accept("ARROW") is None:
            return None
        if self._is_inherit_marker(cursor):
            raise GuardSyntaxError(
                "'=> _' inherits a handler and is only allowed after a guard group; "
                "a clause needs a statement",
                *cursor.location(),
                expected=("statement",),
            )
        return RefuteHandler(self.action(cursor))

    @staticmethod
    def _is_inherit_marker(cursor: Cursor) -> bool:
        tok = cursor.peek()
        return (
            cursor.scan_until(("COMMA",)) == cursor.pos + 1
            and tok.type == "NAME"
            and tok == "_"
        )

    def inheritable_handler(self, cursor: Cursor) -> RefuteHandlerInheritable:
        """Parse what follows '=>': either '_' or an action."""
        if self._is_inherit_marker(cursor):
            cursor.advance()
            return INHERIT
        return Explicit(self.action(cursor))

    def action(self, cursor: Cursor) -> Action:
        line, column = cursor.location()
        stop = cursor.scan_until(("COMMA",))
        action = parse_action(cursor.text(cursor.pos, stop))
        if action is None:
            raise GuardSyntaxError(
                "expected refute handler statement after '=>'",
                line,
                column,
                expected=("statement",),
            )
        cursor.pos = stop
        return action
