from typing import Dict, Iterable, List, Optional, Sequence

from lark import Token
from lark.exceptions import UnexpectedCharacters

from .exceptions import GuardSyntaxError
from .grammar import CLOSERS, OPENERS, build_lexer


class TokenStream:
    """Lexed guard source with every bracket matched to its partner."""

    def __init__(self, text: str, tokens: Sequence[Token]):
        self.text = text
        self.tokens: List[Token] = list(tokens)
        self.partners: Dict[int, int] = self._match_brackets(self.tokens)

    @classmethod
    def from_text(cls, text: str) -> "TokenStream":
        try:
            tokens = list(build_lexer().lex(text))
        except UnexpectedCharacters as e:
            raise GuardSyntaxError(
                f"unexpected character {e.char!r}", e.line, e.column
            ) from e
        return cls(text, tokens)

    @staticmethod
    def _match_brackets(tokens: Sequence[Token]) -> Dict[int, int]:
        partners: Dict[int, int] = {}
        stack: List[int] = []
        for idx, tok in enumerate(tokens):
            if tok.type in OPENERS:
                stack.append(idx)
            elif tok.type in CLOSERS:
                if not stack:
                    raise GuardSyntaxError(
                        f"unmatched closing {tok.value!r}", tok.line, tok.column
                    )
                opener = stack.pop()
                if tokens[opener].type != CLOSERS[tok.type]:
                    first = tokens[opener]
                    raise GuardSyntaxError(
                        f"{first.value!r} closed by {tok.value!r}",
                        first.line,
                        first.column,
                    )
                partners[opener] = idx
        if stack:
            first = tokens[stack[0]]
            raise GuardSyntaxError(f"unclosed {first.value!r}", first.line, first.column)
        return partners

    def cursor(self) -> "Cursor":
        return Cursor(self, 0, len(self.tokens))


class Cursor:
    """A position inside a bounded window of a TokenStream.

    Cursors never mutate the stream. ``fork()`` takes a checkpoint that can be
    advanced independently; ``advance_to()`` commits it. Dropping a fork is
    the rollback.
    """

    __slots__ = ("stream", "pos", "end")

    def __init__(self, stream: TokenStream, pos: int, end: int):
        self.stream = stream
        self.pos = pos
        self.end = end

    def __repr__(self) -> str:
        return f"Cursor(pos={self.pos}, end={self.end})"

    def at_end(self) -> bool:
        return self.pos >= self.end

    def peek(self, offset: int = 0) -> Optional[Token]:
        idx = self.pos + offset
        if idx < self.end:
            return self.stream.tokens[idx]
        return None

    def peek_type(self, offset: int = 0) -> Optional[str]:
        tok = self.peek(offset)
        return tok.type if tok is not None else None

    def advance(self) -> Token:
        tok = self.peek()
        if tok is None:
            raise GuardSyntaxError("unexpected end of input", *self.location())
        self.pos += 1
        return tok

    def accept(self, token_type: str) -> Optional[Token]:
        if self.peek_type() == token_type:
            return self.advance()
        return None

    def fork(self) -> "Cursor":
        return Cursor(self.stream, self.pos, self.end)

    def advance_to(self, other: "Cursor") -> None:
        self.pos = other.pos

    def partner(self, idx: int) -> int:
        return self.stream.partners[idx]

    def enter(self, open_idx: int) -> "Cursor":
        """Cursor over the interior of the bracket pair opened at ``open_idx``."""
        return Cursor(self.stream, open_idx + 1, self.partner(open_idx))

    def scan_until(self, stops: Iterable[str]) -> int:
        """Index of the first depth-0 token whose type is in ``stops``."""
        stops = frozenset(stops)
        idx = self.pos
        tokens = self.stream.tokens
        while idx < self.end:
            tok_type = tokens[idx].type
            if tok_type in stops:
                return idx
            if tok_type in OPENERS:
                idx = self.stream.partners[idx]
            idx += 1
        return self.end

    def text(self, start: int, stop: int) -> str:
        """Exact source text covered by tokens[start:stop]."""
        if start >= stop:
            return ""
        tokens = self.stream.tokens
        return self.stream.text[tokens[start].start_pos : tokens[stop - 1].end_pos]

    def location(self, idx: Optional[int] = None):
        """(line, column) of a token, or of the end of the window."""
        idx = self.pos if idx is None else idx
        tokens = self.stream.tokens
        if idx < self.end:
            return tokens[idx].line, tokens[idx].column
        if 0 <= self.end < len(tokens):
            return tokens[self.end].line, tokens[self.end].column
        if tokens:
            last = tokens[-1]
            return last.end_line, last.end_column
        return 1, 1
