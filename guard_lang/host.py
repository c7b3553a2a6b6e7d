"""Source-level host for guard invocations embedded in Python files.

An invocation is a statement line of the form ``name!( ... )`` (brackets or
braces work too), optionally followed by ``;``. ``make_guard!`` declares
templates for the rest of the enclosing block; any declared template name,
and the built-in ``guard``, is replaced by its expansion.
"""

import logging
import re
from typing import List, Optional, Tuple

from lark.exceptions import UnexpectedCharacters

from .exceptions import GuardSyntaxError
from .expander import render
from .grammar import CLOSERS, OPENERS, build_lexer
from .models import GuardConfig
from .templates import TemplateRegistry
from .tokens import TokenStream

logger = logging.getLogger(__name__)

DEFINE_TEMPLATES = "make_guard"

INVOCATION = re.compile(r"(?P<indent>[ \t]*)(?P<name>[^\W\d]\w*)!\s*(?P<open>[(\[{])")


def indent(text: str, prefix: str) -> List[str]:
    return [prefix + line + "\n" for line in text.split("\n")]


def _width(line: str) -> int:
    lead = line[: len(line) - len(line.lstrip(" \t"))]
    return len(lead.expandtabs(8))


class GuardPreprocessor:
    def __init__(self, config: Optional[GuardConfig] = None):
        self.config = config if config is not None else GuardConfig()

    def transform_file(self, path: str) -> str:
        with open(path, "r", encoding="utf-8") as f:
            return self.transform(f.read())

    def transform(self, source: str) -> str:
        registry = TemplateRegistry(self.config)
        frame_indents: List[int] = []
        lines = source.splitlines(keepends=True)
        starts = [0]
        for line in lines:
            starts.append(starts[-1] + len(line))

        out: List[str] = []
        idx = 0
        while idx < len(lines):
            line = lines[idx]
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                out.append(line)
                idx += 1
                continue

            width = _width(line)
            while frame_indents and frame_indents[-1] > width:
                frame_indents.pop()
                registry.pop_frame()

            match = INVOCATION.match(line)
            name = match["name"] if match else None
            if name is None or (name != DEFINE_TEMPLATES and name not in registry):
                out.append(line)
                idx += 1
                continue

            open_offset = starts[idx] + match.start("open")
            line_no, col = idx + 1, match.start("open") + 1
            close_offset = self._closing_offset(source, open_offset, line_no, col)
            inner = source[open_offset + 1 : close_offset]
            try:
                cursor = TokenStream.from_text(inner).cursor()
                if name == DEFINE_TEMPLATES:
                    if not frame_indents or frame_indents[-1] != width:
                        frame_indents.append(width)
                        registry.push_frame()
                    registry.define(cursor)
                    expansion: List[str] = []
                else:
                    stmts = registry.invoke(name, cursor)
                    expansion = indent(render(stmts) or "pass", match["indent"])
            except GuardSyntaxError as e:
                raise e.shifted(line_no - 1, col) from e
            logger.debug("line %d: expanded %s! into %d line(s)", line_no, name, len(expansion))
            out.extend(expansion)

            close_idx = source.count("\n", 0, close_offset)
            trailing = self._trailing(source, close_offset + 1, starts[close_idx + 1])
            if trailing:
                out.append(match["indent"] + trailing + "\n")
            idx = close_idx + 1
        return "".join(out)

    @staticmethod
    def _closing_offset(source: str, open_offset: int, line_no: int, col: int) -> int:
        stack: List[Tuple[str, int, int]] = []
        try:
            for tok in build_lexer().lex(source[open_offset:]):
                if tok.type in OPENERS:
                    stack.append((tok.type, tok.line, tok.column))
                elif tok.type in CLOSERS:
                    if not stack:
                        break
                    opener, line, column = stack.pop()
                    if opener != CLOSERS[tok.type]:
                        raise GuardSyntaxError(
                            f"bracket closed by {tok.value!r}", line, column
                        ).shifted(line_no - 1, col - 1)
                    if not stack:
                        return open_offset + tok.start_pos
        except UnexpectedCharacters as e:
            raise GuardSyntaxError(
                f"unexpected character {e.char!r}", e.line, e.column
            ).shifted(line_no - 1, col - 1) from e
        raise GuardSyntaxError(f"unclosed {source[open_offset]!r}", line_no, col)

    @staticmethod
    def _trailing(source: str, start: int, stop: int) -> str:
        rest = source[start:stop].strip()
        if rest.startswith(";"):
            rest = rest[1:].strip()
        return rest
