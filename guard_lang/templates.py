import ast
import keyword
import logging
from typing import Dict, List, Optional

from .exceptions import GuardSyntaxError, TemplateError
from .expander import GuardExpander
from .handlers import inheritable_handler
from .models import INHERIT, GuardConfig, TemplateDefinition
from .parser import GuardParser
from .tokens import Cursor, TokenStream

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "guard"


def parse_templates(cursor: Cursor, parser: Optional[GuardParser] = None) -> List[TemplateDefinition]:
    """Parse ``name => action, name => _, ...``; all declarations or none."""
    parser = parser if parser is not None else GuardParser()
    definitions: List[TemplateDefinition] = []
    while not cursor.at_end():
        line, column = cursor.location()
        tok = cursor.accept("NAME")
        if tok is None or keyword.iskeyword(tok):
            raise GuardSyntaxError(
                "expected template name", line, column, expected=("identifier",)
            )
        if cursor.accept("ARROW") is None:
            raise GuardSyntaxError(
                f"template {str(tok)!r} is missing its refute handler",
                *cursor.location(),
                expected=("=>",),
            )
        definitions.append(TemplateDefinition(str(tok), parser.inheritable_handler(cursor)))
        if cursor.at_end():
            break
        if cursor.accept("COMMA") is None:
            raise GuardSyntaxError(
                "expected ',' between template declarations",
                *cursor.location(),
                expected=("','",),
            )
    return definitions


class TemplateRegistry:
    """Named guard templates, visible in lexically nested frames.

    ``guard`` is always available and expands with the default handler.
    """

    def __init__(self, config: Optional[GuardConfig] = None):
        self.config = config if config is not None else GuardConfig()
        self.parser = GuardParser(self.config)
        self.expander = GuardExpander(self.config)
        self.globals: Dict[str, TemplateDefinition] = {
            DEFAULT_TEMPLATE: TemplateDefinition(DEFAULT_TEMPLATE, INHERIT)
        }
        self.stack: List[Dict[str, TemplateDefinition]] = []

    def push_frame(self) -> None:
        self.stack.append({})

    def pop_frame(self) -> None:
        if self.stack:
            self.stack.pop()

    def get(self, name: str) -> TemplateDefinition:
        for frame in reversed(self.stack):
            if name in frame:
                return frame[name]
        if name in self.globals:
            return self.globals[name]
        raise TemplateError(f"Unknown guard template '{name}'")

    def __contains__(self, name: str) -> bool:
        try:
            self.get(name)
        except TemplateError:
            return False
        return True

    def declare(self, definition: TemplateDefinition) -> None:
        if not definition.name.isidentifier() or keyword.iskeyword(definition.name):
            raise TemplateError(f"Invalid template name '{definition.name}'")
        target = self.stack[-1] if self.stack else self.globals
        target[definition.name] = definition
        logger.debug("defined template %s (%s)", definition.name, type(definition.handler).__name__)

    def define(self, cursor: Cursor) -> List[TemplateDefinition]:
        definitions = parse_templates(cursor, self.parser)
        for definition in definitions:
            self.declare(definition)
        return definitions

    def define_text(self, text: str) -> List[TemplateDefinition]:
        return self.define(TokenStream.from_text(text).cursor())

    def invoke(self, name: str, cursor: Cursor) -> List[ast.stmt]:
        """Expand ``name(E)`` exactly as ``*{ E } => action`` at top level."""
        definition = self.get(name)
        ambient = inheritable_handler(definition.handler, self.expander.default)
        return self.expander.expand(self.parser.parse(cursor), ambient)

    def invoke_text(self, name: str, text: str) -> List[ast.stmt]:
        return self.invoke(name, TokenStream.from_text(text).cursor())
