from typing import List, Optional

from .grammar import GUARD_LEXICON
from .exceptions import GuardError, GuardSyntaxError, TemplateError
from .models import (
    INHERIT,
    Destructure,
    Explicit,
    GuardConfig,
    GuardProgram,
    Group,
    Inherit,
    Leaf,
    RefuteHandler,
    TemplateDefinition,
    Test,
)
from .tokens import Cursor, TokenStream
from .handlers import action_from_text, default_handler, group_handler, leaf_handler, resolve_program
from .parser import GuardParser
from .scope import BindingScope
from .expander import GuardExpander, format_tree, render
from .templates import TemplateRegistry, parse_templates
from .host import GuardPreprocessor


def expand_guard(text: str, handler: Optional[str] = None, config: Optional[GuardConfig] = None) -> str:
    """Expand a guard program to Python source.

    ``handler`` replaces the default ambient handler, like a template's bound
    action would.
    """
    config = config if config is not None else GuardConfig()
    program = GuardParser(config).parse_text(text)
    expander = GuardExpander(config)
    ambient = None
    if handler is not None and handler.strip() != "_":
        ambient = action_from_text(handler)
    return render(expander.expand(program, ambient))


def define_templates(text: str, registry: Optional[TemplateRegistry] = None) -> List[TemplateDefinition]:
    registry = registry if registry is not None else TemplateRegistry()
    return registry.define_text(text)


__all__ = [
    "GUARD_LEXICON",
    "GuardError",
    "GuardSyntaxError",
    "TemplateError",
    "INHERIT",
    "Destructure",
    "Explicit",
    "GuardConfig",
    "GuardProgram",
    "Group",
    "Inherit",
    "Leaf",
    "RefuteHandler",
    "TemplateDefinition",
    "Test",
    "Cursor",
    "TokenStream",
    "action_from_text",
    "default_handler",
    "group_handler",
    "leaf_handler",
    "resolve_program",
    "GuardParser",
    "BindingScope",
    "GuardExpander",
    "format_tree",
    "render",
    "TemplateRegistry",
    "parse_templates",
    "GuardPreprocessor",
    "expand_guard",
    "define_templates",
]
