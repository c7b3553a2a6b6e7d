import ast
import os
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple, Union


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class GuardConfig:
    default_handler: str = "return"
    hygiene_prefix: str = "_guard"
    strict_braces: bool = False
    trace: bool = False

    @classmethod
    def from_env(cls) -> "GuardConfig":
        return cls(
            default_handler=os.environ.get("GUARD_DEFAULT_HANDLER", "return"),
            hygiene_prefix=os.environ.get("GUARD_HYGIENE_PREFIX", "_guard"),
            strict_braces=_env_flag("GUARD_STRICT_BRACES"),
            trace=_env_flag("GUARD_TRACE"),
        )

    @classmethod
    def strict(cls) -> "GuardConfig":
        return cls(strict_braces=True)


# --- Clauses ---


@dataclass(frozen=True)
class Destructure:
    pattern: ast.pattern
    source: ast.expr
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class Test:
    __test__ = False

    condition: ast.expr
    line: int = 0
    column: int = 0


Clause = Union[Destructure, Test]


# --- Refute handlers ---


@dataclass(frozen=True)
class RefuteHandler:
    action: Tuple[ast.stmt, ...]


@dataclass(frozen=True)
class Explicit:
    action: Tuple[ast.stmt, ...]


@dataclass(frozen=True)
class Inherit:
    pass


INHERIT = Inherit()

RefuteHandlerInheritable = Union[Explicit, Inherit]


# --- Entries ---


@dataclass(frozen=True)
class Leaf:
    clause: Clause
    handler: Optional[RefuteHandler] = None


@dataclass(frozen=True)
class Group:
    flatten: bool
    body: "GuardProgram"
    handler: RefuteHandlerInheritable


GuardEntry = Union[Leaf, Group]


@dataclass(frozen=True)
class GuardProgram:
    entries: Tuple[GuardEntry, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[GuardEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class TemplateDefinition:
    name: str
    handler: RefuteHandlerInheritable
