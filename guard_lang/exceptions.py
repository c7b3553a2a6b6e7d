from typing import Optional, Sequence, Tuple


class GuardError(Exception):
    """Base exception for the transformer."""

    pass


class GuardSyntaxError(GuardError):
    """Raised when guard notation cannot be parsed."""

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        expected: Sequence[str] = (),
    ):
        self.message = message
        self.line = line
        self.column = column
        self.expected: Tuple[str, ...] = tuple(expected)
        super().__init__(self._format())

    def _format(self) -> str:
        if self.line is None:
            return self.message
        return f"line {self.line}, column {self.column}: {self.message}"

    def shifted(self, line_offset: int, column_offset: int = 0) -> "GuardSyntaxError":
        """Relocate the diagnostic into an enclosing source file."""
        if self.line is None:
            return self
        column = self.column + column_offset if self.line == 1 else self.column
        return GuardSyntaxError(
            self.message, self.line + line_offset, column, self.expected
        )


class TemplateError(GuardError):
    """Raised when a template is unknown or badly named."""

    pass
