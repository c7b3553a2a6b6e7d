from typing import Dict, List, Tuple


class BindingScope:
    """Tracks what each bound name is called in generated code.

    Names bound at the top level, or inside flattened groups, keep their
    spelling. Names bound inside a scoped group are rewritten to a private
    name owned by that group's frame, so they never reach the code around it.
    """

    def __init__(self, prefix: str = "_guard"):
        self.prefix = prefix
        self.globals: Dict[str, str] = {}
        self.stack: List[Tuple[int, Dict[str, str]]] = []
        self._serial = 0

    def push_frame(self) -> int:
        self._serial += 1
        self.stack.append((self._serial, {}))
        return self._serial

    def pop_frame(self) -> None:
        if self.stack:
            self.stack.pop()

    def get(self, name: str) -> str:
        for _, frame in reversed(self.stack):
            if name in frame:
                return frame[name]
        return self.globals.get(name, name)

    def declare(self, name: str) -> str:
        if self.stack:
            serial, frame = self.stack[-1]
            frame[name] = f"{self.prefix}{serial}_{name}"
            return frame[name]
        self.globals[name] = name
        return name

    def visible(self) -> Dict[str, str]:
        """Every currently visible name that is spelled differently in output."""
        merged = dict(self.globals)
        for _, frame in self.stack:
            merged.update(frame)
        return {k: v for k, v in merged.items() if k != v}
