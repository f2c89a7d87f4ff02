from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

MAX_LINE = 100
INDENT = "    "


@dataclass
class FunctionSpec:
    """A generated function or method, rendered as Python source."""

    name: str
    params: List[str] = field(default_factory=list)
    returns: Optional[str] = None
    body: List[str] = field(default_factory=list)
    doc: Optional[str] = None
    is_async: bool = False
    decorators: List[str] = field(default_factory=list)

    def signature(self, indent: str = "") -> List[str]:
        prefix = "async def" if self.is_async else "def"
        suffix = f" -> {self.returns}:" if self.returns else ":"
        single = f"{indent}{prefix} {self.name}({', '.join(self.params)}){suffix}"
        if len(single) <= MAX_LINE or not self.params:
            return [single]
        lines = [f"{indent}{prefix} {self.name}("]
        lines.extend(f"{indent}{INDENT}{p}," for p in self.params)
        lines.append(f"{indent}){suffix}")
        return lines

    def render(self, indent: str = "") -> str:
        lines = [f"{indent}{d}" for d in self.decorators]
        lines.extend(self.signature(indent))
        inner = indent + INDENT
        if self.doc:
            doc_lines = self.doc.split("\n")
            if len(doc_lines) == 1:
                lines.append(f'{inner}"""{self.doc}"""')
            else:
                lines.append(f'{inner}"""{doc_lines[0]}')
                lines.extend(f"{inner}{line}" if line else "" for line in doc_lines[1:])
                lines.append(f'{inner}"""')
        body = self.body or ["pass"]
        lines.extend(f"{inner}{line}" if line else "" for line in body)
        return "\n".join(lines)


def indent_lines(lines: List[str], depth: int = 1) -> List[str]:
    pad = INDENT * depth
    return [f"{pad}{line}" if line else "" for line in lines]


def call_lines(callee: str, arguments: List[str], prefix: str = "") -> List[str]:
    """``prefix + callee(arg, ...)``, one argument per line when it gets long."""
    single = f"{prefix}{callee}({', '.join(arguments)})"
    if len(single) + len(INDENT) <= MAX_LINE or not arguments:
        return [single]
    lines = [f"{prefix}{callee}("]
    lines.extend(f"{INDENT}{a}," for a in arguments)
    lines.append(")")
    return lines


def py_string(value: str) -> str:
    """Double-quoted Python string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
