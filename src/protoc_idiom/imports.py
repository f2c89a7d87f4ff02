from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from protoc_idiom.naming import module_alias


@dataclass(frozen=True)
class Import:
    """A single import statement required by a piece of generated code."""

    module: str
    name: Optional[str] = None
    alias: Optional[str] = None

    @property
    def is_standard_library(self) -> bool:
        return self.module.split(".")[0] in STANDARD_LIBRARY_MODULES

    def render(self) -> str:
        if self.name is None:
            if self.alias:
                return f"import {self.module} as {self.alias}"
            return f"import {self.module}"
        if self.alias:
            return f"from {self.module} import {self.name} as {self.alias}"
        return f"from {self.module} import {self.name}"


STANDARD_LIBRARY_MODULES = frozenset({
    "dataclasses",
    "datetime",
    "enum",
    "typing",
    "warnings",
})


def module_import(module: str) -> Import:
    """Import of a generated or protoc module under its deterministic alias."""
    return Import(module=module, alias=module_alias(module))


WELL_KNOWN_RUNTIME = Import(module="protoc_idiom.runtime", name="well_known", alias="_wkt")
PARSERS_RUNTIME = Import(module="protoc_idiom.runtime", name="parsers", alias="_parsers")
METADATA_RUNTIME = Import(module="protoc_idiom.runtime", name="metadata", alias="_metadata")
RPC_RUNTIME = Import(module="protoc_idiom.runtime", name="rpc", alias="_rpc")


def render_imports(imports: Iterable[Import]) -> List[str]:
    """Render a sorted import block.

    Standard library imports come first, then everything else, separated by a
    blank line. ``from typing import ...`` names are merged into one line.
    """
    unique = sorted(set(imports), key=lambda i: (i.module, i.name or "", i.alias or ""))
    typing_names = sorted({i.name for i in unique if i.module == "typing" and i.name and not i.alias})
    rest = [i for i in unique if not (i.module == "typing" and i.name and not i.alias)]

    stdlib = [i.render() for i in rest if i.is_standard_library]
    if typing_names:
        stdlib.append(f"from typing import {', '.join(typing_names)}")
    third_party = [i.render() for i in rest if not i.is_standard_library]

    lines: List[str] = sorted(stdlib, key=_sort_key)
    if lines and third_party:
        lines.append("")
    lines.extend(sorted(third_party, key=_sort_key))
    return lines


def _sort_key(line: str) -> tuple:
    # plain "import x" lines before "from x import y" lines, alphabetical within each
    words = line.split()
    return (words[0] == "from", words[1])
