from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from jinja2 import Environment, FileSystemLoader

from protoc_idiom import naming
from protoc_idiom.generator.conversion_generator import build_conversions
from protoc_idiom.generator.service_generator import build_services
from protoc_idiom.generator.type_generator import build_types
from protoc_idiom.imports import render_imports
from protoc_idiom.models import EnumType, FileUnit
from protoc_idiom.type_mapper import ModuleScope, TypeMapper

logger = logging.getLogger(__name__)


def _get_template_env() -> Environment:
    template_dir = Path(__file__).parent.parent / "templates"
    return Environment(
        loader=FileSystemLoader(str(template_dir)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def generate_model_module(
    unit: FileUnit,
    enums: Mapping[str, EnumType],
    package_prefix: Optional[str] = None,
) -> str:
    """Python source of the value types and conversions for one ``.proto`` file."""
    env = _get_template_env()
    template = env.get_template("model.py.j2")

    mapper = TypeMapper(ModuleScope(unit.name, unit.package, package_prefix), enums)
    messages = unit.iter_messages()
    file_enums = unit.iter_enums()

    enum_contexts, declarations, type_imports = build_types(messages, file_enums, mapper)
    tables, functions, parsers, conversion_imports = build_conversions(messages, file_enums, mapper)

    return template.render(
        source=unit.name,
        imports=render_imports(type_imports | conversion_imports),
        enums=enum_contexts,
        declarations=declarations,
        enum_tables=tables,
        functions=functions,
        parsers=parsers,
    )


def generate_service_module(
    unit: FileUnit,
    enums: Mapping[str, EnumType],
    package_prefix: Optional[str] = None,
) -> str:
    """Python source of the grpc.aio bindings for the services of one ``.proto`` file."""
    env = _get_template_env()
    template = env.get_template("service.py.j2")

    mapper = TypeMapper(ModuleScope(unit.name, unit.package, package_prefix, declares_types=False), enums)
    services, imports = build_services(unit.services, mapper)

    return template.render(
        source=unit.name,
        imports=render_imports(imports),
        services=services,
    )


def generate_file(
    unit: FileUnit,
    enums: Mapping[str, EnumType],
    package_prefix: Optional[str] = None,
    services: bool = True,
) -> List[Tuple[str, str]]:
    """Generate every output for ``unit`` as ``(relative path, content)`` pairs."""
    outputs: List[Tuple[str, str]] = []
    model = naming.model_module(unit.package, unit.name, package_prefix)
    outputs.append((naming.output_path(model), generate_model_module(unit, enums, package_prefix)))
    if services and unit.services:
        service = naming.service_module(unit.package, unit.name, package_prefix)
        outputs.append((naming.output_path(service), generate_service_module(unit, enums, package_prefix)))
    for path, _ in outputs:
        logger.debug("Generated %s from %s", path, unit.name)
    return outputs


def write_outputs(outputs: List[Tuple[str, str]], output_dir: str) -> List[str]:
    """Write generated files below ``output_dir``.

    Returns list of generated file paths.
    """
    generated: List[str] = []
    for relative, content in outputs:
        file_path = Path(output_dir) / relative
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
        generated.append(str(file_path))
    return generated
