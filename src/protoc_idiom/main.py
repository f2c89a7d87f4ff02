from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from google.protobuf import descriptor_pb2 as d2
from google.protobuf.compiler import plugin_pb2
from google.protobuf.message import DecodeError

from protoc_idiom.config import LOG_LEVEL_ENV, ConfigError, GeneratorConfig
from protoc_idiom.generator.module_generator import generate_file, write_outputs
from protoc_idiom.parser.descriptor_parser import ResolutionError, resolve_files
from protoc_idiom.type_mapper import index_enums

logger = logging.getLogger(__name__)

STAGE_REQUEST_PARSING = "request-parsing"
STAGE_GENERATION = "generation"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


class GenerationError(Exception):
    """A failure of one plugin stage; the cause is chained."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"[{stage}] {message}")
        self.stage = stage


def configure_logging(level: str = "WARNING") -> None:
    """Log to stderr; stdout belongs to the CodeGeneratorResponse."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root = logging.getLogger("protoc_idiom")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False


def parse_request(data: bytes) -> plugin_pb2.CodeGeneratorRequest:
    try:
        return plugin_pb2.CodeGeneratorRequest.FromString(data)
    except DecodeError as e:
        raise GenerationError(STAGE_REQUEST_PARSING, f"Failed to parse CodeGeneratorRequest: {e}") from e


def generate(request: plugin_pb2.CodeGeneratorRequest) -> plugin_pb2.CodeGeneratorResponse:
    """Run the generator over a request; the response is built only when everything succeeds."""
    try:
        config = GeneratorConfig.from_parameter(request.parameter)
        logging.getLogger("protoc_idiom").setLevel(config.log_level)
        resolver = resolve_files(request.proto_file)
        enums = index_enums(resolver.files.values())

        response = plugin_pb2.CodeGeneratorResponse(
            supported_features=plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL,
        )
        for name in request.file_to_generate:
            if config.is_excluded(name):
                logger.info("Skipping excluded file %s", name)
                continue
            for path, content in generate_file(resolver.get(name), enums, config.package_prefix, config.services):
                response.file.add(name=path, content=content)
                logger.info("Generated %s", path)
    except (ConfigError, ResolutionError) as e:
        raise GenerationError(STAGE_GENERATION, str(e)) from e
    except Exception as e:
        raise GenerationError(STAGE_GENERATION, f"{type(e).__name__}: {e}") from e
    return response


def run_plugin(data: bytes) -> bytes:
    """Serialized request in, serialized response out."""
    response = generate(parse_request(data))
    return response.SerializeToString(deterministic=True)


def plugin_main() -> None:
    """Entry point for ``protoc --idiom_out=...`` (installed as ``protoc-gen-idiom``)."""
    configure_logging(os.environ.get(LOG_LEVEL_ENV, "WARNING").upper())
    data = sys.stdin.buffer.read()
    try:
        output = run_plugin(data)
    except GenerationError as e:
        logger.error("protoc-gen-idiom failed: %s", e)
        sys.exit(1)
    sys.stdout.buffer.write(output)
    sys.stdout.buffer.flush()


def load_descriptor_set(path: str) -> d2.FileDescriptorSet:
    fds = d2.FileDescriptorSet()
    with open(path, "rb") as f:
        fds.ParseFromString(f.read())
    return fds


def compile_descriptor_set(proto_paths: Sequence[str], includes: Sequence[str]) -> d2.FileDescriptorSet:
    """Invoke protoc to get a descriptor set (with imports) for ``proto_paths``."""
    inc_args: List[str] = []
    for inc in includes:
        inc_args.extend(["-I", inc])

    with tempfile.TemporaryDirectory() as td:
        desc_path = os.path.join(td, "descriptor_set.pb")
        cmd = ["protoc", "--include_imports", f"--descriptor_set_out={desc_path}"] + inc_args + list(proto_paths)
        try:
            subprocess.run(cmd, check=True, capture_output=True)
        except FileNotFoundError as e:
            raise RuntimeError("'protoc' not found. Please install Protocol Buffers compiler and ensure it is in PATH.") from e
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"protoc failed: {e.stderr.decode('utf-8', errors='ignore')}") from e
        return load_descriptor_set(desc_path)


def build_request(
    fds: d2.FileDescriptorSet,
    files: Optional[Sequence[str]] = None,
    parameter: str = "",
) -> plugin_pb2.CodeGeneratorRequest:
    """A CodeGeneratorRequest equivalent to what protoc would send for ``files``.

    Without ``files`` every file of the set is generated, except the excluded namespaces.
    """
    request = plugin_pb2.CodeGeneratorRequest(parameter=parameter)
    request.proto_file.extend(fds.file)
    if files:
        request.file_to_generate.extend(files)
    else:
        config = GeneratorConfig.from_parameter(parameter)
        request.file_to_generate.extend(f.name for f in fds.file if not config.is_excluded(f.name))
    return request


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Generate idiomatic dataclasses, conversions and grpc.aio bindings from protobuf descriptors",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--descriptor-set", help="FileDescriptorSet produced with protoc --include_imports")
    source.add_argument("--proto", nargs="+", help=".proto file(s) to compile with protoc")
    parser.add_argument("-I", "--include", action="append", default=[], help="Import path for --proto (repeatable)")
    parser.add_argument("--out", required=True, help="Output directory for generated modules")
    parser.add_argument("--file", action="append", default=None,
                        help="Proto file name to generate (repeatable, defaults to all non-excluded files)")
    parser.add_argument("--parameter", default="", help="Plugin parameter string, e.g. 'package_prefix=gen,services=false'")
    args = parser.parse_args(argv)

    if args.descriptor_set:
        fds = load_descriptor_set(args.descriptor_set)
    else:
        includes = args.include or sorted({str(Path(p).parent) for p in args.proto})
        fds = compile_descriptor_set(args.proto, includes)

    configure_logging()
    try:
        response = generate(build_request(fds, args.file, args.parameter))
    except (ConfigError, GenerationError) as e:
        print(f"FATAL: {e}", file=sys.stderr)
        sys.exit(1)

    generated = write_outputs([(f.name, f.content) for f in response.file], args.out)
    if not generated:
        print("No files generated.")
        return
    print("Generated:\n" + "\n".join(generated))


if __name__ == "__main__":
    main()
