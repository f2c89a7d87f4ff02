import importlib
import os
import sys
from pathlib import Path

import grpc_tools
import pytest
from grpc_tools import protoc

from protoc_idiom.generator.module_generator import write_outputs
from protoc_idiom.main import build_request, generate, load_descriptor_set

PROTO_DIR = Path(__file__).resolve().parent / "protos"
PROTO_FILES = [
    "acme/common/v1/common.proto",
    "acme/people/v1/person.proto",
]
WELL_KNOWN_INCLUDE = os.path.join(os.path.dirname(grpc_tools.__file__), "_proto")


class Compiled:
    """protoc output plus the generated idiomatic modules for the test protos."""

    def __init__(self, out_dir: Path, descriptor_set_path: Path):
        self.out_dir = out_dir
        self.descriptor_set_path = descriptor_set_path
        self.descriptor_set = load_descriptor_set(str(descriptor_set_path))

    def request(self, files=None, parameter: str = ""):
        return build_request(self.descriptor_set, files or PROTO_FILES, parameter)

    def module(self, name: str):
        return importlib.import_module(name)


def run_protoc(out_dir: Path) -> Path:
    descriptor_set_path = out_dir / "descriptors.pb"
    args = [
        "grpc_tools.protoc",
        f"-I{PROTO_DIR}",
        f"-I{WELL_KNOWN_INCLUDE}",
        f"--python_out={out_dir}",
        f"--descriptor_set_out={descriptor_set_path}",
        "--include_imports",
    ] + PROTO_FILES
    exit_code = protoc.main(args)
    if exit_code != 0:
        raise RuntimeError(f"protoc failed with exit code {exit_code}")
    return descriptor_set_path


@pytest.fixture(scope="session")
def compiled(tmp_path_factory):
    out_dir = tmp_path_factory.mktemp("generated")
    result = Compiled(out_dir, run_protoc(out_dir))

    response = generate(result.request())
    write_outputs([(f.name, f.content) for f in response.file], str(out_dir))

    sys.path.insert(0, str(out_dir))
    yield result
    sys.path.remove(str(out_dir))


@pytest.fixture(scope="session")
def common_idiom(compiled):
    return compiled.module("acme.common.v1.common_idiom")


@pytest.fixture(scope="session")
def person_idiom(compiled):
    return compiled.module("acme.people.v1.person_idiom")


@pytest.fixture(scope="session")
def person_grpc(compiled):
    return compiled.module("acme.people.v1.person_idiom_grpc")


@pytest.fixture(scope="session")
def person_pb2(compiled):
    return compiled.module("acme.people.v1.person_pb2")


@pytest.fixture(scope="session")
def common_pb2(compiled):
    return compiled.module("acme.common.v1.common_pb2")
