"""grpc.aio bindings: method constants, servicer base, client stub and partial builder."""
from __future__ import annotations

import re
from typing import List, Set, Tuple

from protoc_idiom import naming
from protoc_idiom.generator.code import FunctionSpec, py_string
from protoc_idiom.imports import METADATA_RUNTIME, RPC_RUNTIME, Import
from protoc_idiom.models import Field, FieldKind, Method, Service, TypeRef
from protoc_idiom.runtime.rpc import RpcShape
from protoc_idiom.transform import Transform
from protoc_idiom.type_mapper import TypeMapper
from protoc_idiom.well_known import WellKnownType

_FUNCTION_CALL = re.compile(r"^([\w.]+)\(%s\)$")

_STREAMING_REQUEST = (RpcShape.CLIENT_STREAMING, RpcShape.BIDI_STREAMING)
_STREAMING_RESPONSE = (RpcShape.SERVER_STREAMING, RpcShape.BIDI_STREAMING)

_CHANNEL_FACTORY = {
    RpcShape.UNARY: "unary_unary",
    RpcShape.CLIENT_STREAMING: "stream_unary",
    RpcShape.SERVER_STREAMING: "unary_stream",
    RpcShape.BIDI_STREAMING: "stream_stream",
}


# members of the generated servicer and partial classes
_CLASS_MEMBERS = frozenset({"bind", "add_to_server"})


def method_name(method: Method) -> str:
    name = naming.to_snake(method.name)
    if name in _CLASS_MEMBERS:
        return name + "_"
    return naming.escape(name)


def _message_field(ref: TypeRef) -> Field:
    return Field(name="", number=0, kind=FieldKind.MESSAGE, type_ref=ref)


def _is_empty(ref: TypeRef) -> bool:
    # google.protobuf.Empty requests and responses are plain None
    return ref.full_name == WellKnownType.EMPTY.full_name


def _callable(transform: Transform) -> str:
    """A transform template as a one-argument callable expression."""
    match = _FUNCTION_CALL.match(transform.template.value)
    if match:
        return match.group(1)
    return f"lambda value: {transform.render('value')}"


class ServiceGenerator:
    def __init__(self, mapper: TypeMapper) -> None:
        self.mapper = mapper
        self.imports: Set[Import] = {
            Import(module="grpc"),
            Import(module="typing", name="Callable"),
            METADATA_RUNTIME,
            RPC_RUNTIME,
        }

    def _idiom_type(self, ref: TypeRef) -> str:
        if _is_empty(ref):
            return "None"
        mapped = self.mapper.element_type(_message_field(ref))
        self.imports.update(mapped.imports)
        return mapped.annotation

    def _host_type(self, ref: TypeRef) -> str:
        host, imports = self.mapper.host_class(ref)
        self.imports.update(imports)
        return host

    def _converters(self, ref: TypeRef) -> Tuple[str, str]:
        if _is_empty(ref):
            return "lambda value: None", f"lambda value: {self._host_type(ref)}()"
        f = _message_field(ref)
        to_idiom = self.mapper.to_idiom_transform(f)
        to_host = self.mapper.to_host_transform(f)
        self.imports.update(to_idiom.imports)
        self.imports.update(to_host.imports)
        return _callable(to_idiom), _callable(to_host)

    def _typing(self, *names: str) -> None:
        self.imports.update(Import(module="typing", name=n) for n in names)

    # -- contexts ------------------------------------------------------------

    @staticmethod
    def method_const(service: Service, method: Method) -> str:
        return f"_{naming.to_upper_snake(service.name)}_{naming.to_upper_snake(method.name)}"

    def method_context(self, service: Service, method: Method) -> dict:
        request_to_idiom, request_to_host = self._converters(method.input_ref)
        response_to_idiom, response_to_host = self._converters(method.output_ref)
        return {
            "const": self.method_const(service, method),
            "name": method.name,
            "shape": method.shape.name,
            "request_host": self._host_type(method.input_ref),
            "response_host": self._host_type(method.output_ref),
            "request_to_idiom": request_to_idiom,
            "request_to_host": request_to_host,
            "response_to_idiom": response_to_idiom,
            "response_to_host": response_to_host,
        }

    def _signature_types(self, method: Method) -> Tuple[str, str]:
        """(request parameter annotation, return annotation) of a server-side implementation."""
        request = self._idiom_type(method.input_ref)
        response = self._idiom_type(method.output_ref)
        if method.shape in _STREAMING_REQUEST:
            self._typing("AsyncIterator")
            request = f"AsyncIterator[{request}]"
        if method.shape in _STREAMING_RESPONSE:
            self._typing("AsyncIterator")
            response = f"AsyncIterator[{response}]"
        return request, response

    def implementation_type(self, method: Method) -> str:
        request, response = self._signature_types(method)
        if method.shape in _STREAMING_RESPONSE:
            self._typing("Callable")
            return f"Callable[[{request}], {response}]"
        self._typing("Awaitable", "Callable")
        return f"Callable[[{request}], Awaitable[{response}]]"

    def servicer_method(self, method: Method) -> FunctionSpec:
        request, response = self._signature_types(method)
        parameter = "requests" if method.shape in _STREAMING_REQUEST else "request"
        return FunctionSpec(
            name=method_name(method),
            params=["self", f"{parameter}: {request}"],
            returns=response,
            body=[f"raise _rpc.unimplemented({py_string(method.full_name)})"],
            is_async=method.shape not in _STREAMING_RESPONSE,
        )

    def unimplemented_function(self, service: Service, method: Method) -> FunctionSpec:
        request, response = self._signature_types(method)
        parameter = "requests" if method.shape in _STREAMING_REQUEST else "request"
        return FunctionSpec(
            name=f"{self.unimplemented_name(service, method)}",
            params=[f"{parameter}: {request}"],
            returns=response,
            body=[f"raise _rpc.unimplemented({py_string(method.full_name)})"],
            is_async=method.shape not in _STREAMING_RESPONSE,
        )

    @staticmethod
    def unimplemented_name(service: Service, method: Method) -> str:
        return f"_{naming.to_snake(service.name)}_{naming.to_snake(method.name)}_unimplemented"

    def stub_method(self, service: Service, method: Method) -> FunctionSpec:
        self._typing("Optional")
        const = self.method_const(service, method)
        attribute = f"self._{naming.to_snake(method.name)}"
        request = self._idiom_type(method.input_ref)
        response = self._idiom_type(method.output_ref)
        shape = method.shape

        body: List[str] = []
        if method.deprecated:
            self.imports.add(Import(module="warnings"))
            body.append(
                f"warnings.warn({py_string(method.full_name + ' is deprecated')}, DeprecationWarning, stacklevel=2)"
            )
        if shape in _STREAMING_REQUEST:
            self._typing("AsyncIterable", "Iterable", "Union")
            params = ["self", f"requests: Union[AsyncIterable[{request}], Iterable[{request}]]"]
            outgoing = f"_rpc.map_async(requests, {const}.request_to_host)"
        elif request == "None":
            params = ["self", "request: None = None"]
            outgoing = f"{const}.request_to_host(request)"
        else:
            params = ["self", f"request: {request}"]
            outgoing = f"{const}.request_to_host(request)"
        params.extend(["*", "timeout: Optional[float] = None", "metadata: Optional[_metadata.Metadata] = None"])

        call = f"{attribute}({outgoing}, timeout=timeout, metadata=metadata)"
        if shape in _STREAMING_RESPONSE:
            self._typing("AsyncIterator")
            returns = f"AsyncIterator[{response}]"
            body.extend([
                f"call = {call}",
                "async for response in call:",
                f"    yield {const}.response_to_idiom(response)",
            ])
        else:
            returns = response
            body.extend([
                f"response = await {call}",
                f"return {const}.response_to_idiom(response)",
            ])
        return FunctionSpec(
            name=method_name(method),
            params=params,
            returns=returns,
            body=body,
            is_async=True,
        )

    def stub_init(self, service: Service) -> FunctionSpec:
        body = []
        for method in service.methods:
            const = self.method_const(service, method)
            body.extend([
                f"self._{naming.to_snake(method.name)} = channel.{_CHANNEL_FACTORY[method.shape]}(",
                f"    {const}.path,",
                f"    request_serializer={const}.request_serializer,",
                f"    response_deserializer={const}.response_deserializer,",
                ")",
            ])
        return FunctionSpec(
            name="__init__",
            params=["self", "channel: grpc.aio.Channel"],
            returns="None",
            body=body,
        )

    def handler_entries(self, service: Service, target: str) -> List[str]:
        """``"Method": _bind(...)`` lines, ``target`` being ``self.`` or ``self._``."""
        return [
            f"{py_string(m.name)}: _bind({self.method_const(service, m)}, "
            f"{target}{method_name(m)}),"
            for m in service.methods
        ]

    def bind_function(self, service: Service, target: str) -> FunctionSpec:
        return FunctionSpec(
            name="bind",
            params=["self"],
            returns="grpc.GenericRpcHandler",
            body=[
                "return grpc.method_handlers_generic_handler(",
                f"    {self.service_const(service)},",
                "    {",
                *[f"        {line}" for line in self.handler_entries(service, target)],
                "    },",
                ")",
            ],
            doc=f"Generic handler serving ``{service.full_name}``.",
        )

    @staticmethod
    def add_to_server_function() -> FunctionSpec:
        return FunctionSpec(
            name="add_to_server",
            params=["self", "server: grpc.aio.Server"],
            returns="None",
            body=["server.add_generic_rpc_handlers((self.bind(),))"],
        )

    def partial_init(self, service: Service) -> FunctionSpec:
        params = ["self", "*"]
        body = []
        for method in service.methods:
            name = method_name(method)
            params.append(
                f"{name}: {self.implementation_type(method)} = {self.unimplemented_name(service, method)}"
            )
            body.append(f"self._{name} = {name}")
        return FunctionSpec(name="__init__", params=params, returns="None", body=body)

    @staticmethod
    def service_const(service: Service) -> str:
        return f"{naming.to_upper_snake(service.name)}_NAME"

    def service_context(self, service: Service) -> dict:
        return {
            "name": service.name,
            "full_name": service.full_name,
            "const": self.service_const(service),
            "methods": [self.method_context(service, m) for m in service.methods],
            "unimplemented": [self.unimplemented_function(service, m).render() for m in service.methods],
            "servicer": f"{service.name}Servicer",
            "servicer_methods": [self.servicer_method(m).render("    ") for m in service.methods],
            "servicer_bind": self.bind_function(service, "self.").render("    "),
            "stub": f"{service.name}Stub",
            "stub_methods": [self.stub_init(service).render("    ")]
            + [self.stub_method(service, m).render("    ") for m in service.methods],
            "partial": f"{service.name}Partial",
            "partial_init": self.partial_init(service).render("    "),
            "partial_bind": self.bind_function(service, "self._").render("    "),
            "add_to_server": self.add_to_server_function().render("    "),
        }


def build_services(services: List[Service], mapper: TypeMapper) -> Tuple[List[dict], Set[Import]]:
    generator = ServiceGenerator(mapper)
    contexts = [generator.service_context(s) for s in services]
    return contexts, generator.imports
