import grpc
import pytest
import pytest_asyncio

from protoc_idiom.runtime import metadata
from protoc_idiom.runtime.rpc import RpcShape, StatusError


@pytest_asyncio.fixture
async def serve(person_grpc):
    """Start a grpc.aio server for a servicer/partial and return a connected stub."""
    servers = []
    channels = []

    async def start(implementation):
        server = grpc.aio.server()
        implementation.add_to_server(server)
        port = server.add_insecure_port("127.0.0.1:0")
        await server.start()
        servers.append(server)
        channel = grpc.aio.insecure_channel(f"127.0.0.1:{port}")
        channels.append(channel)
        return person_grpc.PersonServiceStub(channel)

    yield start

    for channel in channels:
        await channel.close()
    for server in servers:
        await server.stop(None)


@pytest.fixture
def implementations(person_idiom):
    m = person_idiom

    async def get_person(request):
        return m.Person(name=request.name, nickname=metadata.metadata_value("x-tenant"))

    async def list_people(request):
        for i in range(request.limit):
            yield m.Person(name=f"person-{i}", age=i)

    async def record_people(requests):
        names = [p.name async for p in requests]
        return m.PeopleSummary(count=len(names), names=names)

    async def chat(requests):
        async for request in requests:
            yield m.Person(name=request.name.upper())

    async def ping(request):
        assert request is None
        return None

    return {
        "get_person": get_person,
        "list_people": list_people,
        "record_people": record_people,
        "chat": chat,
        "ping": ping,
    }


class TestMethodDescriptors:
    def test_constants(self, person_grpc):
        method = person_grpc._PERSON_SERVICE_GET_PERSON
        assert person_grpc.PERSON_SERVICE_NAME == "acme.people.v1.PersonService"
        assert method.full_name == "acme.people.v1.PersonService.GetPerson"
        assert method.path == "/acme.people.v1.PersonService/GetPerson"
        assert method.shape is RpcShape.UNARY

    def test_shapes(self, person_grpc):
        assert person_grpc._PERSON_SERVICE_LIST_PEOPLE.shape is RpcShape.SERVER_STREAMING
        assert person_grpc._PERSON_SERVICE_RECORD_PEOPLE.shape is RpcShape.CLIENT_STREAMING
        assert person_grpc._PERSON_SERVICE_CHAT.shape is RpcShape.BIDI_STREAMING

    def test_converters(self, person_grpc, person_idiom, person_pb2):
        method = person_grpc._PERSON_SERVICE_GET_PERSON
        host = method.request_to_host(person_idiom.GetPersonRequest(name="Ada"))
        assert isinstance(host, person_pb2.GetPersonRequest)
        assert method.response_to_idiom(person_pb2.Person(name="Ada")) == person_idiom.Person(name="Ada")

    def test_empty_converters(self, person_grpc):
        method = person_grpc._PERSON_SERVICE_PING
        assert method.request_to_idiom(method.request_deserializer(b"")) is None
        assert method.response_serializer(method.response_to_host(None)) == b""

    def test_source_is_generated(self, compiled):
        source = (compiled.out_dir / "acme/people/v1/person_idiom_grpc.py").read_text()
        assert source.startswith("# Generated by protoc-gen-idiom. DO NOT EDIT!\n")
        assert "class PersonServiceServicer:" in source
        assert "class PersonServiceStub:" in source
        assert "class PersonServicePartial:" in source
        assert "    async def ping(\n        self,\n        request: None = None,\n        *,\n" in source


class TestPartial:
    async def test_unary_with_metadata(self, serve, implementations, person_grpc, person_idiom):
        stub = await serve(person_grpc.PersonServicePartial(**implementations))
        person = await stub.get_person(
            person_idiom.GetPersonRequest(name="Ada"),
            metadata=(("x-tenant", "acme"),),
        )
        assert person == person_idiom.Person(name="Ada", nickname="acme")

    async def test_server_streaming(self, serve, implementations, person_grpc, person_idiom):
        stub = await serve(person_grpc.PersonServicePartial(**implementations))
        people = [p async for p in stub.list_people(person_idiom.ListPeopleRequest(limit=3))]
        assert [p.name for p in people] == ["person-0", "person-1", "person-2"]
        assert [p.age for p in people] == [0, 1, 2]

    async def test_client_streaming(self, serve, implementations, person_grpc, person_idiom):
        stub = await serve(person_grpc.PersonServicePartial(**implementations))
        summary = await stub.record_people([person_idiom.Person(name="Ada"), person_idiom.Person(name="Grace")])
        assert summary == person_idiom.PeopleSummary(count=2, names=["Ada", "Grace"])

    async def test_client_streaming_async_source(self, serve, implementations, person_grpc, person_idiom):
        stub = await serve(person_grpc.PersonServicePartial(**implementations))

        async def people():
            yield person_idiom.Person(name="Ada")

        summary = await stub.record_people(people())
        assert summary.count == 1

    async def test_bidi_streaming(self, serve, implementations, person_grpc, person_idiom):
        stub = await serve(person_grpc.PersonServicePartial(**implementations))
        requests = [person_idiom.GetPersonRequest(name="ada"), person_idiom.GetPersonRequest(name="grace")]
        names = [p.name async for p in stub.chat(requests)]
        assert names == ["ADA", "GRACE"]

    async def test_empty_request_and_response(self, serve, implementations, person_grpc):
        stub = await serve(person_grpc.PersonServicePartial(**implementations))
        assert await stub.ping() is None

    async def test_missing_methods_are_unimplemented(self, serve, implementations, person_grpc, person_idiom):
        stub = await serve(person_grpc.PersonServicePartial(get_person=implementations["get_person"]))

        with pytest.raises(grpc.aio.AioRpcError) as excinfo:
            await stub.record_people([person_idiom.Person(name="Ada")])
        assert excinfo.value.code() == grpc.StatusCode.UNIMPLEMENTED
        assert "acme.people.v1.PersonService.RecordPeople" in excinfo.value.details()

        with pytest.raises(grpc.aio.AioRpcError) as excinfo:
            [p async for p in stub.list_people(person_idiom.ListPeopleRequest(limit=1))]
        assert excinfo.value.code() == grpc.StatusCode.UNIMPLEMENTED

        person = await stub.get_person(person_idiom.GetPersonRequest(name="Ada"))
        assert person.name == "Ada"

    async def test_status_error(self, serve, person_grpc, person_idiom):
        async def get_person(request):
            raise StatusError(grpc.StatusCode.NOT_FOUND, f"no person named {request.name}")

        stub = await serve(person_grpc.PersonServicePartial(get_person=get_person))
        with pytest.raises(grpc.aio.AioRpcError) as excinfo:
            await stub.get_person(person_idiom.GetPersonRequest(name="Ada"))
        assert excinfo.value.code() == grpc.StatusCode.NOT_FOUND
        assert excinfo.value.details() == "no person named Ada"

    async def test_status_error_while_streaming(self, serve, person_grpc, person_idiom):
        async def list_people(request):
            yield person_idiom.Person(name="first")
            raise StatusError(grpc.StatusCode.RESOURCE_EXHAUSTED, "quota")

        stub = await serve(person_grpc.PersonServicePartial(list_people=list_people))
        received = []
        with pytest.raises(grpc.aio.AioRpcError) as excinfo:
            async for person in stub.list_people(person_idiom.ListPeopleRequest(limit=2)):
                received.append(person.name)
        assert received == ["first"]
        assert excinfo.value.code() == grpc.StatusCode.RESOURCE_EXHAUSTED

    async def test_deprecated_method_warns(self, serve, implementations, person_grpc, person_idiom):
        stub = await serve(person_grpc.PersonServicePartial(legacy_lookup=implementations["get_person"]))
        with pytest.warns(DeprecationWarning, match="LegacyLookup"):
            person = await stub.legacy_lookup(person_idiom.GetPersonRequest(name="Ada"))
        assert person.name == "Ada"


class TestServicer:
    async def test_subclass(self, serve, person_grpc, person_idiom):
        class People(person_grpc.PersonServiceServicer):
            async def get_person(self, request):
                return person_idiom.Person(name=request.name, age=len(request.name))

            async def chat(self, requests):
                async for request in requests:
                    yield person_idiom.Person(name=request.name)

        stub = await serve(People())
        person = await stub.get_person(person_idiom.GetPersonRequest(name="Grace"))
        assert person == person_idiom.Person(name="Grace", age=5)

        names = [p.name async for p in stub.chat([person_idiom.GetPersonRequest(name="x")])]
        assert names == ["x"]

        with pytest.raises(grpc.aio.AioRpcError) as excinfo:
            await stub.ping()
        assert excinfo.value.code() == grpc.StatusCode.UNIMPLEMENTED

    def test_bind_returns_generic_handler(self, person_grpc):
        handler = person_grpc.PersonServiceServicer().bind()
        assert isinstance(handler, grpc.GenericRpcHandler)
