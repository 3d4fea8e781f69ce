"""
Route Details Backend: Message Transport Tests
================================================

What:  Tests for frame decoding, pattern dispatch and the TCP server.
How:   FrameDecoder is tested directly; dispatch() runs against the
       in-memory database; one test opens a real socket on an ephemeral port.

What we test:
    ✅ frames split across reads, several frames per read, UTF-16 lengths
    ✅ corrupt frames raise MessageFramingError
    ✅ pattern replies carry envelopes with the message status policy
    ✅ unknown patterns answer `err`; events (no id) get no reply
    ✅ round trip over TCP
"""

import asyncio
import json

import pytest
import pytest_asyncio

from route_details.exceptions import MessageFramingError
from route_details.messaging.patterns import PatternRegistry, normalize_pattern, registry
from route_details.messaging.server import (
    MAX_FRAME_LENGTH,
    NO_MATCHING_HANDLER,
    FrameDecoder,
    MessageServer,
    encode_frame,
)


class TestFraming:

    def test_encode_prefixes_length(self):
        frame = encode_frame({"id": "1", "response": None})

        length, payload = frame.decode().split("#", 1)
        assert int(length) == len(payload)
        assert json.loads(payload) == {"id": "1", "response": None}

    def test_frame_split_across_chunks(self):
        decoder = FrameDecoder()
        text = encode_frame({"pattern": "route.findAll", "id": "7"}).decode()

        assert decoder.feed(text[:3]) == []
        assert decoder.feed(text[3:10]) == []
        assert decoder.feed(text[10:]) == [{"pattern": "route.findAll", "id": "7"}]
        assert decoder.pending == ""

    def test_several_frames_in_one_chunk(self):
        decoder = FrameDecoder()
        text = (encode_frame({"n": 1}) + encode_frame({"n": 2}) + encode_frame({"n": 3})[:4]).decode()

        assert decoder.feed(text) == [{"n": 1}, {"n": 2}]

    def test_length_counts_utf16_units(self):
        payload = json.dumps({"name": "Trail \U0001F6B2 ride"}, ensure_ascii=False)
        units = len(payload.encode("utf-16-le")) // 2
        decoder = FrameDecoder()

        messages = decoder.feed(f"{units}#{payload}{units}#{payload}")

        assert [message["name"] for message in messages] == ["Trail \U0001F6B2 ride"] * 2

    @pytest.mark.parametrize("text", ["abc#{}", "12x", "2#{]", "\u00b2#{}", "\u00b2", "#{}"])
    def test_corrupt_frames_raise(self, text):
        with pytest.raises(MessageFramingError):
            FrameDecoder().feed(text)

    def test_oversized_length_rejected(self):
        decoder = FrameDecoder()

        with pytest.raises(MessageFramingError):
            decoder.feed(f"{MAX_FRAME_LENGTH + 1}#")
        with pytest.raises(MessageFramingError):
            FrameDecoder().feed("9" * 40)


class TestPatternRegistry:

    def test_all_route_patterns_registered(self):
        assert registry.names == sorted([
            "route.count", "route.create", "route.findAll", "route.findByTags",
            "route.findOne", "route.remove", "route.search", "route.update",
        ])

    def test_duplicate_registration_rejected(self):
        local = PatternRegistry()

        @local.pattern("x")
        async def first(db, data):
            return None

        with pytest.raises(ValueError):
            local.pattern("x")(first)

    def test_object_patterns_are_key_sorted(self):
        assert normalize_pattern({"b": 1, "a": "x"}) == '{"a":"x","b":1}'
        assert normalize_pattern("route.create") == "route.create"


class TestDispatch:

    @pytest.fixture
    def server(self, session_factory):
        return MessageServer(session_factory=session_factory, host="127.0.0.1", port=0)

    @pytest.mark.asyncio
    async def test_create_replies_with_200_envelope(self, server, route_payload):
        reply = await server.dispatch({"pattern": "route.create", "data": route_payload, "id": "m-1"})

        assert reply["id"] == "m-1"
        assert reply["isDisposed"] is True
        envelope = reply["response"]
        assert envelope["success"] is True
        assert envelope["statusCode"] == 200
        assert envelope["message"] == "Route created successfully"
        assert envelope["data"]["routeId"].startswith("route-")

    @pytest.mark.asyncio
    async def test_lifecycle_over_patterns(self, server, route_payload):
        created = (await server.dispatch(
            {"pattern": "route.create", "data": route_payload, "id": "1"}
        ))["response"]["data"]

        found = await server.dispatch({"pattern": "route.findOne", "data": created["id"], "id": "2"})
        assert found["response"]["data"]["name"] == "Home to Work"

        updated = await server.dispatch({
            "pattern": "route.update",
            "data": {"id": created["id"], "updateData": {"travelMode": "WALKING"}},
            "id": "3",
        })
        assert updated["response"]["data"]["travelMode"] == "WALKING"

        listed = await server.dispatch({"pattern": "route.findAll", "data": {"page": 1, "limit": 5}, "id": "4"})
        assert listed["response"]["data"]["total"] == 1

        searched = await server.dispatch({"pattern": "route.search", "data": {"searchText": "coffee"}, "id": "5"})
        assert searched["response"]["data"]["total"] == 1

        counted = await server.dispatch({"pattern": "route.count", "data": {"userId": "user-42"}, "id": "6"})
        assert counted["response"]["data"] == {"count": 1}

        removed = await server.dispatch({"pattern": "route.remove", "data": {"id": created["id"]}, "id": "7"})
        assert removed["response"]["statusCode"] == 200

        gone = await server.dispatch({"pattern": "route.findOne", "data": {"id": created["id"]}, "id": "8"})
        assert gone["response"]["statusCode"] == 404
        assert gone["response"]["message"] == "Route not found"

    @pytest.mark.asyncio
    async def test_find_by_tags_accepts_list_or_object(self, server, route_payload):
        await server.dispatch({"pattern": "route.create", "data": {**route_payload, "tags": ["commute"]}, "id": "1"})

        as_list = await server.dispatch({"pattern": "route.findByTags", "data": ["commute"], "id": "2"})
        as_object = await server.dispatch({"pattern": "route.findByTags", "data": {"tags": ["commute"]}, "id": "3"})

        assert as_list["response"]["data"]["total"] == 1
        assert as_object["response"]["data"]["total"] == 1

    @pytest.mark.asyncio
    async def test_validation_failure_is_400(self, server):
        reply = await server.dispatch({"pattern": "route.create", "data": {"name": ""}, "id": "9"})

        assert reply["response"]["statusCode"] == 400
        assert reply["response"]["message"] == "Validation failed"

    @pytest.mark.asyncio
    async def test_infinite_limit_is_400(self, server):
        data = json.loads('{"page": 1, "limit": 1e400}')

        reply = await server.dispatch({"pattern": "route.findAll", "data": data, "id": "14"})

        assert reply["response"]["statusCode"] == 400
        assert reply["response"]["errors"] == "limit: must be an integer"

    @pytest.mark.asyncio
    async def test_tag_with_comma_is_refused(self, server, route_payload):
        reply = await server.dispatch(
            {"pattern": "route.create", "data": {**route_payload, "tags": ["north,south"]}, "id": "15"}
        )

        assert reply["response"]["statusCode"] == 400
        assert reply["response"]["message"] == "Validation failed"

    @pytest.mark.asyncio
    async def test_update_without_update_data_is_400(self, server):
        reply = await server.dispatch({"pattern": "route.update", "data": {"id": "abc"}, "id": "10"})

        assert reply["response"]["statusCode"] == 400

    @pytest.mark.asyncio
    async def test_unknown_pattern_replies_err(self, server):
        reply = await server.dispatch({"pattern": "route.explode", "data": None, "id": "11"})

        assert reply == {"id": "11", "err": NO_MATCHING_HANDLER, "isDisposed": True}

    @pytest.mark.asyncio
    async def test_events_get_no_reply(self, server, route_payload, session_factory):
        reply = await server.dispatch({"pattern": "route.create", "data": route_payload})

        assert reply is None
        counted = await server.dispatch({"pattern": "route.count", "data": {}, "id": "12"})
        assert counted["response"]["data"] == {"count": 1}

    @pytest.mark.asyncio
    async def test_packet_without_pattern_is_ignored(self, server):
        assert await server.dispatch({"id": "13"}) is None
        assert await server.dispatch(["not", "a", "packet"]) is None


class TestServerSocket:

    @pytest_asyncio.fixture
    async def running_server(self, session_factory):
        server = MessageServer(session_factory=session_factory, host="127.0.0.1", port=0)
        await server.start()
        yield server
        await server.stop()

    async def _request(self, reader, writer, message):
        writer.write(encode_frame(message))
        await writer.drain()
        decoder = FrameDecoder()
        while True:
            chunk = await asyncio.wait_for(reader.read(4096), timeout=5)
            assert chunk, "server closed the connection"
            replies = decoder.feed(chunk.decode("utf-8"))
            if replies:
                return replies[0]

    @pytest.mark.asyncio
    async def test_round_trip(self, running_server, route_payload):
        assert running_server.is_serving
        reader, writer = await asyncio.open_connection("127.0.0.1", running_server.port)
        try:
            created = await self._request(
                reader, writer, {"pattern": "route.create", "data": route_payload, "id": "a"}
            )
            fetched = await self._request(
                reader, writer,
                {"pattern": "route.findOne", "data": created["response"]["data"]["id"], "id": "b"},
            )
        finally:
            writer.close()
            await writer.wait_closed()

        assert created["id"] == "a"
        assert fetched["id"] == "b"
        assert fetched["response"]["data"] == created["response"]["data"]

    @pytest.mark.asyncio
    async def test_corrupt_frame_closes_connection(self, running_server):
        reader, writer = await asyncio.open_connection("127.0.0.1", running_server.port)
        try:
            writer.write(b"garbage#{}")
            await writer.drain()
            assert await asyncio.wait_for(reader.read(1024), timeout=5) == b""
        finally:
            writer.close()
            await writer.wait_closed()

    @pytest.mark.asyncio
    async def test_stop_stops_serving(self, session_factory):
        server = MessageServer(session_factory=session_factory, host="127.0.0.1", port=0)
        await server.start()

        await server.stop()

        assert not server.is_serving
