"""End to end tests for the websocket transport on an ephemeral port."""

import asyncio
import json

import pytest
import websockets.exceptions
from websockets.asyncio.client import connect

from player import PlayerState
from session_data import SessionData
from session_options import SessionOptions, JoinMode
from session_registry import SessionRegistry
from transport import TransportNotReady
from websocket_server import (
    WebsocketServer,
    EVENT_HELLO,
    EVENT_INPUT,
    EVENT_PREMIUM,
    EVENT_STATE,
    EVENT_WELCOME,
    EVENT_ERROR_MALFORMED,
    EVENT_ERROR_NOT_CONNECTED,
)


async def wait_for(condition, timeout: float = 2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


async def receive(websocket) -> dict:
    return json.loads(await asyncio.wait_for(websocket.recv(), 2.0))


async def receive_event(websocket, event: str) -> dict:
    while True:
        packet = await receive(websocket)
        if packet["event"] == event:
            return packet


def make_server(sample_config_dict, **options):
    options.setdefault("debug", False)
    registry = SessionRegistry(SessionOptions(**options))
    data = SessionData()
    server = WebsocketServer(sample_config_dict, data, registry)
    return server, registry, data


class TestSessionData:
    """Device id assignment."""

    def test_fresh_ids(self):
        data = SessionData()

        assert data.assign_device_id() == 1
        assert data.assign_device_id() == 2

    def test_requested_id_when_free(self):
        data = SessionData()

        assert data.assign_device_id(7) == 7
        assert data.assign_device_id() == 8

    def test_requested_id_in_use(self):
        data = SessionData()
        data.connected_devices[1] = object()

        assert data.assign_device_id(1) == 2

    @pytest.mark.parametrize("requested", [0, -3, True, "1", None])
    def test_invalid_request(self, requested):
        data = SessionData()

        assert data.assign_device_id(requested) == 1


class TestWebsocketServer:
    """Controllers talking to the session over websockets."""

    @pytest.mark.asyncio
    async def test_not_ready_before_start(self, sample_config_dict):
        server, registry, data = make_server(sample_config_dict)

        assert not server.is_ready()
        with pytest.raises(TransportNotReady):
            await server.set_shared_state("{}")

    @pytest.mark.asyncio
    async def test_hello_claims_and_broadcasts(self, sample_config_dict):
        server, registry, data = make_server(sample_config_dict)
        async with server:
            async with connect(f"ws://127.0.0.1:{server.port}") as websocket:
                await websocket.send(json.dumps({"event": EVENT_HELLO, "data": {"nickname": "alice"}}))

                welcome = await receive(websocket)
                assert welcome["event"] == EVENT_WELCOME
                assert welcome["data"] == {"deviceId": 1}

                state = await receive_event(websocket, EVENT_STATE)
                document = json.loads(state["data"])
                assert document["1"]["playerId"] == 0
                assert document["1"]["claimed"] is True
                assert server.get_nickname(1) == "alice"

            await wait_for(lambda: registry.devices == {})
            assert registry.get_player(0).state == PlayerState.DISCONNECTED
            await registry.wait_for_publish()

    @pytest.mark.asyncio
    async def test_input_and_custom_claim(self, sample_config_dict):
        server, registry, data = make_server(sample_config_dict, join_mode=JoinMode.CUSTOM)
        async with server:
            async with connect(f"ws://127.0.0.1:{server.port}") as websocket:
                await websocket.send(json.dumps({"event": EVENT_HELLO}))
                await receive_event(websocket, EVENT_WELCOME)
                document = json.loads((await receive_event(websocket, EVENT_STATE))["data"])
                assert document["1"]["playerId"] is None

                await websocket.send(json.dumps({
                    "event": EVENT_INPUT,
                    "data": {"key": "claim", "pressed": True},
                }))
                document = json.loads((await receive_event(websocket, EVENT_STATE))["data"])
                assert document["1"]["playerId"] == 0
                assert document["1"]["input"]["held"] == ["claim"]

            await wait_for(lambda: registry.devices == {})
            await registry.wait_for_publish()

    @pytest.mark.asyncio
    async def test_premium_and_errors(self, sample_config_dict):
        server, registry, data = make_server(sample_config_dict)
        async with server:
            async with connect(f"ws://127.0.0.1:{server.port}") as websocket:
                await websocket.send(json.dumps({"id": 3, "event": EVENT_INPUT, "data": {}}))
                error = await receive(websocket)
                assert error == {"id": 3, "event": EVENT_ERROR_NOT_CONNECTED}

                await websocket.send("not json")
                assert (await receive(websocket))["event"] == EVENT_ERROR_MALFORMED

                await websocket.send(json.dumps({"event": EVENT_HELLO}))
                await receive_event(websocket, EVENT_WELCOME)
                await websocket.send(json.dumps({"event": EVENT_PREMIUM}))
                await wait_for(lambda: registry.has_hero)
                assert registry.get_device(1).is_hero

            await wait_for(lambda: registry.devices == {})
            await registry.wait_for_publish()

    @pytest.mark.asyncio
    async def test_reconnect_with_device_id(self, sample_config_dict):
        server, registry, data = make_server(sample_config_dict)
        async with server:
            async with connect(f"ws://127.0.0.1:{server.port}") as websocket:
                await websocket.send(json.dumps({"event": EVENT_HELLO}))
                device_id = (await receive_event(websocket, EVENT_WELCOME))["data"]["deviceId"]
            await wait_for(lambda: registry.devices == {})

            async with connect(f"ws://127.0.0.1:{server.port}") as websocket:
                await websocket.send(json.dumps({"event": EVENT_HELLO, "data": {"deviceId": device_id}}))
                welcome = await receive_event(websocket, EVENT_WELCOME)
                assert welcome["data"]["deviceId"] == device_id
                await wait_for(lambda: registry.get_device(device_id) is not None)
                assert registry.get_player(0).state == PlayerState.CLAIMED
                assert len(registry.players) == 1

            await wait_for(lambda: registry.devices == {})
            await registry.wait_for_publish()

    @pytest.mark.asyncio
    async def test_deeply_nested_packet_gets_error(self, sample_config_dict):
        server, registry, data = make_server(sample_config_dict)
        async with server:
            async with connect(f"ws://127.0.0.1:{server.port}") as websocket:
                await websocket.send(json.dumps({"event": EVENT_HELLO}))
                await receive_event(websocket, EVENT_WELCOME)

                await websocket.send("[" * 100000 + "]" * 100000)
                assert (await receive_event(websocket, EVENT_ERROR_MALFORMED))["event"] == EVENT_ERROR_MALFORMED

                await websocket.send(json.dumps({"event": EVENT_INPUT, "data": {"key": "a", "pressed": True}}))
                await wait_for(lambda: registry.get_device(1).input.is_held("a"))

            await wait_for(lambda: registry.devices == {})
            await registry.wait_for_publish()

    @pytest.mark.asyncio
    async def test_handler_error_still_disconnects(self, sample_config_dict):
        server, registry, data = make_server(sample_config_dict)

        async def broken(device_id, payload):
            raise RuntimeError("registry bug")

        registry.device_message = broken
        async with server:
            async with connect(f"ws://127.0.0.1:{server.port}") as websocket:
                await websocket.send(json.dumps({"event": EVENT_HELLO}))
                await receive_event(websocket, EVENT_WELCOME)
                await websocket.send(json.dumps({"event": EVENT_INPUT, "data": {"key": "a", "pressed": True}}))

                with pytest.raises(websockets.exceptions.ConnectionClosed):
                    await receive_event(websocket, "never sent")

            await wait_for(lambda: registry.devices == {})
            assert registry.get_player(0).state == PlayerState.DISCONNECTED
            assert data.connected_devices == {}
            await registry.wait_for_publish()
