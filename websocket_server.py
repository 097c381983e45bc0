"""
AirSession
Copyright (C) 2024 thiccaxe

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import asyncio
import json
import logging
import random
from typing import Optional

import websockets.exceptions
from websockets.asyncio.server import serve, broadcast, Server, ServerConnection

from session_data import SessionData
from session_registry import SessionRegistry
from transport import Transport, TransportNotReady

EVENT_HELLO = "air_session:event/device/hello"
EVENT_INPUT = "air_session:event/device/input"
EVENT_PROFILE = "air_session:event/device/profile"
EVENT_PREMIUM = "air_session:event/device/premium"
EVENT_WELCOME = "air_session:event/device/welcome"
EVENT_STATE = "air_session:event/session/state"
EVENT_ERROR_MALFORMED = "air_session:event/error/malformed_request"
EVENT_ERROR_NOT_CONNECTED = "air_session:event/error/device/not_connected"
EVENT_ERROR_ALREADY_CONNECTED = "air_session:event/error/device/already_connected"


class WebsocketServer(Transport):
    """
    Every websocket connection is one controller. The controller says hello,
    gets a device id back, and from then on sends input packets.
    """

    def __init__(self, config, data: SessionData, registry: SessionRegistry):
        self._config = config
        self._data = data
        self._server: Optional[Server] = None
        self._websocket_server: Optional[serve] = None
        self._registry = registry
        self._registry.set_transport(self)

    @property
    def port(self) -> Optional[int]:
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    def is_ready(self) -> bool:
        return self._data.ready_event.is_set()

    async def wait_until_ready(self) -> None:
        await self._data.ready_event.wait()

    async def set_shared_state(self, state: str) -> None:
        if not self.is_ready():
            raise TransportNotReady()
        broadcast(self._data.connected_devices.values(), json.dumps({
            "id": random.randint(5_000_000, 2_000_000_000),
            "event": EVENT_STATE,
            "data": state,
        }))

    def get_nickname(self, device_id: int) -> str:
        return self._data.nicknames.get(device_id, f"Device {device_id}")

    async def handler(self, websocket: ServerConnection):
        device_id: Optional[int] = None
        shutdown_wait_task = asyncio.create_task(self._data.shutdown_event.wait())
        try:
            while True:
                message_task = asyncio.create_task(websocket.recv())
                done, pending = await asyncio.wait(
                    [message_task, shutdown_wait_task],
                    return_when=asyncio.FIRST_COMPLETED
                )

                # shutdown case
                if self._data.shutdown_event.is_set():
                    message_task.cancel()
                    await websocket.close()
                    break

                message = message_task.result()
                if isinstance(message, str):
                    device_id = await self._parse_message(websocket, device_id, message)
        except websockets.exceptions.ConnectionClosed:
            logging.debug(f"Websocket connection closed (device {device_id})")
        except Exception as e:
            logging.exception(e)
            logging.warning(f"Dropping connection of device {device_id} after an error")
            await websocket.close()
        finally:
            shutdown_wait_task.cancel()
            if device_id is not None:
                await self._device_gone(device_id)

    async def _parse_message(self, websocket: ServerConnection, device_id: Optional[int], message: str) -> Optional[int]:
        try:
            packet = json.loads(message)
        except (ValueError, RecursionError) as e:
            logging.warning(f"Device {device_id} sent non-JSON data; details:")
            logging.exception(e)
            await self._send(websocket, {"event": EVENT_ERROR_MALFORMED})
            return device_id

        logging.debug(f"Received message: {packet}")
        if not isinstance(packet, dict) or "event" not in packet:
            logging.warning(f"Malformed packet - no event")
            await self._send(websocket, {"event": EVENT_ERROR_MALFORMED})
            return device_id

        return await self._handle_packet(websocket, device_id, packet)

    async def _handle_packet(self, websocket: ServerConnection, device_id: Optional[int], packet: dict) -> Optional[int]:
        reply = {"id": packet["id"]} if "id" in packet else {}
        data = packet.get("data", None)

        if packet["event"] == EVENT_HELLO:
            if device_id is not None:
                await self._send(websocket, {**reply, "event": EVENT_ERROR_ALREADY_CONNECTED})
                return device_id
            data = data if isinstance(data, dict) else {}
            device_id = self._data.assign_device_id(data.get("deviceId", None))
            self._data.connected_devices[device_id] = websocket
            nickname = data.get("nickname", None)
            if isinstance(nickname, str):
                self._data.nicknames[device_id] = nickname
            await self._send(websocket, {**reply, "event": EVENT_WELCOME, "data": {"deviceId": device_id}})
            await self._registry.device_connected(device_id)
            if data.get("premium", False) is True:
                await self._registry.elevated_granted(device_id)
            return device_id

        if device_id is None:
            await self._send(websocket, {**reply, "event": EVENT_ERROR_NOT_CONNECTED})
            return device_id

        if packet["event"] == EVENT_INPUT:
            await self._registry.device_message(device_id, data)
        elif packet["event"] == EVENT_PROFILE:
            if isinstance(data, dict) and isinstance(data.get("nickname", None), str):
                self._data.nicknames[device_id] = data["nickname"]
            await self._registry.device_profile_changed(device_id)
        elif packet["event"] == EVENT_PREMIUM:
            await self._registry.elevated_granted(device_id)
        else:
            await self._send(websocket, {**reply, "event": EVENT_ERROR_MALFORMED})
        return device_id

    async def _device_gone(self, device_id: int):
        if self._data.connected_devices.get(device_id, None) is not None:
            del self._data.connected_devices[device_id]
        self._data.nicknames.pop(device_id, None)
        await self._registry.device_disconnected(device_id)

    async def _send(self, websocket: ServerConnection, packet: dict):
        packet.setdefault("id", random.randint(5_000_000, 2_000_000_000))
        try:
            await websocket.send(json.dumps(packet))
        except websockets.exceptions.ConnectionClosed:
            logging.debug("Wanted to send data to a closed connection")

    async def __aenter__(self):
        logging.debug(f"Starting websocket server")
        self._websocket_server = serve(self.handler, self._config["server"].get("host", ""),
                                       int(self._config["server"]["websocket_port"]))
        self._server = await self._websocket_server.__aenter__()
        self._data.ready_event.set()
        await self._registry.transport_ready()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        logging.debug(f"Stopping websocket server")
        self._data.ready_event.clear()
        self._data.shutdown_event.set()
        return await self._websocket_server.__aexit__(exc_type, exc_val, exc_tb)
