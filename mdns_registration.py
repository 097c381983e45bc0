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

import logging
import socket
from typing import Optional

import zeroconf
from zeroconf import IPVersion
from zeroconf.asyncio import AsyncZeroconf, AsyncServiceInfo

SERVICE_TYPE = "_air-session._tcp.local."
PROTOCOL_VERSION = "1"


class ZeroconfManager:

    def __init__(self):
        self._zeroconf = AsyncZeroconf(ip_version=IPVersion.V4Only)

    async def register_service(self, service: AsyncServiceInfo):
        await self._zeroconf.async_register_service(service)

    async def unregister_all_services(self):
        await self._zeroconf.async_unregister_all_services()

    async def close(self):
        await self._zeroconf.async_close()


class ZeroconfException(Exception): pass


class AirSessionZeroconf:
    """
    Advertises the websocket endpoint so controllers on the network can find the session.
    """
    _service: AsyncServiceInfo

    def __init__(self, config, port_getter=None):
        self._manager: Optional[ZeroconfManager] = None
        self._config = config
        self._port_getter = port_getter
        self._registered = False

    def _address(self) -> str:
        if "address" in self._config["server"]:
            return str(self._config["server"]["address"])
        return socket.gethostbyname(socket.gethostname())

    def _port(self) -> int:
        port = self._port_getter() if self._port_getter is not None else None
        return port if port is not None else int(self._config["server"]["websocket_port"])

    def build_service(self) -> AsyncServiceInfo:
        records = {
            "id": str(self._config["server"]["id"]),
            "vr": PROTOCOL_VERSION,
            "jm": str(self._config["session"]["join_mode"]),
            "mp": str(self._config["session"]["max_players_mode"]),
        }
        return AsyncServiceInfo(
            SERVICE_TYPE,
            f"{self._config['server']['name']}.{SERVICE_TYPE}",
            addresses=[socket.inet_aton(self._address())],
            port=self._port(),
            properties=records,
            server=f"{self._config['server']['name']}.local."
        )

    async def start(self):
        try:
            self._service = self.build_service()
            self._manager = ZeroconfManager()
            await self._manager.register_service(self._service)
            logging.debug(f"Registered services.")
        except (zeroconf.Error, OSError) as e:
            logging.exception(e)
            raise ZeroconfException() from e

    async def stop(self):
        await self._manager.unregister_all_services()
        await self._manager.close()
        logging.debug(f"Unregistered services.")

    async def __aenter__(self):
        try:
            await self.start()
            self._registered = True
        except ZeroconfException:
            logging.warning("Could not advertise the session over mDNS, controllers need the address")

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._registered:
            await self.stop()
            self._registered = False
