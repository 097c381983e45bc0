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
import logging
import os
from typing import Callable

from config import Config, ConfigurationLoadError
from logger import setup_logging
from mdns_registration import AirSessionZeroconf
from session_data import SessionData
from session_options import SessionOptions
from session_registry import SessionRegistry
from websocket_server import WebsocketServer

TickListener = Callable[[SessionRegistry], None]


class AirSession:

    def __init__(self, config, loop: asyncio.AbstractEventLoop):
        self._config = config
        self._loop = loop
        self._options = SessionOptions.from_config(self._config)
        self._data = SessionData()
        self._registry = SessionRegistry(self._options)
        self._websocket_server = WebsocketServer(self._config, self._data, self._registry)
        self._mdns = AirSessionZeroconf(self._config, lambda: self._websocket_server.port)
        self._tick_listeners: list[TickListener] = []

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def add_tick_listener(self, listener: TickListener):
        """
        listener runs every tick before the input edges are cleared, so it sees
        this tick's presses
        """
        self._tick_listeners.append(listener)

    def tick(self):
        for listener in self._tick_listeners:
            try:
                listener(self._registry)
            except Exception as e:
                logging.exception(e)
        self._registry.reset_input()

    async def _tick_loop(self):
        interval = 1 / self._options.tick_rate
        while not self._data.shutdown_event.is_set():
            await asyncio.sleep(interval)
            self.tick()

    async def begin(self):
        logging.info("Starting Air Session Server")
        async with self._websocket_server:
            logging.info(f"Websocket server listening on port {self._websocket_server.port}")
            logging.info("Starting MDNS")
            async with self._mdns:
                tick_task = self._loop.create_task(self._tick_loop())
                try:
                    logging.info("Ctrl^C to quit")
                    await self._data.shutdown_event.wait()
                except asyncio.CancelledError:
                    logging.info("Cancelled ...")
                except KeyboardInterrupt:
                    logging.info("Cancelled ...")
                finally:
                    logging.info("Stopping Server ...")
                    tick_task.cancel()


async def main():
    logging.info("Starting air session ...")

    config = Config(os.environ.get("AIR_SESSION_CONFIG", "./config.toml"))
    loop = asyncio.get_running_loop()

    try:
        await config.initialize()
        setup_logging(bool(config.config["session"]["debug"]))

        air_session = AirSession(config.config, loop)
        await air_session.begin()
    except ConfigurationLoadError:
        logging.error("Could not load configuration. Exiting")
        return
    finally:
        await config.close()


def run():
    setup_logging()
    asyncio.run(main())


if __name__ == "__main__":
    run()
