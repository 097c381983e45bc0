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

import ipaddress
import logging
import uuid
from pathlib import Path

from voluptuous import Schema, Required, Optional, All, Range, Length, In
import voluptuous.error
import aiofiles
import tomlkit
import tomlkit.exceptions

from session_options import HeroMode, JoinMode, MaxPlayersMode


class ConfigurationLoadError(Exception): pass


class Config:
    config: tomlkit.TOMLDocument
    config_opened: bool = False

    def __init__(self, config_location: Path):
        self.config_location = config_location

        self.config_schema = Schema({
            Required('server'): {
                Required('name'): All(str, Length(min=1)),
                Required('id'): All(lambda _uuid: uuid.UUID(_uuid, version=4)),
                Required('websocket_port'): All(int, Range(min=0, max=65535)),
                Optional('host'): str,
                Optional('address'): All(str, self.address_validator),
            },
            Required('session'): {
                Required('hero_mode'): In([mode.value for mode in HeroMode]),
                Required('join_mode'): In([mode.value for mode in JoinMode]),
                Required('max_players_mode'): In([mode.value for mode in MaxPlayersMode]),
                Required('max_players'): All(int, Range(min=1)),
                Required('debug'): bool,
                Required('tick_rate'): All(int, Range(min=1, max=240)),
            },
        })

    @staticmethod
    def address_validator(address: str) -> str:
        try:
            ipaddress.IPv4Address(address)
        except ipaddress.AddressValueError as e:
            raise voluptuous.error.Invalid(message="Invalid IPv4 address.") from e
        return address

    async def initialize(self):
        try:
            async with aiofiles.open(self.config_location, 'r') as config_file:
                file_data = await config_file.read()
                self.config = tomlkit.parse(file_data)
                logging.debug("Loaded Configuration without toml format error")
                logging.debug("Validating against Schema.")
                self.config_schema(self.config.unwrap())
                self.config_opened = True
                logging.debug("Validated against Schema.")
        except FileNotFoundError as e:
            logging.exception(e)
            logging.warning(
                f"Could not find {self.config_location}. Copy from .example/config.toml to {self.config_location}")
            raise ConfigurationLoadError() from e
        except IOError as e:
            logging.exception(e)
            logging.warning(f"Could not open file {self.config_location}")
            raise ConfigurationLoadError() from e
        except tomlkit.exceptions.ParseError as e:
            logging.exception(e)
            logging.warning(f"Configuration in {self.config_location} is invalid")
            raise ConfigurationLoadError() from e
        except voluptuous.error.MultipleInvalid as e:
            logging.exception(e)
            logging.warning(f"Configuration in {self.config_location} does not match expected format")
            logging.warning(f"Issue configuration item: {e.path}")
            raise ConfigurationLoadError() from e

        logging.info(f"Configuration loaded.")

    async def close(self):
        if self.config_opened is True:
            async with aiofiles.open(self.config_location, 'w') as config_file:
                await config_file.write(tomlkit.dumps(self.config))
            logging.debug("Config file saved to disk.")
            logging.info(f"Configuration Saved.")
