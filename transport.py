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

import abc


class TransportNotReady(Exception): pass


class Transport(abc.ABC):
    """
    What the session registry needs from whatever carries messages to the controllers.
    """

    @abc.abstractmethod
    def is_ready(self) -> bool: ...

    @abc.abstractmethod
    async def wait_until_ready(self) -> None: ...

    @abc.abstractmethod
    async def set_shared_state(self, state: str) -> None:
        """
        Hand the serialized session state to every controller.
        Raises TransportNotReady if called before the transport is ready.
        """

    def get_nickname(self, device_id: int) -> str:
        return f"Device {device_id}"
