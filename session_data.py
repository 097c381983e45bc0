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
from typing import Optional

from websockets.asyncio.server import ServerConnection


class SessionData:

    def __init__(self):
        self.connected_devices: dict[int, ServerConnection] = dict()
        self.nicknames: dict[int, str] = dict()
        self.next_device_id: int = 1

        self.ready_event = asyncio.Event()
        self.shutdown_event = asyncio.Event()

    def assign_device_id(self, requested: Optional[int] = None) -> int:
        """
        Hands out the requested id if nobody is using it (a controller coming back
        after a dropped socket), otherwise the next free one.
        """
        if isinstance(requested, int) and not isinstance(requested, bool) \
                and requested > 0 and requested not in self.connected_devices:
            self.next_device_id = max(self.next_device_id, requested + 1)
            return requested

        while self.next_device_id in self.connected_devices:
            self.next_device_id += 1
        device_id = self.next_device_id
        self.next_device_id += 1
        return device_id
