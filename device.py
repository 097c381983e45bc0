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

from typing import Callable, Optional

from input_state import InputState
from player import Player


class Device:

    def __init__(self, device_id: int):
        self.device_id = device_id
        self.input = InputState()
        self.is_hero = False

    def make_hero(self) -> None:
        # never cleared for the lifetime of the device
        self.is_hero = True

    def to_json(self, player: Optional[Player], hero: bool, has_hero: bool) -> dict:
        """
        Shape of one entry in the shared state document; controllers parse this.

        player: the player bound to this device, if any (looked up by the registry)
        hero: whether the device counts as elevated under the session hero mode
        has_hero: whether any device in the session was elevated
        """
        return {
            "deviceId": self.device_id,
            "hero": hero,
            "playerId": player.player_id if player is not None else None,
            "claimed": player is not None and player.claimed,
            "hasHero": has_hero,
            "input": self.input.to_json(),
        }

    def __repr__(self):
        return f"<Device {self.device_id} hero={self.is_hero}>"


DeviceFactory = Callable[[int], Device]
