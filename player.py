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

import enum
import logging
from typing import Callable, Optional


class PlayerState(enum.Enum):
    UNCLAIMED = "unclaimed"
    CLAIMED = "claimed"
    DISCONNECTED = "disconnected"


class Player:
    """
    A seat in the session. Once a device claims it, the seat remembers that device
    so the same device gets it back after a dropped connection.
    """

    def __init__(self, player_id: int):
        self.player_id = player_id
        self.state = PlayerState.UNCLAIMED
        self.device_id: Optional[int] = None

    def claim(self, device_id: int) -> None:
        if self.state == PlayerState.CLAIMED and self.device_id != device_id:
            logging.warning(f"Player {self.player_id} taken over by device {device_id} from {self.device_id}")
        self.device_id = device_id
        self.state = PlayerState.CLAIMED

    def disconnect(self) -> None:
        if self.state != PlayerState.CLAIMED:
            logging.warning(f"Disconnected player {self.player_id} which was {self.state.value}")
            return
        # device_id is kept for reconnecting
        self.state = PlayerState.DISCONNECTED

    @property
    def claimed(self) -> bool:
        return self.state == PlayerState.CLAIMED

    def to_json(self) -> dict:
        return {
            "playerId": self.player_id,
            "state": self.state.value,
            "deviceId": self.device_id,
        }

    def __repr__(self):
        return f"<Player {self.player_id} {self.state.value} device={self.device_id}>"


PlayerFactory = Callable[[int], Player]
