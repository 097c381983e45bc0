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

import dataclasses
import enum


class HeroMode(enum.Enum):
    TOGETHER = "TOGETHER"  # every device counts as hero once one device is
    SEPARATE = "SEPARATE"  # only the granted device is hero


class JoinMode(enum.Enum):
    AUTO = "AUTO"  # claim a player on connect
    CUSTOM = "CUSTOM"  # claim only when the device presses "claim"


class MaxPlayersMode(enum.Enum):
    AUTO = "AUTO"  # create a player per device
    LIMITED = "LIMITED"  # fixed pool of max_players


CLAIM_KEY = "claim"


@dataclasses.dataclass
class SessionOptions:
    hero_mode: HeroMode = HeroMode.TOGETHER
    join_mode: JoinMode = JoinMode.AUTO
    max_players_mode: MaxPlayersMode = MaxPlayersMode.AUTO
    max_players: int = 4
    debug: bool = True
    tick_rate: int = 60

    @staticmethod
    def from_config(config) -> "SessionOptions":
        """
        config: the validated configuration document, only the [session] table is read
        """
        session = config["session"]
        return SessionOptions(
            hero_mode=HeroMode(str(session["hero_mode"])),
            join_mode=JoinMode(str(session["join_mode"])),
            max_players_mode=MaxPlayersMode(str(session["max_players_mode"])),
            max_players=int(session["max_players"]),
            debug=bool(session["debug"]),
            tick_rate=int(session["tick_rate"]),
        )
