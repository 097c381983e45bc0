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
from typing import Optional

from device import Device, DeviceFactory
from input_state import MalformedInputPayload
from player import Player, PlayerFactory, PlayerState
from session_options import SessionOptions, HeroMode, JoinMode, MaxPlayersMode, CLAIM_KEY
from transport import Transport, TransportNotReady


class ClaimExhausted(Exception): pass


class SessionRegistry:
    """
    Owns every player and device of the session. Transport events come in here,
    the player/device graph is updated, and the resulting state is sent back out.
    """

    def __init__(self, options: SessionOptions, transport: Optional[Transport] = None,
                 player_factory: PlayerFactory = Player, device_factory: DeviceFactory = Device):
        self._options = options
        self._transport = transport
        self._player_factory = player_factory
        self._device_factory = device_factory
        self._players: dict[int, Player] = dict()
        self._devices: dict[int, Device] = dict()
        self._has_hero = False
        self._publish_task: Optional[asyncio.Task] = None
        self._publish_pending = False

        self.reset_players()

    def set_transport(self, transport: Transport):
        self._transport = transport

    @property
    def options(self) -> SessionOptions:
        return self._options

    @property
    def players(self) -> dict[int, Player]:
        return dict(self._players)

    @property
    def devices(self) -> dict[int, Device]:
        return dict(self._devices)

    @property
    def is_ready(self) -> bool:
        return self._transport is not None and self._transport.is_ready()

    @property
    def has_hero(self) -> bool:
        return self._has_hero

    @property
    def players_available(self) -> int:
        """players that exist but are not claimed right now"""
        return sum(1 for player in self._players.values() if player.state != PlayerState.CLAIMED)

    # transport events

    async def transport_ready(self):
        self._internal_debug("Transport ready")

    async def device_connected(self, device_id: int):
        nickname = self._transport.get_nickname(device_id) if self._transport is not None else ""
        self._internal_debug(f"Device: {device_id} connected. {nickname}")

        if self.reconnect_with_player(device_id):
            self._internal_debug(f"Reconnected {device_id} with player")
        elif self._options.join_mode == JoinMode.AUTO:
            self.claim_player(device_id)

        self._create_device(device_id)

    async def device_disconnected(self, device_id: int):
        self._internal_debug(f"Device: {device_id} disconnected.")

        if device_id not in self._devices:
            logging.warning(f"Disconnected device {device_id} when it never was connected!")
            return

        player = self.get_player_from_device(device_id)
        if player is not None and player.state == PlayerState.CLAIMED:
            player.disconnect()

        del self._devices[device_id]
        self.update_device_states()

    async def device_message(self, device_id: int, data):
        device = self.get_device(device_id)
        if device is None:
            logging.warning(f"Message from unknown device {device_id} dropped")
            return

        try:
            device.input.process(data)
        except MalformedInputPayload as e:
            logging.warning(f"Dropped input from device {device_id}: {e}")
            return

        if self._options.join_mode == JoinMode.CUSTOM and device.input.was_pressed(CLAIM_KEY):
            self.claim_player(device_id)
            self.update_device_states()

    async def device_profile_changed(self, device_id: int):
        self._internal_debug(f"Device {device_id} made changes to its profile.")

    async def elevated_granted(self, device_id: int):
        self._internal_debug(f"Elevated: {device_id}")

        self._has_hero = True
        device = self.get_device(device_id)
        if device is not None:
            device.make_hero()
        else:
            logging.warning(f"Elevated status granted to unknown device {device_id}")
        self.update_device_states()

    # players

    def get_player(self, player_id: int) -> Optional[Player]:
        return self._players.get(player_id, None)

    def _create_player(self, player_id: int) -> Player:
        player = self._player_factory(player_id)
        self._players[player_id] = player
        return player

    def reset_players(self):
        self._players = dict()

        if self._options.max_players_mode == MaxPlayersMode.LIMITED:
            for player_id in range(self._options.max_players):
                self._create_player(player_id)

    def claim_player(self, device_id: int) -> Optional[Player]:
        try:
            return self._claim(device_id)
        except ClaimExhausted as e:
            logging.warning(f"Device {device_id} failed to claim a player: {e}")
            return None

    def _claim(self, device_id: int) -> Player:
        current = self.get_player_from_device(device_id)
        if current is not None and current.state == PlayerState.CLAIMED:
            self._internal_debug(f"Device {device_id} already claimed player {current.player_id}")
            return current

        for player_id in sorted(self._players):
            player = self._players[player_id]
            if player.state == PlayerState.UNCLAIMED:
                player.claim(device_id)
                self._internal_debug(f"Device {device_id} claimed player {player_id}")
                return player

        if self._options.max_players_mode == MaxPlayersMode.AUTO:
            player = self._create_player(len(self._players))
            player.claim(device_id)
            self._internal_debug(f"Device {device_id} claimed a new player {player.player_id}")
            return player

        raise ClaimExhausted(f"all {len(self._players)} players are taken")

    def reconnect_with_player(self, device_id: int) -> bool:
        for player_id in sorted(self._players):
            player = self._players[player_id]
            if player.state == PlayerState.DISCONNECTED and player.device_id == device_id:
                player.claim(device_id)
                return True
        return False

    # devices

    def get_device(self, device_id: int) -> Optional[Device]:
        return self._devices.get(device_id, None)

    def _create_device(self, device_id: int):
        if device_id not in self._devices:
            self._devices[device_id] = self._device_factory(device_id)
        else:
            self._internal_debug(f"Device {device_id} connected twice, keeping the existing one")
        self.update_device_states()

    def device_has_player(self, device_id: int) -> bool:
        return self.get_player_from_device(device_id) is not None

    def get_player_from_device(self, device_id: int) -> Optional[Player]:
        """
        The player bound to a device. A claimed player wins over a disconnected one
        that still remembers the same device id.
        """
        found = None
        for player_id in sorted(self._players):
            player = self._players[player_id]
            if player.state == PlayerState.UNCLAIMED or player.device_id != device_id:
                continue
            if player.state == PlayerState.CLAIMED:
                return player
            if found is None:
                found = player
        return found

    def is_device_hero(self, device_id: int) -> bool:
        device = self.get_device(device_id)
        if device is None:
            return False
        if self._options.hero_mode == HeroMode.TOGETHER:
            return self._has_hero
        return device.is_hero

    # state

    def device_states(self) -> dict[str, dict]:
        return {
            str(device_id): device.to_json(
                self.get_player_from_device(device_id),
                self.is_device_hero(device_id),
                self._has_hero,
            )
            for device_id, device in self._devices.items()
        }

    def serialize_device_states(self) -> str:
        return json.dumps(self.device_states())

    def update_device_states(self):
        """
        Schedules a broadcast. While one is waiting or sending, further requests
        only mark the state dirty; the running task picks them up.
        """
        self._internal_debug("update_device_states")

        self._publish_pending = True
        if self._publish_task is None or self._publish_task.done():
            self._publish_task = asyncio.get_running_loop().create_task(self._send_device_states())

    async def _send_device_states(self):
        try:
            while self._publish_pending:
                if self._transport is None:
                    logging.warning("Wanted to send device states without a transport")
                    return
                await self._transport.wait_until_ready()
                self._publish_pending = False
                await self.publish_state()
        except Exception as e:
            logging.exception(e)
            logging.warning("Could not send device states")

    async def publish_state(self):
        """
        Waits for the transport, then sends the state as it is at that moment.
        """
        while True:
            await self._transport.wait_until_ready()
            try:
                await self._transport.set_shared_state(self.serialize_device_states())
                return
            except TransportNotReady:
                logging.debug("Transport went away while publishing, waiting for it again")

    async def wait_for_publish(self):
        if self._publish_task is not None:
            await self._publish_task

    def reset_input(self):
        """
        Clears the pressed/released edges of every device, once per tick.
        """
        for device in self._devices.values():
            device.input.reset()

    def _internal_debug(self, message: str):
        if self._options.debug:
            logging.debug(f"AirSession: {message}")
