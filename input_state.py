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

import json
from typing import Union


class MalformedInputPayload(Exception): pass


class InputState:
    """
    Keeps track of what a controller is doing.

    held: controls currently down
    pressed / released: transitions seen since the last reset (edges)
    axes: last analog value per control
    """

    def __init__(self):
        self._held: set[str] = set()
        self._pressed: set[str] = set()
        self._released: set[str] = set()
        self._axes: dict[str, float] = dict()

    def process(self, data: Union[str, bytes, dict]) -> None:
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except (ValueError, RecursionError) as e:
                # very deep nesting raises RecursionError instead of JSONDecodeError
                raise MalformedInputPayload("Input payload is not JSON") from e

        if not isinstance(data, dict):
            raise MalformedInputPayload(f"Input payload must be an object, got {type(data).__name__}")

        if "keys" in data:
            events = data["keys"]
            if not isinstance(events, list):
                raise MalformedInputPayload("'keys' must be a list of input events")
            # validate everything first, a bad batch leaves no partial state behind
            for event in events:
                self._validate(event)
            for event in events:
                self._apply(event)
            return

        self._validate(data)
        self._apply(data)

    @staticmethod
    def _validate(event) -> None:
        if not isinstance(event, dict):
            raise MalformedInputPayload("Input event must be an object")
        key = event.get("key", None)
        if not isinstance(key, str) or len(key) == 0:
            raise MalformedInputPayload("Input event has no key")
        if "pressed" in event:
            if not isinstance(event["pressed"], bool):
                raise MalformedInputPayload(f"'pressed' for {key} must be a bool")
        elif "value" in event:
            value = event["value"]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise MalformedInputPayload(f"'value' for {key} must be a number")
        else:
            raise MalformedInputPayload(f"Input event for {key} has neither 'pressed' nor 'value'")

    def _apply(self, event: dict) -> None:
        key = event["key"]
        if "pressed" in event:
            if event["pressed"]:
                if key not in self._held:
                    self._held.add(key)
                    self._pressed.add(key)
            elif key in self._held:
                self._held.discard(key)
                self._released.add(key)
        else:
            self._axes[key] = float(event["value"])

    def is_held(self, key: str) -> bool:
        return key in self._held

    def was_pressed(self, key: str) -> bool:
        """True only during the tick the press arrived in"""
        return key in self._pressed

    def was_released(self, key: str) -> bool:
        return key in self._released

    def get_axis(self, key: str, default: float = 0.0) -> float:
        return self._axes.get(key, default)

    def reset(self) -> None:
        """
        Clears edges. Held controls and axes stay as they are.
        Called once per tick, after the messages of that tick were handled.
        """
        self._pressed.clear()
        self._released.clear()

    def clear(self) -> None:
        self._held.clear()
        self._axes.clear()
        self.reset()

    def to_json(self) -> dict:
        return {
            "held": sorted(self._held),
            "axes": dict(self._axes),
        }
