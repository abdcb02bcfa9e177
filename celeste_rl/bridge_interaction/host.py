"""
Surface of the host engine consumed by the bridge.

The engine (scene graph, rendering, physics, the virtual input bindings) lives outside this package.
It is described here only through the attributes and calls the bridge actually uses, as typing Protocols,
so any object with the right shape can be plugged in: the game-side mod adapter in production, plain
fakes in tests.
"""

from enum import Enum
from typing import Any, Optional, Protocol, Tuple

import numpy as np
import numpy.typing as npt


class IntroType(str, Enum):
    """How the player enters a room after a teleport."""

    RESPAWN = "respawn"
    TRANSITION = "transition"
    NONE = "none"


class VirtualAxis(Protocol):
    def set_neutral(self) -> None: ...

    def set_value(self, value: float) -> None: ...


class VirtualButton(Protocol):
    def press(self) -> None: ...

    def release(self) -> None: ...


class VirtualInputDevice(Protocol):
    """Programmatic gameplay bindings: two analog axes and the digital buttons."""

    move_x: VirtualAxis
    move_y: VirtualAxis
    jump: VirtualButton
    dash: VirtualButton
    grab: VirtualButton
    talk: VirtualButton
    crouch_dash: VirtualButton


class Player(Protocol):
    # Sub-pixel position (x, y) in world coordinates
    exact_position: Tuple[float, float]
    dead: bool


class Level(Protocol):
    """A gameplay scene. Other scenes (menus, overworld) are reported by the host as None."""

    # Live session: the room id is session.level, plus the fields listed in session_snapshot.SNAPSHOT_FIELDS
    session: Any
    paused: bool
    in_cutscene: bool
    skipping_cutscene: bool
    transitioning: bool

    def skip_cutscene(self) -> None: ...

    def get_player(self) -> Optional[Player]: ...

    def teleport_to(self, player: Player, level_name: str, intro_type: IntroType) -> None: ...


class Host(Protocol):
    input_device: VirtualInputDevice

    @property
    def scene(self) -> Optional[Level]: ...

    def capture_framebuffer(self) -> npt.NDArray[np.uint8]:
        """Back buffer of the current draw as an (H, W, 4) RGBA uint8 array, row-major."""
        ...
