"""
Per-frame observation capture.

ObservationEncoder turns what the host exposes at draw time (player pose, death flag, current room, rendered
back buffer) into an Observation. Its only state is the last player it saw and the last room id, used to bridge
frames where the player is momentarily absent and to detect room changes.
"""

import base64
import logging
from typing import Callable, Optional

import numpy as np
import numpy.typing as npt

from celeste_rl.bridge_interaction.host import Level, Player
from celeste_rl.bridge_interaction.messages import Observation

log = logging.getLogger(__name__)


def encode_frame(frame: npt.NDArray) -> tuple[int, int, str]:
    """(width, height, base64 of row-major RGBA bytes) for an (H, W, 4) frame."""
    if frame.ndim != 3 or frame.shape[2] != 4:
        raise ValueError(f"Expected an (H, W, 4) RGBA frame, got shape {frame.shape}")
    height, width = frame.shape[:2]
    pixel_bytes = np.ascontiguousarray(frame, dtype=np.uint8).tobytes()
    return width, height, base64.b64encode(pixel_bytes).decode("ascii")


class ObservationEncoder:
    def __init__(self, target_x: float, target_y: float):
        self.target_x = float(target_x)
        self.target_y = float(target_y)
        self.last_player: Optional[Player] = None
        self.last_room_name: Optional[str] = None

    def forget(self) -> None:
        """Drop the remembered player and room (after a reset the next observation starts fresh)."""
        self.last_player = None
        self.last_room_name = None

    def encode(
        self,
        level: Optional[Level],
        player: Optional[Player],
        grab_frame: Callable[[], npt.NDArray],
    ) -> Optional[Observation]:
        """
        Build the observation for the frame that was just drawn.
        grab_frame is only called once an observation is certain to be produced.
        Returns None when there is no level, or no player now and none was ever seen.
        """
        if level is None:
            return None

        if player is None:
            if self.last_player is None:
                return None
            player = self.last_player
        self.last_player = player

        x, y = player.exact_position

        room_name = level.session.level
        reached_next_room = self.last_room_name is not None and self.last_room_name != room_name
        self.last_room_name = room_name
        if reached_next_room:
            log.debug("Room changed to %s", room_name)

        width, height, pixels_b64 = encode_frame(grab_frame())

        return Observation(
            player_x=float(x),
            player_y=float(y),
            player_died=bool(player.dead),
            reached_next_room=reached_next_room,
            target_x=self.target_x,
            target_y=self.target_y,
            frame_width=width,
            frame_height=height,
            screen_pixels_base64=pixels_b64,
            level_id=str(room_name),
        )
