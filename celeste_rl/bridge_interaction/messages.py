"""
Wire messages of the bridge protocol.

Host -> agent, one per step: an Observation serialized as a single JSON object (camelCase keys, no length
prefix, no terminator):

  playerXPosition, playerYPosition   float
  playerDied, playerReachedNextRoom  bool
  targetXPosition, targetYPosition   float
  screenWidth, screenHeight          int
  screenPixelsBase64                 str   base64 of screenWidth*screenHeight*4 bytes, RGBA, row-major
  levelName                          str

Agent -> host, one per Observation: a JSON object with a required "type":

  {"type": "ACK", "moveX": 0.0, "moveY": 0.0, "jump": false, "dash": false, "grab": false}
      every control field is optional, an absent (or null) field leaves that control as it is
  {"type": "reset"}
  {"type": "shutdown"}

Any other type, or text that is not a JSON object, is a ProtocolError.
"""

import base64
import json
from enum import Enum
from typing import Literal, Optional, Union

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, ValidationError

from celeste_rl.bridge_interaction.errors import ProtocolError


class MessageKind(str, Enum):
    ACK = "ACK"
    RESET = "reset"
    SHUTDOWN = "shutdown"


class Observation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    player_x: float = Field(alias="playerXPosition")
    player_y: float = Field(alias="playerYPosition")
    player_died: bool = Field(alias="playerDied")
    reached_next_room: bool = Field(alias="playerReachedNextRoom")
    target_x: float = Field(alias="targetXPosition")
    target_y: float = Field(alias="targetYPosition")
    frame_width: int = Field(alias="screenWidth")
    frame_height: int = Field(alias="screenHeight")
    screen_pixels_base64: str = Field(alias="screenPixelsBase64")
    level_id: str = Field(alias="levelName")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @property
    def frame_pixels(self) -> bytes:
        return base64.b64decode(self.screen_pixels_base64)

    def frame_array(self) -> npt.NDArray[np.uint8]:
        """Decoded frame as (H, W, 4) RGBA."""
        pixels = np.frombuffer(bytearray(self.frame_pixels), dtype=np.uint8)
        return pixels.reshape((self.frame_height, self.frame_width, 4))


class AckMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: Literal["ACK"] = "ACK"
    move_x: Optional[StrictFloat] = Field(default=None, alias="moveX")
    move_y: Optional[StrictFloat] = Field(default=None, alias="moveY")
    jump: Optional[StrictBool] = None
    dash: Optional[StrictBool] = None
    grab: Optional[StrictBool] = None

    @property
    def kind(self) -> MessageKind:
        return MessageKind.ACK

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class ResetMessage(BaseModel):
    type: Literal["reset"] = "reset"

    @property
    def kind(self) -> MessageKind:
        return MessageKind.RESET

    def to_json(self) -> str:
        return self.model_dump_json()


class ShutdownMessage(BaseModel):
    type: Literal["shutdown"] = "shutdown"

    @property
    def kind(self) -> MessageKind:
        return MessageKind.SHUTDOWN

    def to_json(self) -> str:
        return self.model_dump_json()


AgentMessage = Union[AckMessage, ResetMessage, ShutdownMessage]


def parse_agent_message(text: str) -> AgentMessage:
    """Classify one agent reply. Raises ProtocolError for anything that is not a well-formed ACK/reset/shutdown."""
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as err:
        raise ProtocolError("Unparseable response from agent", text) from err
    if not isinstance(doc, dict) or "type" not in doc:
        raise ProtocolError("Unexpected response from agent", text)

    kind = doc["type"]
    if kind == MessageKind.ACK.value:
        try:
            return AckMessage.model_validate(doc)
        except ValidationError as err:
            raise ProtocolError(f"Invalid ACK fields ({err.error_count()} errors)", text) from err
    if kind == MessageKind.RESET.value:
        return ResetMessage()
    if kind == MessageKind.SHUTDOWN.value:
        return ShutdownMessage()
    raise ProtocolError(f"Unexpected response type from agent: {kind!r}", text)
