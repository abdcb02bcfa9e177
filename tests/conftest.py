"""
Shared fakes of the host surface (input bindings, player, level, session, engine) and socket helpers.
"""

from __future__ import annotations

import socket
import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np
import pytest

from config_files.config_loader import build_config
from celeste_rl.agent_interaction.agent_server import AgentServer
from celeste_rl.bridge_interaction.host import IntroType

TIMEOUT_S = 5.0


class FakeAxis:
    def __init__(self):
        self.value = 0.0
        self.calls = 0

    def set_neutral(self) -> None:
        self.value = 0.0
        self.calls += 1

    def set_value(self, value: float) -> None:
        self.value = value
        self.calls += 1


class FakeButton:
    def __init__(self):
        self.pressed = False

    def press(self) -> None:
        self.pressed = True

    def release(self) -> None:
        self.pressed = False


class FakeInputDevice:
    def __init__(self):
        self.move_x = FakeAxis()
        self.move_y = FakeAxis()
        self.jump = FakeButton()
        self.dash = FakeButton()
        self.grab = FakeButton()
        self.talk = FakeButton()
        self.crouch_dash = FakeButton()

    def state(self) -> tuple:
        return (
            self.move_x.value,
            self.move_y.value,
            self.jump.pressed,
            self.dash.pressed,
            self.grab.pressed,
            self.talk.pressed,
            self.crouch_dash.pressed,
        )

    def is_neutral(self) -> bool:
        return self.state() == (0.0, 0.0, False, False, False, False, False)


@dataclass
class FakeSession:
    level: str = "1"
    respawn_point: Optional[Tuple[float, float]] = (16.0, 152.0)
    inventory: dict = field(default_factory=lambda: {"dashes": 1, "dream_dash": False})
    flags: set = field(default_factory=set)
    level_flags: set = field(default_factory=set)
    strawberries: set = field(default_factory=set)
    do_not_load: set = field(default_factory=set)
    keys: set = field(default_factory=set)
    counters: list = field(default_factory=list)
    furthest_seen_level: Optional[str] = "1"
    start_checkpoint: Optional[str] = None
    color_grade: str = "none"
    summit_gems: list = field(default_factory=lambda: [False] * 6)
    first_level: bool = True
    cassette: bool = False
    heart_gem: bool = False
    dreaming: bool = False
    grabbed_golden: bool = False
    hit_checkpoint: bool = False
    # Not part of the snapshot
    time: int = 0
    deaths: int = 0
    audio: dict = field(default_factory=lambda: {"music": "event:/music/lvl0/intro"})


class FakePlayer:
    def __init__(self, x: float = 16.0, y: float = 152.0, dead: bool = False):
        self.exact_position = (x, y)
        self.dead = dead


class FakeLevel:
    def __init__(self, session: Optional[FakeSession] = None, player: Optional[FakePlayer] = None):
        self.session = session if session is not None else FakeSession()
        self.player = player if player is not None else FakePlayer(*self.session.respawn_point)
        self.paused = False
        self.in_cutscene = False
        self.skipping_cutscene = False
        self.transitioning = False
        self.skip_calls = 0
        self.teleports: List[Tuple[Any, str, IntroType]] = []

    def skip_cutscene(self) -> None:
        self.skip_calls += 1
        self.skipping_cutscene = True

    def get_player(self) -> Optional[FakePlayer]:
        return self.player

    def teleport_to(self, player, level_name: str, intro_type: IntroType) -> None:
        self.teleports.append((player, level_name, intro_type))
        self.session.level = level_name
        player.exact_position = tuple(self.session.respawn_point)
        player.dead = False


def make_frame(width: int = 8, height: int = 6) -> np.ndarray:
    """Frame where every pixel's RGBA encodes its own coordinates."""
    frame = np.zeros((height, width, 4), dtype=np.uint8)
    for y in range(height):
        for x in range(width):
            frame[y, x] = (x, y, (x + y) % 256, 255)
    return frame


class FakeHost:
    """Engine stand-in: counts updates/draws, moves the player along the held x axis on every update."""

    def __init__(self, level: Optional[FakeLevel] = None, frame: Optional[np.ndarray] = None):
        self.level = level if level is not None else FakeLevel()
        self.input_device = FakeInputDevice()
        self.frame = frame if frame is not None else make_frame()
        self.updates = 0
        self.draws = 0
        self.frames_captured = 0
        self.in_gameplay = True

    @property
    def scene(self) -> Optional[FakeLevel]:
        return self.level if self.in_gameplay else None

    def capture_framebuffer(self) -> np.ndarray:
        self.frames_captured += 1
        return self.frame

    def run_update(self) -> None:
        self.updates += 1
        player = self.level.player
        if player is not None:
            x, y = player.exact_position
            player.exact_position = (x + self.input_device.move_x.value, y)

    def run_draw(self) -> None:
        self.draws += 1

    def frame_step(self, gate) -> None:
        gate.update(self.run_update)
        gate.draw(self.run_draw)


class ScriptedAgent(threading.Thread):
    """
    Agent on a background thread: accepts the game, then for each scripted reply reads one observation and
    answers it. A reply is either raw text to send or a callable taking the AgentServer.
    """

    def __init__(self, server: AgentServer, replies: List[Any]):
        super().__init__(daemon=True)
        self.server = server
        self.replies = replies
        self.observations = []
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            self.server.accept()
            for reply in self.replies:
                self.observations.append(self.server.read_observation())
                if callable(reply):
                    reply(self.server)
                else:
                    self.server._send(reply)
        except BaseException as err:
            self.error = err

    def finish(self) -> None:
        self.join(TIMEOUT_S)
        assert not self.is_alive(), "agent thread did not finish"
        if self.error is not None:
            raise self.error


def close_connection(server: AgentServer) -> None:
    server._close_connection()


@pytest.fixture
def config():
    return build_config(
        {
            "transport": {"receive_timeout_s": TIMEOUT_S, "connect_timeout_s": TIMEOUT_S},
            "user": {"agent_port": 0, "bridge_port": 0},
        }
    )


@pytest.fixture
def agent_server(config):
    server = AgentServer(port=0, accept_timeout_s=TIMEOUT_S)
    config.user.agent_port = server.port
    yield server
    server.close()


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def closed_port() -> int:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


def run_agent(server: AgentServer, replies: List[Any]) -> ScriptedAgent:
    agent = ScriptedAgent(server, replies)
    agent.start()
    return agent

