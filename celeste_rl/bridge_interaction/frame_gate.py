"""
Lockstep controller between the engine's frame loop and the agent.

The host calls FrameGate.update / FrameGate.draw (or the functions returned by wrap_update / wrap_draw) in place of
its own per-frame update and draw, passing the original as a callable. While the bridge is enabled:

- update and draw strictly alternate: a second update without a draw in between is dropped, and a draw without a
  preceding update is dropped. Exactly one simulation step happens per observation.
- after each draw the rendered frame is captured, sent to the agent, and the draw blocks until the agent replies.
  The reply's inputs are applied before the next update runs, so the engine's frame rate is the agent's
  round-trip rate.
- cutscenes are skipped as soon as they start.
- a reset requested by the agent is executed at the start of a later update, once the level is not transitioning
  and the player exists and is alive.

Transport faults and a "shutdown" reply disengage the bridge: connection closed, snapshot dropped, inputs released
and the enable flag cleared, after which both hooks are plain pass-through until the bridge is enabled again.
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from config_files.config_loader import get_config
from celeste_rl.bridge_interaction.errors import ProtocolError, TransportError
from celeste_rl.bridge_interaction.host import Host, Level, Player
from celeste_rl.bridge_interaction.input_injector import apply_action, reset_inputs
from celeste_rl.bridge_interaction.messages import MessageKind
from celeste_rl.bridge_interaction.observation import ObservationEncoder
from celeste_rl.bridge_interaction.session_snapshot import SessionSnapshotManager
from celeste_rl.bridge_interaction.transport import Transport

log = logging.getLogger(__name__)


@dataclass
class BridgeContext:
    """State of one activation of the bridge. Built when the bridge first runs, dropped when it disengages."""

    encoder: ObservationEncoder
    transport: Transport
    snapshots: SessionSnapshotManager = field(default_factory=SessionSnapshotManager)
    reset_requested: bool = False

    @classmethod
    def create(cls, config) -> "BridgeContext":
        return cls(
            encoder=ObservationEncoder(config.target_x_position, config.target_y_position),
            transport=Transport.from_config(config),
        )


class FrameGate:
    def __init__(self, host: Host, config=None):
        self.host = host
        self.config = config if config is not None else get_config()
        self.last_called_was_update = False
        self.ctx: Optional[BridgeContext] = None

    @property
    def enabled(self) -> bool:
        return self.config.bridge.enable_bridge

    def enable(self) -> None:
        self.config.bridge.enable_bridge = True

    def _context(self) -> BridgeContext:
        if self.ctx is None:
            self.ctx = BridgeContext.create(self.config)
            log.info("Bridge activated")
        return self.ctx

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------
    def update(self, run_update: Callable[[], None]) -> None:
        if not self.enabled:
            run_update()
            return

        if self.last_called_was_update:
            return

        level = self.host.scene
        if level is not None and level.in_cutscene:
            if not level.skipping_cutscene:
                log.info("Skipping cutscene...")
                level.skip_cutscene()
            run_update()
            self.last_called_was_update = True
            return

        # Execute pending reset once the level transition completes
        ctx = self.ctx
        if ctx is not None and ctx.reset_requested and level is not None and not level.transitioning:
            player = level.get_player()
            if player is not None and not player.dead:
                log.info("Resetting game state...")
                self._reset_game_state(level, player)
                ctx.reset_requested = False

        run_update()
        self.last_called_was_update = True

    def draw(self, run_draw: Callable[[], None]) -> None:
        if not self.enabled:
            run_draw()
            return

        if self.last_called_was_update:
            run_draw()
            self._exchange()
            self.last_called_was_update = False

    def wrap_update(self, fn: Callable) -> Callable:
        """Decorator form of update() for the host's update function."""

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            self.update(lambda: fn(*args, **kwargs))

        return wrapper

    def wrap_draw(self, fn: Callable) -> Callable:
        """Decorator form of draw() for the host's draw function."""

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            self.draw(lambda: fn(*args, **kwargs))

        return wrapper

    # ------------------------------------------------------------------
    # Per-frame exchange
    # ------------------------------------------------------------------
    def _exchange(self) -> None:
        level = self.host.scene
        if level is None or level.paused:
            return
        ctx = self._context()
        if ctx.reset_requested:
            return

        # Save the session on the first frame of the activation
        if not ctx.snapshots.has_snapshot:
            ctx.snapshots.capture(level.session)

        try:
            observation = ctx.encoder.encode(level, level.get_player(), self.host.capture_framebuffer)
        except ValueError as err:
            log.error("Error capturing game state: %s", err)
            self.disengage()
            return
        if observation is None:
            return

        try:
            ctx.transport.send(observation)
            message = ctx.transport.receive()
        except ProtocolError as err:
            log.error("%s", err)
            return
        except TransportError as err:
            log.error("%s", err)
            self.disengage()
            return

        if message.kind is MessageKind.ACK:
            apply_action(self.host.input_device, message)
        elif message.kind is MessageKind.RESET:
            # Executed in update() once it is safe
            ctx.reset_requested = True
        elif message.kind is MessageKind.SHUTDOWN:
            self.disengage()

    def _reset_game_state(self, level: Level, player: Player) -> None:
        ctx = self.ctx
        reset_inputs(self.host.input_device)
        if ctx.snapshots.has_snapshot:
            ctx.snapshots.restore(level, player)
        ctx.encoder.forget()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def disengage(self) -> None:
        """Tear down the connection and disable the bridge. Idempotent."""
        ctx, self.ctx = self.ctx, None
        if ctx is not None:
            ctx.transport.close()
            ctx.snapshots.clear()
            ctx.reset_requested = False
        reset_inputs(self.host.input_device)
        self.config.bridge.enable_bridge = False
        log.info("Connection cleaned up, bridge disabled")

    def unload(self) -> None:
        """Host is unloading the bridge: release inputs and close the connection."""
        reset_inputs(self.host.input_device)
        ctx, self.ctx = self.ctx, None
        if ctx is not None:
            ctx.transport.close()
        log.info("Bridge unloaded")
