"""
Episode-start snapshot of the game session.

Only the fields that define where and with what the player starts are copied. The live session object is never
replaced: on restore the saved values are written back onto it one field at a time, so everything else the engine
keeps in (or pointing at) the session stays intact.
"""

import copy
import logging
from typing import Any, Dict, Optional

from celeste_rl.bridge_interaction.host import IntroType, Level, Player

log = logging.getLogger(__name__)

SNAPSHOT_FIELDS = (
    "level",
    "respawn_point",
    "inventory",
    "flags",
    "level_flags",
    "strawberries",
    "do_not_load",
    "keys",
    "counters",
    "furthest_seen_level",
    "start_checkpoint",
    "color_grade",
    "summit_gems",
    "first_level",
    "cassette",
    "heart_gem",
    "dreaming",
    "grabbed_golden",
    "hit_checkpoint",
)


class SessionSnapshotManager:
    def __init__(self):
        self._snapshot: Optional[Dict[str, Any]] = None

    @property
    def has_snapshot(self) -> bool:
        return self._snapshot is not None

    @property
    def level(self) -> Optional[str]:
        """Room id the snapshot respawns into."""
        return None if self._snapshot is None else self._snapshot["level"]

    def capture(self, session: Any) -> bool:
        """Copy the curated fields of session. On failure the previous snapshot (if any) is kept."""
        if session is None:
            log.warning("No session to save")
            return False
        try:
            snapshot = {name: copy.deepcopy(getattr(session, name)) for name in SNAPSHOT_FIELDS}
        except Exception as err:
            log.error("Error saving session: %s", err)
            return False
        self._snapshot = snapshot
        log.info("Saved session state for level: %s", snapshot["level"])
        return True

    def restore(self, level: Level, player: Player) -> bool:
        """
        Write the snapshot back onto level.session and respawn the player in the snapshot's room.
        No-op (returns False) without a snapshot or a session.
        """
        if self._snapshot is None or level is None or level.session is None:
            return False

        restored = copy.deepcopy(self._snapshot)
        session = level.session
        for name in SNAPSHOT_FIELDS:
            try:
                setattr(session, name, restored[name])
            except Exception as err:
                log.error("Error restoring session field %s: %s", name, err)
        log.info("Restored session state for level: %s", restored["level"])

        level.teleport_to(player, restored["level"], IntroType.RESPAWN)
        return True

    def clear(self) -> None:
        self._snapshot = None
