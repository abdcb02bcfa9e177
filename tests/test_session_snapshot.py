from __future__ import annotations

import copy

from conftest import FakeLevel, FakePlayer, FakeSession
from celeste_rl.bridge_interaction.host import IntroType
from celeste_rl.bridge_interaction.session_snapshot import SNAPSHOT_FIELDS, SessionSnapshotManager


def _mutate_everything(session: FakeSession) -> None:
    session.level = "3"
    session.respawn_point = (400.0, 80.0)
    session.inventory["dashes"] = 2
    session.flags.add("door_open")
    session.level_flags.add("3")
    session.strawberries.add("1:7")
    session.do_not_load.add("2:12")
    session.keys.add("2:3")
    session.counters.append(("berries", 1))
    session.furthest_seen_level = "3"
    session.start_checkpoint = "b-01"
    session.color_grade = "cold"
    session.summit_gems[0] = True
    session.first_level = False
    session.cassette = True
    session.heart_gem = True
    session.dreaming = True
    session.grabbed_golden = True
    session.hit_checkpoint = True


def test_snapshot_covers_nineteen_fields():
    assert len(SNAPSHOT_FIELDS) == 19
    assert len(set(SNAPSHOT_FIELDS)) == 19


def test_restore_reproduces_every_captured_field():
    level = FakeLevel()
    expected = {name: copy.deepcopy(getattr(level.session, name)) for name in SNAPSHOT_FIELDS}
    snapshots = SessionSnapshotManager()
    assert snapshots.capture(level.session)

    _mutate_everything(level.session)
    assert snapshots.restore(level, level.player)

    for name in SNAPSHOT_FIELDS:
        assert getattr(level.session, name) == expected[name], name


def test_restore_only_overwrites_enumerated_fields():
    level = FakeLevel()
    snapshots = SessionSnapshotManager()
    snapshots.capture(level.session)

    level.session.time = 12345
    level.session.deaths = 7
    audio = level.session.audio
    audio["music"] = "event:/music/lvl1/main"

    snapshots.restore(level, level.player)
    assert level.session.time == 12345
    assert level.session.deaths == 7
    assert level.session.audio is audio
    assert audio["music"] == "event:/music/lvl1/main"


def test_restore_keeps_session_identity():
    level = FakeLevel()
    session = level.session
    snapshots = SessionSnapshotManager()
    snapshots.capture(session)
    _mutate_everything(session)
    snapshots.restore(level, level.player)
    assert level.session is session


def test_snapshot_is_not_aliased_with_live_session():
    level = FakeLevel()
    snapshots = SessionSnapshotManager()
    snapshots.capture(level.session)

    # Mutating the live containers after capture must not leak into the snapshot
    level.session.strawberries.add("1:7")
    snapshots.restore(level, level.player)
    assert level.session.strawberries == set()

    # ...nor must mutating what a restore handed out
    level.session.strawberries.add("1:9")
    snapshots.restore(level, level.player)
    assert level.session.strawberries == set()


def test_restore_teleports_to_snapshot_level_with_respawn():
    level = FakeLevel()
    snapshots = SessionSnapshotManager()
    snapshots.capture(level.session)
    assert snapshots.level == "1"

    level.session.level = "2"
    level.player.exact_position = (999.0, 999.0)
    snapshots.restore(level, level.player)

    assert level.teleports == [(level.player, "1", IntroType.RESPAWN)]
    assert level.player.exact_position == (16.0, 152.0)


def test_restore_without_snapshot_is_noop():
    level = FakeLevel()
    level.session.level = "2"
    assert not SessionSnapshotManager().restore(level, level.player)
    assert level.session.level == "2"
    assert level.teleports == []


def test_failed_capture_keeps_previous_snapshot():
    level = FakeLevel()
    snapshots = SessionSnapshotManager()
    snapshots.capture(level.session)

    assert not snapshots.capture(None)
    assert not snapshots.capture(object())
    assert snapshots.has_snapshot
    assert snapshots.level == "1"


def test_clear_discards_snapshot():
    level = FakeLevel()
    snapshots = SessionSnapshotManager()
    snapshots.capture(level.session)
    snapshots.clear()
    assert not snapshots.has_snapshot
    assert not snapshots.restore(level, FakePlayer())
