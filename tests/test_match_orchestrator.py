from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from conftest import FakeMetadataTool, FakeTrackReader, make_photos
from core.interval_matcher import IntervalMatcher
from core.models import (
    DriftKind,
    DriftSpec,
    FolderStatus,
    PhotoFolder,
    PoolOrder,
    Track,
    TrackSource,
)
from core.rules.retag import RetagPolicy
from core.services.copy_on_match import CopyOnMatch
from core.services.match_orchestrator import MatchOrchestrator
from core.services.sort_service import TrackSortService
from core.shift_planner import ShiftPlanner

START = datetime(2024, 6, 1, 9, 0, 0)
FOLDER = Path("/photos/day1")


def span(hours_from, hours_to):
    base = START.replace(tzinfo=timezone.utc)
    return (base + timedelta(hours=hours_from), base + timedelta(hours=hours_to))


@pytest.fixture
def plan():
    # timestamps already in UTC wall clock, per-file offset ignored
    return ShiftPlanner().plan(0, 0, rewrite=True, match_offset=0)


def build(tool, plan, pool=(), local_spans=None, **kwargs):
    return MatchOrchestrator(
        tool,
        FakeTrackReader(local_spans),
        plan,
        matcher=kwargs.pop("matcher", IntervalMatcher(0)),
        pool=pool,
        **kwargs,
    )


def ten_photos_four_missing():
    paths, tags = make_photos(FOLDER, 10, START)
    tool = FakeMetadataTool(tags=tags, gps=set(paths[:6]))
    return paths, tool


def test_scenario_stops_after_last_missing_file(plan):
    paths, tool = ten_photos_four_missing()
    missing = paths[6:]
    tool.effects = {"A.gpx": set(missing[:3]), "B.gpx": {missing[3]}, "C.gpx": set(paths)}
    pool = [Track(Path(f"/pool/{n}.gpx"), span(0, 1)) for n in "ABC"]

    result = build(tool, plan, pool).process_folder(PhotoFolder(FOLDER, tuple(paths)))

    assert [a.updated_count for a in result.attempts] == [3, 1]
    assert [c.track.name for c in tool.geotag_calls] == ["A.gpx", "B.gpx"]
    assert result.missing_final == 0
    assert result.status is FolderStatus.COMPLETE
    # one scan before the first attempt plus one after each attempt
    assert tool.missing_calls == 3


def test_missing_policy_never_targets_files_with_gps(plan):
    paths, tool = ten_photos_four_missing()
    tool.effects = {"A.gpx": set(paths)}
    pool = [Track(Path("/pool/A.gpx"), span(0, 1))]

    build(tool, plan, pool, retag=RetagPolicy.MISSING).process_folder(
        PhotoFolder(FOLDER, tuple(paths))
    )

    (call,) = tool.geotag_calls
    assert call.only_if_missing is True
    assert set(call.files) == set(paths[6:])
    assert not set(call.files) & set(paths[:6])


def test_overwrite_policy_targets_every_file(plan):
    paths, tool = ten_photos_four_missing()
    local = FOLDER / "walk.gpx"

    result = build(tool, plan, retag=RetagPolicy.OVERWRITE).process_folder(
        PhotoFolder(FOLDER, tuple(paths), (local,))
    )

    (call,) = tool.geotag_calls
    assert call.only_if_missing is False
    assert call.files == paths
    assert result.attempts[0].source is TrackSource.LOCAL


def test_overwrite_policy_skips_pool_when_nothing_missing(plan):
    paths, tags = make_photos(FOLDER, 3, START)
    tool = FakeMetadataTool(tags=tags, gps=set(paths))
    pool = [Track(Path("/pool/A.gpx"), span(0, 1))]

    result = build(tool, plan, pool, retag=RetagPolicy.OVERWRITE).process_folder(
        PhotoFolder(FOLDER, tuple(paths))
    )

    assert tool.geotag_calls == []
    assert result.status is FolderStatus.EMPTY


def test_all_local_tracks_applied_before_pool(plan):
    paths, tags = make_photos(FOLDER, 4, START)
    tool = FakeMetadataTool(tags=tags)
    tool.effects = {"a.gpx": {paths[0]}, "b.gpx": {paths[1]}, "P.gpx": set(paths)}
    local = (FOLDER / "b.gpx", FOLDER / "a.gpx")
    pool = [Track(Path("/pool/P.gpx"), span(0, 1))]

    result = build(tool, plan, pool).process_folder(PhotoFolder(FOLDER, tuple(paths), local))

    assert [c.track.name for c in tool.geotag_calls] == ["a.gpx", "b.gpx", "P.gpx"]
    assert [a.source for a in result.attempts] == [
        TrackSource.LOCAL,
        TrackSource.LOCAL,
        TrackSource.POOL,
    ]
    assert [a.updated_count for a in result.attempts] == [1, 1, 2]


def test_pool_not_tried_when_local_tracks_tag_everything(plan):
    paths, tags = make_photos(FOLDER, 3, START)
    tool = FakeMetadataTool(tags=tags, effects={"local.gpx": set(paths)})
    pool = [Track(Path("/pool/P.gpx"), span(0, 1))]

    build(tool, plan, pool).process_folder(
        PhotoFolder(FOLDER, tuple(paths), (FOLDER / "local.gpx",))
    )

    assert [c.track.name for c in tool.geotag_calls] == ["local.gpx"]


def test_pool_tracks_tried_in_case_sensitive_name_order(plan):
    paths, tags = make_photos(FOLDER, 2, START)
    tool = FakeMetadataTool(tags=tags)
    pool = [Track(Path(f"/pool/{n}"), span(0, 1)) for n in ["b.gpx", "B.gpx", "a.gpx", "A.gpx"]]

    build(tool, plan, pool).process_folder(PhotoFolder(FOLDER, tuple(paths)))

    assert [c.track.name for c in tool.geotag_calls] == ["A.gpx", "B.gpx", "a.gpx", "b.gpx"]


def test_proximity_order_prefers_closest_track(plan):
    paths, tags = make_photos(FOLDER, 2, START)
    tool = FakeMetadataTool(tags=tags)
    pool = [
        Track(Path("/pool/far.gpx"), span(-5, -1)),
        Track(Path("/pool/near.gpx"), span(0, 3)),
    ]

    build(
        tool,
        plan,
        pool,
        matcher=IntervalMatcher(6 * 3600),
        sorter=TrackSortService(PoolOrder.PROXIMITY),
    ).process_folder(PhotoFolder(FOLDER, tuple(paths)))

    assert [c.track.name for c in tool.geotag_calls] == ["near.gpx", "far.gpx"]


def test_non_overlapping_pool_track_is_not_tried(plan):
    paths, tags = make_photos(FOLDER, 2, START)
    tool = FakeMetadataTool(tags=tags, effects={"late.gpx": set(paths)})
    pool = [
        Track(Path("/pool/late.gpx"), span(5, 6)),
        Track(Path("/pool/unknown.gpx"), None),
    ]

    result = build(tool, plan, pool).process_folder(PhotoFolder(FOLDER, tuple(paths)))

    # span-less tracks are tried anyway
    assert [c.track.name for c in tool.geotag_calls] == ["unknown.gpx"]
    assert result.status is FolderStatus.PARTIAL


def test_extension_admits_nearby_track(plan):
    paths, tags = make_photos(FOLDER, 2, START)
    tool = FakeMetadataTool(tags=tags, effects={"late.gpx": set(paths)})
    pool = [Track(Path("/pool/late.gpx"), span(1, 2))]

    result = build(tool, plan, pool, matcher=IntervalMatcher(3600)).process_folder(
        PhotoFolder(FOLDER, tuple(paths))
    )

    assert result.updated_count == 2


def test_tool_failure_on_one_track_does_not_stop_the_folder(plan):
    paths, tags = make_photos(FOLDER, 2, START)
    tool = FakeMetadataTool(
        tags=tags, effects={"B.gpx": set(paths)}, failing_tracks={"A.gpx"}
    )
    pool = [Track(Path(f"/pool/{n}.gpx"), span(0, 1)) for n in "AB"]

    result = build(tool, plan, pool).process_folder(PhotoFolder(FOLDER, tuple(paths)))

    assert [a.error is not None for a in result.attempts] == [True, False]
    assert [a.updated_count for a in result.attempts] == [0, 2]
    assert result.status is FolderStatus.COMPLETE


def test_read_failure_marks_folder_failed(plan):
    paths, tags = make_photos(FOLDER, 2, START)
    tool = FakeMetadataTool(tags=tags, fail_reads=True)

    result = build(tool, plan).process_folder(PhotoFolder(FOLDER, tuple(paths)))

    assert result.status is FolderStatus.FAILED
    assert tool.geotag_calls == []


def test_no_tracks_available_is_not_an_error(plan):
    paths, tags = make_photos(FOLDER, 2, START)
    tool = FakeMetadataTool(tags=tags)

    result = build(tool, plan).process_folder(PhotoFolder(FOLDER, tuple(paths)))

    assert result.status is FolderStatus.NO_TRACKS
    assert result.error is None
    assert result.missing_final == 2


def test_files_without_zone_are_skipped():
    plan = ShiftPlanner().plan(0, 0, rewrite=True, match_offset=None)
    paths, tags = make_photos(FOLDER, 3, START, offset=None)
    tool = FakeMetadataTool(tags=tags)

    result = build(tool, plan, [Track(Path("/pool/A.gpx"), span(0, 1))]).process_folder(
        PhotoFolder(FOLDER, tuple(paths))
    )

    assert result.skipped_files == paths
    assert tool.geotag_calls == []


def test_sync_delta_passed_only_when_timestamps_untouched():
    drift = DriftSpec(DriftKind.AHEAD, 180)
    untouched = ShiftPlanner().plan(3 * 3600, 5 * 3600, drift, rewrite=False, match_offset=0)
    rewritten = ShiftPlanner().plan(3 * 3600, 5 * 3600, drift, rewrite=True, match_offset=0)
    pool = [Track(Path("/pool/A.gpx"), None)]

    for plan, expected in [(untouched, timedelta(hours=2, minutes=57)), (rewritten, timedelta(0))]:
        paths, tags = make_photos(FOLDER, 1, START)
        tool = FakeMetadataTool(tags=tags)
        build(tool, plan, pool).process_folder(PhotoFolder(FOLDER, tuple(paths)))
        assert tool.geotag_calls[0].sync_delta == expected
        assert tool.geotag_calls[0].offset == 0


def test_matched_pool_track_is_copied(plan, tmp_path):
    folder = tmp_path / "day1"
    folder.mkdir()
    pool_dir = tmp_path / "pool"
    pool_dir.mkdir()
    (pool_dir / "A.gpx").write_text("<gpx/>", encoding="utf-8")
    (pool_dir / "Z.gpx").write_text("<gpx/>", encoding="utf-8")
    paths, tags = make_photos(folder, 2, START)
    tool = FakeMetadataTool(tags=tags, effects={"Z.gpx": set(paths)})
    pool = [Track(pool_dir / "A.gpx", span(0, 1)), Track(pool_dir / "Z.gpx", span(0, 1))]

    result = build(tool, plan, pool, copier=CopyOnMatch(enabled=True)).process_folder(
        PhotoFolder(folder, tuple(paths))
    )

    assert result.copied == [folder / "Z.gpx"]
    assert result.attempts[1].copied_to == folder / "Z.gpx"
    assert not (folder / "A.gpx").exists()
