# tests/unit/test_delivery.py
from __future__ import annotations

from pathlib import Path

import pytest

from mediasend.schemas.models import AcquisitionResult
from mediasend.tools.delivery import (
    HANDOFF_FLAGS,
    MULTI_MIME,
    DelayedTask,
    build_payload,
    delete_files,
    schedule_cleanup,
)
from tests.utils import ManualScheduler, make_policy


def _result(path: Path, mime: str = "image/png") -> AcquisitionResult:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x")
    return AcquisitionResult(local_path=path, mime=mime, downloaded=True, kind="bytes")


def test_single_item_payload(tmp_path: Path) -> None:
    policy = make_policy(tmp_path, target_package="org.example.chat")
    res = _result(tmp_path / "a.png")

    payload = build_payload(777, [res], multiple=False, policy=policy)
    assert payload.action == "send"
    assert payload.mime_type == "image/png"
    assert payload.package == "org.example.chat"
    assert payload.uris == [res.local_path.resolve().as_uri()]
    assert payload.channel_id == 777
    assert payload.extras == {"key_id": 777, "key_type": 1, "key_from_direct_share": True}
    assert payload.flags == list(HANDOFF_FLAGS)


def test_batch_payload_uses_multi_action(tmp_path: Path) -> None:
    results = [_result(tmp_path / "a.png"), _result(tmp_path / "b.mp4", "video/mp4")]
    payload = build_payload(1, results, multiple=True)
    assert payload.action == "send_multiple"
    assert payload.mime_type == MULTI_MIME
    assert len(payload.uris) == 2


def test_single_text_item_goes_through_multi_action(tmp_path: Path) -> None:
    payload = build_payload(1, [_result(tmp_path / "n.txt", "text/plain")], multiple=False)
    assert payload.action == "send_multiple"
    assert payload.mime_type == MULTI_MIME


def test_batch_of_one_is_still_multi(tmp_path: Path) -> None:
    payload = build_payload(1, [_result(tmp_path / "a.png")], multiple=True)
    assert payload.action == "send_multiple"


def test_empty_results_rejected() -> None:
    with pytest.raises(ValueError):
        build_payload(1, [], multiple=False)


def test_schedule_cleanup_with_manual_scheduler(tmp_path: Path) -> None:
    a, b = tmp_path / "a.bin", tmp_path / "b.bin"
    a.write_bytes(b"1")
    b.write_bytes(b"2")

    sched = ManualScheduler()
    schedule_cleanup([a, b], 60.0, scheduler=sched)
    assert [d for d, _ in sched.scheduled] == [60.0]
    assert a.exists() and b.exists()

    sched.run_all()
    assert not a.exists() and not b.exists()


def test_schedule_cleanup_nothing_to_do() -> None:
    assert schedule_cleanup([], 1.0) is None


def test_delete_files_tolerates_missing(tmp_path: Path) -> None:
    present = tmp_path / "p"
    present.write_bytes(b"1")
    assert delete_files([present, tmp_path / "missing"]) == 1


def test_delayed_task_fires_and_can_be_cancelled(tmp_path: Path) -> None:
    fired: list[str] = []

    task = DelayedTask(0.01, lambda: fired.append("ran")).start()
    task.join(2.0)
    assert fired == ["ran"]
    assert task.finished

    cancelled = DelayedTask(30.0, lambda: fired.append("late")).start()
    cancelled.cancel()
    cancelled.join(2.0)
    assert fired == ["ran"]


def test_real_timer_cleanup(tmp_path: Path) -> None:
    f = tmp_path / "t.bin"
    f.write_bytes(b"1")
    task = schedule_cleanup([f], 0.01)
    assert isinstance(task, DelayedTask)
    task.join(2.0)
    assert not f.exists()
