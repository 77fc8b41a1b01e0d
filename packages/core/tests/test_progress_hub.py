from __future__ import annotations

import json
from pathlib import Path

from citecheck_core.progress import ProgressFileWriter, ProgressHub
from citecheck_core.types import ProgressEvent


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_late_subscriber_starts_from_latest_event() -> None:
    hub = ProgressHub()
    hub.open_run("r1")
    hub.publish("r1", ProgressEvent(run_id="r1", current_index=1, total_references=3))
    hub.publish("r1", ProgressEvent(run_id="r1", current_index=2, total_references=3))

    subscription = hub.subscribe("r1")

    first = subscription.get(timeout=0.1)
    assert first is not None
    assert first.current_index == 2
    assert subscription.get(timeout=0.01) is None


def test_publish_fans_out_to_every_subscriber() -> None:
    hub = ProgressHub()
    left = hub.subscribe("r1")
    right = hub.subscribe("r1")
    other = hub.subscribe("r2")

    hub.publish("r1", ProgressEvent(run_id="r1", current_reference="Paper A"))

    assert left.get(timeout=0.1).current_reference == "Paper A"
    assert right.get(timeout=0.1).current_reference == "Paper A"
    assert other.get(timeout=0.01) is None


def test_channel_closes_after_grace_period_without_subscribers() -> None:
    clock = FakeClock()
    hub = ProgressHub(grace_seconds=30, clock=clock)
    subscription = hub.subscribe("r1")
    hub.unsubscribe(subscription)

    clock.now += 29
    assert hub.reap() == []
    assert hub.has_run("r1")

    clock.now += 2
    assert hub.reap() == ["r1"]
    assert not hub.has_run("r1")


def test_resubscribing_cancels_expiry() -> None:
    clock = FakeClock()
    hub = ProgressHub(grace_seconds=5, clock=clock)
    hub.unsubscribe(hub.subscribe("r1"))
    hub.subscribe("r1")

    clock.now += 60

    assert hub.reap() == []
    assert hub.active_runs() == ["r1"]


def test_finished_run_without_listeners_expires() -> None:
    clock = FakeClock()
    hub = ProgressHub(grace_seconds=10, clock=clock)
    hub.open_run("r1")
    publish = hub.callback("r1")

    publish(ProgressEvent(run_id="r1", status="processing"))
    clock.now += 60
    assert hub.reap() == []

    publish(ProgressEvent(run_id="r1", status="completed"))
    clock.now += 11
    assert hub.reap() == ["r1"]


def test_progress_file_writer(tmp_path: Path) -> None:
    path = tmp_path / "progress" / "run.json"
    writer = ProgressFileWriter(path)

    writer(ProgressEvent(run_id="r1", current_reference="Paper A", current_index=1, total_references=2))
    writer(ProgressEvent(run_id="r1", current_index=2, total_references=2, status="completed"))

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["currentIndex"] == 2
    assert payload["totalReferences"] == 2
    assert payload["status"] == "completed"
    assert not path.with_name("run.json.tmp").exists()
