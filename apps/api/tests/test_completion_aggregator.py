"""Fan-in completion tests: idempotency, failure dominance and the stitch claim."""

from __future__ import annotations

from datetime import UTC, datetime
import threading
import unittest
from typing import Any

from clipsa.errors import MissingCorrelationId, UnknownUnitType
from clipsa.repositories.memory import InMemoryStore
from clipsa.schemas.generation import GenerationStatus, GenerationUnit, UnitType
from clipsa.schemas.job import DispatchReceipt
from clipsa.schemas.project import AudioStatus, ProjectStatus, Scene, SceneStatus
from clipsa.services.webhooks import (
    AggregationOutcome,
    CompletionAggregator,
    UnitNotification,
    normalize_status,
)


class _RecordingDispatcher:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.dispatched: list[tuple[str, dict[str, Any]]] = []
        self._error = error
        self._lock = threading.Lock()

    def dispatch(self, job_name: str, payload: dict[str, Any], *, delay: int | None = None) -> DispatchReceipt:
        if self._error is not None:
            raise self._error
        with self._lock:
            self.dispatched.append((job_name, payload))
            count = len(self.dispatched)
        return DispatchReceipt(message_id=f"msg-{count}", mode="relay")


def _video(project_id: str, scene_id: str, status: str = "OK", **extra: Any) -> UnitNotification:
    values: dict[str, Any] = {"output": {"video": {"url": f"https://cdn/{scene_id}.mp4"}}}
    values.update(extra)
    return UnitNotification(
        project_id=project_id,
        unit_type="video",
        scene_id=scene_id,
        request_id=f"req-{scene_id}",
        status=status,
        **values,
    )


def _audio(project_id: str, status: str = "OK") -> UnitNotification:
    return UnitNotification(
        project_id=project_id,
        unit_type="audio",
        request_id="req-audio",
        status=status,
        output={"audio": {"url": "https://cdn/audio.mp3"}},
    )


class _AggregatorCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore()
        self.dispatcher = _RecordingDispatcher()
        self.aggregator = CompletionAggregator(store=self.store, dispatcher=self.dispatcher)
        self.project = self.store.create_project(name="Demo", scenes=[Scene(id="s1"), Scene(id="s2")])
        self.store.transition_project_status(self.project.id, ProjectStatus.PROCESSING)
        for scene_id in ("s1", "s2"):
            self._insert(UnitType.VIDEO, f"req-{scene_id}", scene_id=scene_id)
        self._insert(UnitType.AUDIO, "req-audio")

    def _insert(self, unit_type: UnitType, request_id: str, *, scene_id: str | None = None) -> None:
        self.store.insert_generation(
            GenerationUnit(
                request_id=request_id,
                project_id=self.project.id,
                unit_type=unit_type,
                scene_id=scene_id,
                created_at=datetime.now(UTC),
            )
        )

    def _status(self) -> ProjectStatus:
        return self.store.get_project(self.project.id).status


class CompletionAggregatorTests(_AggregatorCase):
    def test_last_unit_claims_stitching_and_dispatches_once(self) -> None:
        self.assertEqual(self.aggregator.handle(_video(self.project.id, "s1")).outcome, AggregationOutcome.PENDING)
        self.assertEqual(self.aggregator.handle(_audio(self.project.id)).outcome, AggregationOutcome.PENDING)

        result = self.aggregator.handle(_video(self.project.id, "s2"))

        self.assertEqual(result.outcome, AggregationOutcome.STITCH_DISPATCHED)
        self.assertTrue(result.unit_applied)
        self.assertEqual(result.dispatch.message_id, "msg-1")
        self.assertEqual(self._status(), ProjectStatus.STITCHING)
        self.assertEqual(self.dispatcher.dispatched, [("stitch-video", {"projectId": self.project.id})])

    def test_replayed_notification_is_idempotent(self) -> None:
        for notification in (_video(self.project.id, "s1"), _video(self.project.id, "s2"), _audio(self.project.id)):
            self.aggregator.handle(notification)
        writes_before = self.store.generation_write_count

        replay = self.aggregator.handle(_video(self.project.id, "s2", status="ERROR"))

        self.assertFalse(replay.unit_applied)
        self.assertEqual(replay.outcome, AggregationOutcome.STITCH_SKIPPED)
        self.assertEqual(self.store.generation_write_count, writes_before)
        self.assertEqual(len(self.dispatcher.dispatched), 1)
        scene = next(s for s in self.store.get_project(self.project.id).scenes if s.id == "s2")
        self.assertEqual(scene.status, SceneStatus.SUCCEEDED)

    def test_scene_failure_dominates(self) -> None:
        failed = self.aggregator.handle(_video(self.project.id, "s1", status="ERROR", error={"detail": "nsfw"}))
        later = [
            self.aggregator.handle(_video(self.project.id, "s2")),
            self.aggregator.handle(_audio(self.project.id)),
        ]

        self.assertEqual(failed.outcome, AggregationOutcome.FAILED)
        self.assertEqual([r.outcome for r in later], [AggregationOutcome.FAILED, AggregationOutcome.FAILED])
        record = self.store.get_project(self.project.id)
        self.assertEqual(record.status, ProjectStatus.FAILED)
        self.assertEqual(record.error, "1 scene generation(s) failed")
        self.assertEqual(self.dispatcher.dispatched, [])

    def test_audio_failure_keeps_project_pending(self) -> None:
        self.aggregator.handle(_video(self.project.id, "s1"))
        self.aggregator.handle(_video(self.project.id, "s2"))

        result = self.aggregator.handle(_audio(self.project.id, status="ERROR"))

        self.assertEqual(result.outcome, AggregationOutcome.PENDING)
        self.assertEqual(self.store.get_project(self.project.id).audio_status, AudioStatus.FAILED)
        self.assertEqual(self._status(), ProjectStatus.PROCESSING)

    def test_succeeded_video_without_url_is_recorded_failed(self) -> None:
        result = self.aggregator.handle(_video(self.project.id, "s1", output={"images": []}))

        self.assertEqual(result.outcome, AggregationOutcome.FAILED)
        unit = self.store.find_generation(self.project.id, UnitType.VIDEO, GenerationStatus.FAILED)
        self.assertEqual(unit.request_id, "req-s1")
        self.assertEqual(unit.error["code"], "UNRESOLVED_ASSET")
        self.assertEqual(self._status(), ProjectStatus.FAILED)

    def test_image_output_is_kept_as_delivered(self) -> None:
        self._insert(UnitType.IMAGE, "req-image")

        result = self.aggregator.handle(
            UnitNotification(
                project_id=self.project.id,
                unit_type="image",
                request_id="req-image",
                status="OK",
                output={"images": [{"url": "https://cdn/i.png"}]},
            )
        )

        self.assertTrue(result.unit_applied)
        unit = self.store.find_generation(self.project.id, UnitType.IMAGE, GenerationStatus.SUCCEEDED)
        self.assertEqual(unit.output, {"images": [{"url": "https://cdn/i.png"}]})

    def test_aggregate_read_failure_is_pending_and_replay_recovers(self) -> None:
        self.aggregator.handle(_video(self.project.id, "s1"))
        self.aggregator.handle(_audio(self.project.id))
        self.store.aggregate_read_failure_message = "forced aggregate read failure"

        with self.assertLogs("clipsa.services.webhooks", level="ERROR"):
            first = self.aggregator.handle(_video(self.project.id, "s2"))
        replay = self.aggregator.handle(_video(self.project.id, "s2"))

        self.assertEqual(first.outcome, AggregationOutcome.PENDING)
        self.assertEqual(replay.outcome, AggregationOutcome.STITCH_DISPATCHED)
        self.assertFalse(replay.unit_applied)
        self.assertEqual(len(self.dispatcher.dispatched), 1)

    def test_unknown_request_id_is_dropped(self) -> None:
        notification = UnitNotification(
            project_id=self.project.id,
            unit_type="video",
            scene_id="s1",
            request_id="req-unknown",
            status="OK",
            output={"video": {"url": "https://cdn/x.mp4"}},
        )

        with self.assertLogs("clipsa.services.webhooks", level="WARNING") as logs:
            result = self.aggregator.handle(notification)

        self.assertEqual(result.outcome, AggregationOutcome.UNIT_MISSING)
        self.assertTrue(any("webhook.unit_missing" in line for line in logs.output))
        scene = next(s for s in self.store.get_project(self.project.id).scenes if s.id == "s1")
        self.assertEqual(scene.status, SceneStatus.PENDING)

    def test_non_terminal_status_is_ignored(self) -> None:
        result = self.aggregator.handle(_video(self.project.id, "s1", status="IN_PROGRESS"))

        self.assertEqual(result.outcome, AggregationOutcome.IGNORED)
        self.assertEqual(
            self.store.find_generations(self.project.id, UnitType.VIDEO, GenerationStatus.PENDING)[0].status,
            GenerationStatus.PENDING,
        )

    def test_missing_correlation_and_unknown_type_raise(self) -> None:
        with self.assertRaises(MissingCorrelationId):
            self.aggregator.handle(_video("", "s1"))
        with self.assertRaises(UnknownUnitType):
            self.aggregator.handle(
                UnitNotification(project_id=self.project.id, unit_type="music", request_id="r", status="OK")
            )

    def test_stitch_dispatch_failure_is_reported(self) -> None:
        aggregator = CompletionAggregator(
            store=self.store,
            dispatcher=_RecordingDispatcher(error=RuntimeError("relay down")),
        )
        aggregator.handle(_video(self.project.id, "s1"))
        aggregator.handle(_video(self.project.id, "s2"))

        with self.assertLogs("clipsa.services.webhooks", level="ERROR"):
            result = aggregator.handle(_audio(self.project.id))

        self.assertEqual(result.outcome, AggregationOutcome.DISPATCH_FAILED)
        self.assertEqual(self._status(), ProjectStatus.STITCHING)


class ConcurrentCompletionTests(_AggregatorCase):
    def _race(self, notifications: list[UnitNotification]) -> list[AggregationOutcome]:
        barrier = threading.Barrier(len(notifications))
        outcomes: list[AggregationOutcome] = []
        lock = threading.Lock()

        def deliver(notification: UnitNotification) -> None:
            barrier.wait()
            outcome = self.aggregator.handle(notification).outcome
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=deliver, args=(n,)) for n in notifications]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)
        return outcomes

    def test_two_final_units_dispatch_exactly_one_stitch(self) -> None:
        self.aggregator.handle(_video(self.project.id, "s1"))

        outcomes = self._race([_video(self.project.id, "s2"), _audio(self.project.id)])

        self.assertEqual(len(outcomes), 2)
        self.assertEqual(len(self.dispatcher.dispatched), 1)
        self.assertEqual(outcomes.count(AggregationOutcome.STITCH_DISPATCHED), 1)
        self.assertEqual(self._status(), ProjectStatus.STITCHING)

    def test_duplicate_final_deliveries_dispatch_exactly_one_stitch(self) -> None:
        self.aggregator.handle(_video(self.project.id, "s1"))
        self.aggregator.handle(_audio(self.project.id))

        outcomes = self._race([_video(self.project.id, "s2") for _ in range(4)])

        self.assertEqual(outcomes.count(AggregationOutcome.STITCH_DISPATCHED), 1)
        self.assertEqual(outcomes.count(AggregationOutcome.STITCH_SKIPPED), 3)
        self.assertEqual(len(self.dispatcher.dispatched), 1)


class NormalizeStatusTests(unittest.TestCase):
    def test_provider_vocabulary(self) -> None:
        self.assertEqual(normalize_status("OK"), "succeeded")
        self.assertEqual(normalize_status("COMPLETED"), "succeeded")
        self.assertEqual(normalize_status("ERROR"), "failed")
        self.assertEqual(normalize_status("IN_QUEUE"), "IN_QUEUE")
        self.assertEqual(normalize_status(None), "")


if __name__ == "__main__":
    unittest.main()
