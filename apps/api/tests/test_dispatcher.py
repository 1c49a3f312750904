"""Dispatcher relay/local fallback tests."""

from __future__ import annotations

import threading
import unittest
from typing import Any

from clipsa.adapters.relay.base import JobRelay
from clipsa.core.config import Settings
from clipsa.errors import JobNotFound
from clipsa.jobs.dispatcher import LOCAL_MESSAGE_ID, Dispatcher
from clipsa.jobs.registry import JobRegistry


class _RecordingRelay(JobRelay):
    def __init__(self, *, uses_loopback: bool = False) -> None:
        self.published: list[tuple[str, dict[str, Any], int | None]] = []
        self._uses_loopback = uses_loopback

    @property
    def uses_loopback(self) -> bool:
        return self._uses_loopback

    def publish_json(self, *, url: str, body: dict[str, Any], delay: int | None = None) -> str:
        self.published.append((url, body, delay))
        return f"msg-{len(self.published)}"


def _settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {"app_url": None, "public_app_url": None, "vercel_url": None, "deployment_url": None}
    values.update(overrides)
    return Settings(**values)


class DispatcherLocalFallbackTests(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = JobRegistry()
        self.calls: list[dict[str, Any]] = []
        self.registry.register("record", self.calls.append)

    def _dispatcher(self, settings: Settings, relay: JobRelay | None = None) -> Dispatcher:
        dispatcher = Dispatcher(registry=self.registry, settings=settings, relay=relay)
        self.addCleanup(dispatcher.shutdown)
        return dispatcher

    def test_without_relay_runs_handler_in_process(self) -> None:
        dispatcher = self._dispatcher(_settings(app_url="https://clipsa.example.com"))

        receipt = dispatcher.dispatch("record", {"projectId": "p1"})

        self.assertTrue(dispatcher.join(timeout=5))
        self.assertEqual(receipt.mode, "local")
        self.assertEqual(receipt.message_id, LOCAL_MESSAGE_ID)
        self.assertEqual(self.calls, [{"projectId": "p1"}])

    def test_loopback_destination_falls_back_when_relay_is_remote(self) -> None:
        relay = _RecordingRelay(uses_loopback=False)
        dispatcher = self._dispatcher(_settings(app_url="http://localhost:3000"), relay)

        receipt = dispatcher.dispatch("record", {"n": 1})

        self.assertTrue(dispatcher.join(timeout=5))
        self.assertEqual(receipt.mode, "local")
        self.assertEqual(relay.published, [])
        self.assertEqual(self.calls, [{"n": 1}])

    def test_loopback_destination_uses_local_relay(self) -> None:
        relay = _RecordingRelay(uses_loopback=True)
        dispatcher = self._dispatcher(_settings(app_url="http://127.0.0.1:3000"), relay)

        receipt = dispatcher.dispatch("record", {"n": 1})

        self.assertEqual(receipt.mode, "relay")
        self.assertEqual(relay.published[0][0], "http://127.0.0.1:3000/api/jobs")
        self.assertEqual(self.calls, [])

    def test_unknown_job_raises_before_scheduling(self) -> None:
        dispatcher = self._dispatcher(_settings())

        with self.assertRaises(JobNotFound):
            dispatcher.dispatch("no-such-job", {})

    def test_handler_failure_is_logged_not_raised(self) -> None:
        def explode(payload: dict[str, Any]) -> None:
            raise RuntimeError("boom")

        self.registry.register("explode", explode)
        dispatcher = self._dispatcher(_settings())

        with self.assertLogs("clipsa.jobs.dispatcher", level="ERROR") as logs:
            receipt = dispatcher.dispatch("explode", {})
            self.assertTrue(dispatcher.join(timeout=5))

        self.assertEqual(receipt.mode, "local")
        self.assertTrue(any("job.local_failed job_name=explode" in line for line in logs.output))

    def test_dispatch_returns_before_handler_finishes(self) -> None:
        release = threading.Event()
        started = threading.Event()

        def slow(payload: dict[str, Any]) -> None:
            started.set()
            release.wait(timeout=5)

        self.registry.register("slow", slow)
        dispatcher = self._dispatcher(_settings())

        receipt = dispatcher.dispatch("slow", {})

        self.assertEqual(receipt.mode, "local")
        self.assertFalse(dispatcher.join(timeout=0.05))
        self.assertTrue(started.wait(timeout=5))
        release.set()
        self.assertTrue(dispatcher.join(timeout=5))

    def test_local_payload_is_copied(self) -> None:
        dispatcher = self._dispatcher(_settings())
        payload = {"scenes": [{"id": "s1"}]}

        dispatcher.dispatch("record", payload)
        payload["scenes"].append({"id": "late"})

        self.assertTrue(dispatcher.join(timeout=5))
        self.assertEqual(self.calls, [{"scenes": [{"id": "s1"}]}])


class DispatcherRelayTests(unittest.TestCase):
    def test_publishes_envelope_to_public_jobs_endpoint(self) -> None:
        registry = JobRegistry()
        relay = _RecordingRelay()
        dispatcher = Dispatcher(
            registry=registry,
            settings=_settings(app_url="https://clipsa.example.com/"),
            relay=relay,
        )
        self.addCleanup(dispatcher.shutdown)

        receipt = dispatcher.dispatch("stitch-video", {"projectId": "p1"}, delay=30)

        self.assertEqual(receipt.mode, "relay")
        self.assertEqual(receipt.message_id, "msg-1")
        self.assertEqual(
            relay.published,
            [
                (
                    "https://clipsa.example.com/api/jobs",
                    {"jobName": "stitch-video", "payload": {"projectId": "p1"}},
                    30,
                )
            ],
        )

    def test_fallback_reason_names_the_missing_piece(self) -> None:
        dispatcher = Dispatcher(registry=JobRegistry(), settings=_settings())
        self.addCleanup(dispatcher.shutdown)

        self.assertEqual(dispatcher.local_fallback_reason("https://x.example/api/jobs"), "relay not configured")
        self.assertEqual(dispatcher.destination_url(), "http://localhost:3000/api/jobs")


class SettingsUrlTests(unittest.TestCase):
    def test_public_base_url_precedence(self) -> None:
        self.assertEqual(_settings(vercel_url="clipsa.vercel.app").public_base_url, "https://clipsa.vercel.app")
        self.assertEqual(
            _settings(public_app_url="https://public.example/", vercel_url="clipsa.vercel.app").public_base_url,
            "https://public.example",
        )
        self.assertEqual(
            _settings(app_url="https://app.example", public_app_url="https://public.example").public_base_url,
            "https://app.example",
        )
        self.assertEqual(_settings().public_base_url, "http://localhost:3000")

    def test_relay_loopback_detection(self) -> None:
        self.assertFalse(_settings(qstash_token="token").relay_uses_loopback)
        self.assertTrue(_settings(qstash_token="token", qstash_local=True).relay_uses_loopback)
        self.assertTrue(_settings(qstash_token="token", qstash_url="http://127.0.0.1:8080").relay_uses_loopback)
        self.assertEqual(_settings(qstash_local=True).relay_base_url, "http://127.0.0.1:8080")


if __name__ == "__main__":
    unittest.main()
