from __future__ import annotations

from types import SimpleNamespace
import unittest
from unittest import mock

from intervallog.clock import FakeClock
from intervallog.config import AppConfig
from intervallog.tests.test_helpers import local_time, local_tmp_dir


def completed(returncode: int = 0, stderr: str = "") -> SimpleNamespace:
    return SimpleNamespace(returncode=returncode, stdout="", stderr=stderr)


class TestAPI(unittest.TestCase):
    def setUp(self) -> None:
        try:
            from fastapi.testclient import TestClient  # noqa: F401
            from intervallog.api.app import create_app  # noqa: F401
        except Exception as exc:  # pragma: no cover
            self.skipTest(f"fastapi test client unavailable: {exc}")

    def make_client(self, tmp, push: bool = False):
        from fastapi.testclient import TestClient

        from intervallog.api.app import create_app
        from intervallog.api.timer_service import TimerService

        clock = FakeClock(start=local_time(2026, 2, 13, 9, 0))
        service = TimerService(clock=clock, autorun=False, dispatch=lambda action: action())
        config = AppConfig(
            sessions_root=tmp / "work_sessions",
            repo_root=tmp,
            notify=False,
            muted=True,
            push=push,
        )
        return TestClient(create_app(config=config, service=service)), service, clock

    def test_health_meta_folders_and_openapi(self) -> None:
        with local_tmp_dir() as tmp:
            client, _, _ = self.make_client(tmp)

            health = client.get("/api/v1/health")
            self.assertEqual(health.status_code, 200)
            self.assertEqual(health.json(), {"status": "ok", "timer": "idle"})

            meta = client.get("/api/v1/meta")
            self.assertEqual(meta.status_code, 200)
            self.assertEqual(meta.json()["sessions_root"], str(tmp / "work_sessions"))

            created = client.post("/api/v1/folders", json={"name": "client work"})
            self.assertEqual(created.status_code, 200)
            self.assertEqual(created.json()["folder"], "client_work")

            folders = client.get("/api/v1/folders")
            self.assertEqual(folders.json()["folders"], ["client_work"])

            count = client.get("/api/v1/sessions", params={"folder": "client_work"})
            self.assertEqual(count.json()["count"], 0)

            schema = client.get("/openapi.json")
            self.assertEqual(schema.status_code, 200)
            paths = schema.json().get("paths", {})
            self.assertIn("/api/v1/timer/start", paths)
            self.assertIn("/api/v1/timer/stream", paths)
            self.assertIn("/api/v1/publish", paths)

    def test_session_file_endpoint_validates_paths(self) -> None:
        with local_tmp_dir() as tmp:
            client, _, _ = self.make_client(tmp)

            saved = client.post(
                "/api/v1/sessions",
                json={"folder": "alpha", "file_name": "session_1_2026-02-13.md", "content": "# Work Session #1\n"},
            )
            self.assertEqual(saved.status_code, 200)
            self.assertTrue((tmp / "work_sessions" / "alpha" / "session_1_2026-02-13.md").exists())

            rejected = client.post(
                "/api/v1/sessions",
                json={"folder": "..", "file_name": "x.md", "content": "x"},
            )
            self.assertEqual(rejected.status_code, 400)

    def test_timer_session_lifecycle(self) -> None:
        with local_tmp_dir() as tmp:
            client, service, clock = self.make_client(tmp)

            early = client.post("/api/v1/timer/log", json={"content": "nothing open"})
            self.assertEqual(early.status_code, 409)

            started = client.post(
                "/api/v1/timer/start",
                json={"task_title": "Write report", "folder": "alpha", "description": "Draft"},
            )
            self.assertEqual(started.status_code, 200)
            self.assertEqual(started.json()["status"], "running")
            self.assertEqual(started.json()["session"]["session_number"], 1)

            again = client.post("/api/v1/timer/start", json={"task_title": "Other", "folder": "alpha"})
            self.assertEqual(again.status_code, 409)

            clock.set(900)
            service.pump()
            state = client.get("/api/v1/timer/state").json()
            self.assertEqual(state["status"], "capturing")
            self.assertEqual(state["report"]["capture_remaining_sec"], 50)
            self.assertEqual(state["banner"]["title"], "15 Minutes Complete!")

            clock.set(930)
            logged = client.post("/api/v1/timer/log", json={"content": "Outlined sections"})
            self.assertEqual(logged.status_code, 200)
            self.assertEqual(logged.json()["interval"], 1)

            state = client.get("/api/v1/timer/state").json()
            self.assertEqual(state["status"], "running")
            self.assertEqual(state["report"]["interval"], 2)
            self.assertIsNone(state["banner"])
            self.assertEqual(len(state["logs"]), 1)

            clock.set(1000)
            with mock.patch("intervallog.publish.subprocess.run", return_value=completed()) as run:
                ended = client.post("/api/v1/timer/end")

            self.assertEqual(ended.status_code, 200)
            body = ended.json()
            self.assertEqual(body["status"], "saved")
            self.assertEqual(body["detail"], "Committed locally")
            self.assertEqual(run.call_count, 2)
            report = tmp / "work_sessions" / "alpha" / "session_1_2026-02-13.md"
            self.assertIn("Outlined sections", report.read_text(encoding="utf-8"))

            health = client.get("/api/v1/health").json()
            self.assertEqual(health["timer"], "saved")

    def test_failed_push_can_be_retried(self) -> None:
        with local_tmp_dir() as tmp:
            client, _, clock = self.make_client(tmp, push=True)
            client.post("/api/v1/timer/start", json={"task_title": "Write report", "folder": "alpha"})
            clock.set(60)

            with mock.patch(
                "intervallog.publish.subprocess.run",
                side_effect=[completed(), completed(), completed(1, stderr="fatal: offline")],
            ):
                ended = client.post("/api/v1/timer/end")

            self.assertEqual(ended.json()["status"], "error")
            self.assertEqual(ended.json()["outcome"]["stage"], "pushing")

            blocked = client.post("/api/v1/timer/start", json={"task_title": "Next", "folder": "alpha"})
            self.assertEqual(blocked.status_code, 409)

            with mock.patch("intervallog.publish.subprocess.run", return_value=completed()):
                retried = client.post("/api/v1/timer/retry")
            self.assertEqual(retried.json()["status"], "saved")
            self.assertEqual(retried.json()["detail"], "Successfully pushed")

            self.assertEqual(client.post("/api/v1/timer/retry").status_code, 409)

    def test_discard_unsaved_session(self) -> None:
        with local_tmp_dir() as tmp:
            client, _, _ = self.make_client(tmp, push=True)
            client.post("/api/v1/timer/start", json={"task_title": "Write report", "folder": "alpha"})

            with mock.patch(
                "intervallog.publish.subprocess.run",
                side_effect=[completed(1, stderr="fatal: not a git repository")],
            ):
                ended = client.post("/api/v1/timer/end")
            self.assertEqual(ended.json()["outcome"]["stage"], "pushing")

            discarded = client.post("/api/v1/timer/discard")
            self.assertEqual(discarded.json()["status"], "idle")

            restarted = client.post("/api/v1/timer/start", json={"task_title": "Next", "folder": "alpha"})
            self.assertEqual(restarted.status_code, 200)
            self.assertEqual(restarted.json()["session"]["session_number"], 2)

    def test_rejected_report_leaves_error_state(self) -> None:
        from intervallog.errors import ValidationError

        with local_tmp_dir() as tmp:
            client, _, _ = self.make_client(tmp)
            client.post("/api/v1/timer/start", json={"task_title": "Write report", "folder": "alpha"})

            with mock.patch(
                "intervallog.storage.SessionStore.write_session_file",
                side_effect=ValidationError("File name is required"),
            ):
                with self.assertLogs("intervallog.api.timer_service", level="ERROR"):
                    ended = client.post("/api/v1/timer/end")

            body = ended.json()
            self.assertEqual(body["status"], "error")
            self.assertEqual(body["detail"], "File name is required")
            self.assertEqual(body["outcome"]["stage"], "saving")

            discarded = client.post("/api/v1/timer/discard")
            self.assertEqual(discarded.json()["status"], "idle")

    def test_start_validation(self) -> None:
        with local_tmp_dir() as tmp:
            client, _, _ = self.make_client(tmp)

            missing = client.post("/api/v1/timer/start", json={"task_title": "", "folder": "alpha"})
            self.assertEqual(missing.status_code, 422)

            blank = client.post("/api/v1/timer/start", json={"task_title": "   ", "folder": "alpha"})
            self.assertEqual(blank.status_code, 400)
            self.assertEqual(blank.json()["error"], "Task title is required")

    def test_closing_window_saves_open_session(self) -> None:
        from intervallog.desktop.main import finish_open_session

        with local_tmp_dir() as tmp:
            client, service, clock = self.make_client(tmp)
            self.assertEqual(finish_open_session(service), "idle")

            client.post("/api/v1/timer/start", json={"task_title": "Write report", "folder": "alpha"})
            clock.set(120)
            with mock.patch("intervallog.publish.subprocess.run", return_value=completed()):
                status = finish_open_session(service)

            self.assertEqual(status, "saved")
            self.assertTrue((tmp / "work_sessions" / "alpha" / "session_1_2026-02-13.md").exists())

    def test_failed_save_on_close_keeps_window_open_once(self) -> None:
        from intervallog.desktop.main import allow_close

        with local_tmp_dir() as tmp:
            client, service, clock = self.make_client(tmp, push=True)
            client.post("/api/v1/timer/start", json={"task_title": "Write report", "folder": "alpha"})
            clock.set(120)

            with mock.patch(
                "intervallog.publish.subprocess.run",
                side_effect=[completed(), completed(), completed(1, stderr="fatal: offline")],
            ):
                with self.assertLogs("intervallog.desktop.main", level="ERROR") as logs:
                    with mock.patch("builtins.print"):
                        self.assertFalse(allow_close(service))

            message = "\n".join(logs.output)
            self.assertIn("pushing failed", message)
            self.assertIn(str(tmp / "work_sessions" / "alpha"), message)
            self.assertEqual(service.state().status, "error")

            with self.assertLogs("intervallog.desktop.main", level="WARNING"):
                self.assertTrue(allow_close(service))

    def test_volume_and_test_alert(self) -> None:
        with local_tmp_dir() as tmp:
            client, _, _ = self.make_client(tmp)

            volume = client.post("/api/v1/timer/volume", json={"volume": 0.4})
            self.assertEqual(volume.json(), {"volume": 0.4, "muted": False})

            muted = client.post("/api/v1/timer/volume", json={"muted": True})
            self.assertTrue(muted.json()["muted"])

            fired = client.post("/api/v1/alerts/test")
            self.assertEqual(fired.json(), {"success": True})


if __name__ == "__main__":
    unittest.main()
