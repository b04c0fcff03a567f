from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from bfi.webui import SessionStore, create_app


class WebUISessionApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = SessionStore()
        self.client = TestClient(create_app(self.store))

    def _create_session(self, *, code: str = ".", **payload):
        body = {"code": code}
        body.update(payload)
        response = self.client.post("/api/session", json=body)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_create_session_returns_initial_state(self) -> None:
        data = self._create_session(input="A")
        self.assertIn("session_id", data)
        self.assertEqual(len(data["history"]), data["history_size"])
        self.assertEqual(data["state"]["step"], 0)
        self.assertEqual(data["history"][0]["pc"], 0)
        self.assertFalse(data["finished"])
        self.assertEqual(data["status"], "loaded")
        self.assertEqual(data["outcome"], "clean")
        self.assertIsNone(data["fault"])
        self.assertEqual(data["total_steps"], 1)
        self.assertFalse(data["total_steps_capped"])
        self.assertEqual(len(self.store), 1)

    def test_code_is_filtered(self) -> None:
        data = self._create_session(code="print one: +.")
        self.assertEqual(data["code"], "+.")

    def test_step_advances_state(self) -> None:
        data = self._create_session(code="++.")
        session_id = data["session_id"]

        response = self.client.post(
            f"/api/session/{session_id}/step", json={"count": 2}
        )
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(len(payload["states"]), 2)
        self.assertEqual(payload["states"][0]["step"], 1)
        self.assertEqual(payload["states"][1]["step"], 2)
        self.assertEqual(payload["states"][1]["tape"][0], 2)
        self.assertEqual(len(payload["history"]), payload["history_size"])
        self.assertEqual(payload["history"][-1]["step"], payload["states"][-1]["step"])
        self.assertFalse(payload["finished"])
        self.assertEqual(payload["status"], "running")

    def test_reset_restores_initial_state(self) -> None:
        data = self._create_session(code="+.")
        session_id = data["session_id"]
        self.client.post(f"/api/session/{session_id}/step", json={"count": 1})

        response = self.client.post(f"/api/session/{session_id}/reset")
        self.assertEqual(response.status_code, 200, response.text)
        reset_payload = response.json()
        self.assertEqual(reset_payload["state"]["step"], 0)
        self.assertEqual(len(reset_payload["history"]), 1)
        self.assertFalse(reset_payload["finished"])

    def test_reset_clears_breakpoints(self) -> None:
        data = self._create_session(code="+++")
        session_id = data["session_id"]

        add = self.client.post(f"/api/session/{session_id}/breakpoints", json={"pc": 1})
        self.assertEqual(add.status_code, 200, add.text)

        reset = self.client.post(f"/api/session/{session_id}/reset")
        self.assertEqual(reset.status_code, 200, reset.text)
        payload = reset.json()
        self.assertEqual(payload["breakpoints"], [])

    def test_step_limit_conflict(self) -> None:
        data = self._create_session(code="++", max_steps=1)
        session_id = data["session_id"]

        ok = self.client.post(f"/api/session/{session_id}/step", json={"count": 1})
        self.assertEqual(ok.status_code, 200, ok.text)

        conflict = self.client.post(
            f"/api/session/{session_id}/step",
            json={"count": 1},
        )
        self.assertEqual(conflict.status_code, 409, conflict.text)
        payload = conflict.json()
        self.assertIn("detail", payload)

    def test_infinite_loop_caps_total_steps(self) -> None:
        data = self._create_session(code="+[]")
        self.assertTrue(data["total_steps_capped"])

    def test_add_and_remove_breakpoint(self) -> None:
        data = self._create_session(code="+++")
        session_id = data["session_id"]

        added = self.client.post(
            f"/api/session/{session_id}/breakpoints",
            json={"pc": 1},
        )
        self.assertEqual(added.status_code, 200, added.text)
        payload = added.json()
        self.assertIn(1, payload["breakpoints"])

        removed = self.client.delete(f"/api/session/{session_id}/breakpoints/1")
        self.assertEqual(removed.status_code, 200, removed.text)
        payload = removed.json()
        self.assertNotIn(1, payload["breakpoints"])

        missing = self.client.delete(f"/api/session/{session_id}/breakpoints/1")
        self.assertEqual(missing.status_code, 404)

    def test_run_until_break_hits_breakpoint(self) -> None:
        data = self._create_session(code="+.+")
        session_id = data["session_id"]
        self.client.post(f"/api/session/{session_id}/breakpoints", json={"pc": 1})

        response = self.client.post(f"/api/session/{session_id}/run", json={"limit": 10})
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(payload["hit_breakpoint"], 1)
        self.assertFalse(payload["finished"])

    def test_run_to_completion_ignore_breakpoints(self) -> None:
        data = self._create_session(code="+.+")
        session_id = data["session_id"]
        self.client.post(f"/api/session/{session_id}/breakpoints", json={"pc": 1})

        response = self.client.post(
            f"/api/session/{session_id}/run",
            json={"limit": 10000, "ignore_breakpoints": True},
        )
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertTrue(payload["finished"])
        self.assertEqual(payload["status"], "halted")
        self.assertEqual(payload["breakpoints"], [1])
        self.assertEqual(payload["states"][-1]["output"], "\x01")
        self.assertGreaterEqual(payload["total_steps"], payload["history"][-1]["step"])

    def test_run_fault_is_reported(self) -> None:
        data = self._create_session(code="<+")
        session_id = data["session_id"]
        response = self.client.post(f"/api/session/{session_id}/run", json={})
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertTrue(payload["finished"])
        self.assertEqual(payload["status"], "faulted")
        self.assertEqual(payload["outcome"], "run_failed")
        self.assertEqual(payload["fault"]["kind"], "run")
        self.assertEqual(payload["fault"]["error"], "OutOfBoundsWrite")
        self.assertEqual(payload["fault"]["pc"], 1)
        self.assertEqual(payload["fault"]["command"], "+")

    def test_load_fault_is_reported(self) -> None:
        data = self._create_session(code="+" * 20, max_memory=8, growth_chunk=8)
        self.assertEqual(data["outcome"], "load_failed")
        self.assertEqual(data["fault"]["kind"], "load")
        self.assertEqual(data["fault"]["offset"], 9)
        self.assertEqual(data["fault"]["error"], "AllocationFailure")

    def test_invalid_configuration_rejected(self) -> None:
        response = self.client.post("/api/session", json={"code": "+", "growth_chunk": 0})
        self.assertEqual(response.status_code, 422)

    def test_history_matches_history_size(self) -> None:
        data = self._create_session(code="+++.>.")
        session_id = data["session_id"]
        self.client.post(f"/api/session/{session_id}/step", json={"count": 3})
        response = self.client.get(f"/api/session/{session_id}")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(len(payload["history"]), payload["history_size"])

    def test_unknown_session_returns_404(self) -> None:
        self.assertEqual(self.client.get("/api/session/missing").status_code, 404)
        self.assertEqual(
            self.client.post("/api/session/missing/step", json={"count": 1}).status_code,
            404,
        )

    def test_delete_session(self) -> None:
        data = self._create_session()
        session_id = data["session_id"]
        response = self.client.delete(f"/api/session/{session_id}")
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.client.get(f"/api/session/{session_id}").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/session/{session_id}").status_code, 404)


if __name__ == "__main__":
    unittest.main()
