import os
import tempfile
import unittest

from fastapi.testclient import TestClient

from pinboard.config import Settings
from pinboard.main import create_app
from pinboard.stores.backend import StoreMode, open_backend
from pinboard.stores.pins import MemoryPinStore, SqlPinStore


class OpenBackendTest(unittest.TestCase):
    def test_reachable_database_is_durable(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            url = f"sqlite:///{os.path.join(tmp, 'data', 'pinboard.db')}"
            backend = open_backend(Settings(DATABASE_URL=url))
            self.assertEqual(backend.mode, StoreMode.DURABLE)
            self.assertIsInstance(backend.pins, SqlPinStore)
            self.assertTrue(os.path.exists(os.path.join(tmp, "data", "pinboard.db")))

    def test_unreachable_database_falls_back_to_demo(self) -> None:
        with tempfile.NamedTemporaryFile() as blocker:
            # a regular file where the database directory should be
            url = f"sqlite:///{blocker.name}/sub/pinboard.db"
            with self.assertLogs("pinboard.stores.backend", level="WARNING") as logs:
                backend = open_backend(Settings(DATABASE_URL=url))
        self.assertEqual(backend.mode, StoreMode.DEMO)
        self.assertIsInstance(backend.pins, MemoryPinStore)
        self.assertTrue(any("demo mode" in line for line in logs.output))


class AppStartupTest(unittest.TestCase):
    def test_backend_is_chosen_on_startup(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cfg = Settings(
                DATABASE_URL=f"sqlite:///{os.path.join(tmp, 'pinboard.db')}",
                UPLOAD_DIR=os.path.join(tmp, "uploads"),
            )
            with TestClient(create_app(cfg=cfg)) as client:
                self.assertEqual(client.get("/api/test").json()["mode"], "durable")

    def test_demo_data_does_not_survive_restart(self) -> None:
        with tempfile.NamedTemporaryFile() as blocker, tempfile.TemporaryDirectory() as tmp:
            cfg = Settings(DATABASE_URL=f"sqlite:///{blocker.name}/x/pinboard.db", UPLOAD_DIR=tmp)
            with TestClient(create_app(cfg=cfg)) as client:
                self.assertEqual(client.get("/api/test").json()["mode"], "demo")
                resp = client.post("/api/register", json={"username": "a", "email": "a@example.com", "password": "pw"})
                self.assertEqual(resp.status_code, 200)

            with TestClient(create_app(cfg=cfg)) as client:
                again = client.post("/api/login", json={"email": "a@example.com", "password": "pw"})
                self.assertEqual(again.status_code, 400)


if __name__ == "__main__":
    unittest.main()
