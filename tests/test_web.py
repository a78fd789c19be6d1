import io
import os
import tempfile
import unittest
from pathlib import Path

from cloud_storage_bot.config import Settings
from cloud_storage_bot.storage import StorageManager
from cloud_storage_bot.web import WebServer


class TestWebServer(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.settings = Settings(data_dir=self._td.name, public_url="https://files.example.com/")
        self.storage = StorageManager.from_settings(self.settings)
        self.client = WebServer(self.storage, self.settings).app.test_client()

        self.storage.ensure_registered(1001)
        self.token = self.storage.rotate_token(1001)
        self.storage.create_namespace(self.token)

    def tearDown(self) -> None:
        self._td.cleanup()

    def _upload(self, token: str, name: str, data: bytes):
        return self.client.post(
            f"/namespaces/{token}",
            data={"file": (io.BytesIO(data), name)},
            content_type="multipart/form-data",
        )

    def test_health_and_home(self) -> None:
        self.assertEqual(self.client.get("/health").get_json()["status"], "healthy")
        resp = self.client.get("/")
        self.assertEqual(resp.status_code, 200)
        self.assertIn(b"https://files.example.com", resp.data)
        self.assertIn(b"GET /shares/&lt;token&gt;/&lt;name&gt;", resp.data)

    def test_list_empty_namespace(self) -> None:
        resp = self.client.get(f"/namespaces/{self.token}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json(), {"token": self.token, "files": []})

    def test_unknown_namespace(self) -> None:
        resp = self.client.get("/namespaces/NotAToken000")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.get_json()["status"], "error")

        resp = self._upload("NotAToken000", "a.txt", b"x")
        self.assertEqual(resp.status_code, 404)

    def test_upload_list_download(self) -> None:
        resp = self._upload(self.token, "report.pdf", b"%PDF-1.4 data")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.get_json(), {"token": self.token, "name": "report.pdf"})

        self.assertEqual(self.client.get(f"/namespaces/{self.token}").get_json()["files"], ["report.pdf"])

        resp = self.client.get(f"/namespaces/{self.token}/report.pdf")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data, b"%PDF-1.4 data")
        self.assertIn("attachment", resp.headers["Content-Disposition"])
        self.assertIn("report.pdf", resp.headers["Content-Disposition"])

    def test_upload_without_file(self) -> None:
        resp = self.client.post(f"/namespaces/{self.token}", data={}, content_type="multipart/form-data")
        self.assertEqual(resp.status_code, 400)

    def test_upload_traversal_rejected(self) -> None:
        resp = self._upload(self.token, "../escape.txt", b"evil")
        self.assertEqual(resp.status_code, 400)
        self.assertFalse((Path(self.settings.files_dir) / "escape.txt").exists())
        self.assertEqual(self.storage.list_entries(self.token), [])

    def test_download_missing_entry(self) -> None:
        resp = self.client.get(f"/namespaces/{self.token}/missing.txt")
        self.assertEqual(resp.status_code, 404)

    def test_overlong_name_rejected(self) -> None:
        resp = self.client.get(f"/namespaces/{self.token}/" + "a" * 300)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["status"], "error")

        resp = self._upload(self.token, "a" * 300, b"x")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.storage.list_entries(self.token), [])

    def test_download_nested_name_rejected(self) -> None:
        resp = self.client.get(f"/namespaces/{self.token}/sub/file.txt")
        self.assertEqual(resp.status_code, 400)

    def test_share_flow(self) -> None:
        resp = self.client.post(
            "/shares",
            data={"files": [(io.BytesIO(b"one"), "x.png"), (io.BytesIO(b"two"), "y.png")]},
            content_type="multipart/form-data",
        )
        self.assertEqual(resp.status_code, 201)
        body = resp.get_json()
        token = body["token"]
        self.assertEqual(len(token), 12)
        self.assertEqual(body["files"], ["x.png", "y.png"])
        self.assertEqual(body["url"], f"https://files.example.com/shares/{token}")

        self.assertEqual(set(self.client.get(f"/shares/{token}").get_json()["files"]), {"x.png", "y.png"})
        resp = self.client.get(f"/shares/{token}/x.png")
        self.assertEqual(resp.data, b"one")
        self.assertIn("attachment", resp.headers["Content-Disposition"])

    def test_share_is_not_a_namespace(self) -> None:
        resp = self.client.post(
            "/shares",
            data={"file": (io.BytesIO(b"one"), "x.png")},
            content_type="multipart/form-data",
        )
        token = resp.get_json()["token"]
        self.assertEqual(self.client.get(f"/namespaces/{token}").status_code, 404)
        self.assertEqual(self.client.get(f"/shares/{self.token}").status_code, 404)

    def test_share_without_files(self) -> None:
        resp = self.client.post("/shares", data={}, content_type="multipart/form-data")
        self.assertEqual(resp.status_code, 400)

    def test_share_with_unsafe_name(self) -> None:
        resp = self.client.post(
            "/shares",
            data={"files": [(io.BytesIO(b"ok"), "ok.txt"), (io.BytesIO(b"evil"), "../evil.txt")]},
            content_type="multipart/form-data",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(
            [name for name in os.listdir(self.settings.shares_dir) if name != ".partial"], []
        )

    def test_unknown_share(self) -> None:
        self.assertEqual(self.client.get("/shares/Missing00000").status_code, 404)
        self.assertEqual(self.client.get("/shares/Missing00000/a.txt").status_code, 404)


if __name__ == "__main__":
    unittest.main()
