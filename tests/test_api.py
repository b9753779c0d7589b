import csv
import io
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

from geotag_ocr.api.endpoints import batch
from geotag_ocr.core.config import settings
from geotag_ocr.main import app
from geotag_ocr.services.engine_pool import EnginePool
from geotag_ocr.services.export_service import ExportService

from fakes import FakeEngineFactory, make_png

LAHORE = "9AB8+2X Lahore, Punjab\n31.5204,74.3587\n14:30 08/11/2023"


class BatchApiTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)

        for name, value in [
            ("TEMP_DIR", str(root / "temp")),
            ("EXPORT_DIR", str(root / "exports")),
            ("OCR_WARMUP_ON_STARTUP", True),
        ]:
            patcher = patch.object(settings, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

        export_patcher = patch.object(batch, "export_service", ExportService(export_dir=str(root / "exports")))
        export_patcher.start()
        self.addCleanup(export_patcher.stop)

        self.factory = FakeEngineFactory(texts={16: LAHORE, 24: "noise only"}, failing_widths={32})
        app.state.engine_pool = EnginePool(self.factory, temp_dir=str(root / "temp" / "jobs"))

    def tearDown(self):
        app.state.engine_pool = None
        self._tmp.cleanup()

    def post_images(self, client, files):
        return client.post(
            "/api/v1/batch/extract",
            files=[("images", (name, content, ctype)) for name, content, ctype in files]
        )

    def test_health_reports_warm_pool(self):
        with TestClient(app) as client:
            body = client.get("/health").json()

        self.assertEqual(body["status"], "healthy")
        self.assertEqual(body["engine_pool"], {"initialized": True, "size": 3, "idle": 3})

    def test_partial_success_exports_successful_records_only(self):
        with TestClient(app) as client:
            response = self.post_images(client, [
                ("site_a.png", make_png(16), "image/png"),
                ("site_b.png", make_png(32), "image/png"),
                ("notes.txt", b"hello", "text/plain"),
            ])
            body = response.json()

            self.assertEqual(response.status_code, 200)
            self.assertEqual(body["status"], "partial_success")
            self.assertEqual(body["total_images"], 2)
            self.assertEqual(body["processed_images"], 1)
            self.assertEqual(body["errors"][0]["filename"], "site_b.png")
            self.assertEqual(body["records"][0]["latitude"], "31.5204")
            self.assertTrue(body["export_file"].startswith("extracted_manhole_data_"))

            download = client.get(f"/api/v1/batch/exports/{body['export_file']}")

        self.assertEqual(download.status_code, 200)
        self.assertEqual(download.headers["content-type"], "text/csv; charset=utf-8")
        rows = list(csv.reader(io.StringIO(download.text)))
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][1:], ["31.5204", "74.3587", "14:30 08/11/2023", "site_a.png"])

    def test_all_failures_produce_no_export(self):
        with TestClient(app) as client:
            body = self.post_images(client, [("x.png", make_png(32), "image/png")]).json()

        self.assertEqual(body["status"], "failed")
        self.assertEqual(body["processed_images"], 0)
        self.assertIsNone(body["export_file"])
        self.assertEqual(list(Path(settings.EXPORT_DIR).iterdir()), [])

    def test_sentinel_values_in_response(self):
        with TestClient(app) as client:
            body = self.post_images(client, [("x.jpg", make_png(24), "image/jpeg")]).json()

        self.assertEqual(body["status"], "success")
        self.assertEqual(body["records"][0]["plus_code"], "Not found")
        self.assertEqual(body["records"][0]["timestamp"], "Not found")

    def test_archive_upload(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("site1/a.png", make_png(16))
            zf.writestr("site1/b.png", make_png(24))
            zf.writestr("readme.txt", "not an image")

        with TestClient(app) as client:
            response = client.post(
                "/api/v1/batch/extract",
                files={"archive": ("photos.zip", buffer.getvalue(), "application/zip")}
            )

        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["total_images"], 2)
        self.assertEqual([r["image_name"] for r in body["records"]], ["site1/a.png", "site1/b.png"])

    def test_corrupt_archive(self):
        with TestClient(app) as client:
            response = client.post(
                "/api/v1/batch/extract",
                files={"archive": ("photos.zip", b"garbage", "application/zip")}
            )

        self.assertEqual(response.status_code, 422)

    def test_unsupported_archive(self):
        with TestClient(app) as client:
            response = client.post(
                "/api/v1/batch/extract",
                files={"archive": ("photos.iso", b"garbage", "application/octet-stream")}
            )

        self.assertEqual(response.status_code, 400)

    def test_no_input(self):
        with TestClient(app) as client:
            response = client.post("/api/v1/batch/extract")

        self.assertEqual(response.status_code, 400)

    def test_no_valid_images(self):
        with TestClient(app) as client:
            response = self.post_images(client, [("a.png", b"not a png", "image/png")])

        self.assertEqual(response.status_code, 400)

    def test_pool_failure_is_service_unavailable(self):
        app.state.engine_pool = EnginePool(
            FakeEngineFactory(fail_on_call=1),
            temp_dir=str(Path(settings.TEMP_DIR) / "jobs")
        )

        with patch.object(settings, "OCR_WARMUP_ON_STARTUP", False):
            with TestClient(app) as client:
                response = self.post_images(client, [("a.png", make_png(16), "image/png")])

        self.assertEqual(response.status_code, 503)

    def test_unknown_export(self):
        with TestClient(app) as client:
            response = client.get("/api/v1/batch/exports/extracted_manhole_data_0.csv")

        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
