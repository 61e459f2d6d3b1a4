import json
import logging
import unittest

from support_fakes import ApiHarness
from utils import metrics
from utils.json_logging import JsonFormatter, _ContextFilter
from utils.request_context import normalize_request_id, set_request_id
from utils.stage_logging import log_stage


class MetricsUnitTests(unittest.TestCase):
    def setUp(self):
        metrics.reset()

    def test_counters_are_keyed_by_labels(self):
        metrics.incr("api_ocr_uploads_total", status="completed")
        metrics.incr("api_ocr_uploads_total", status="completed")
        metrics.incr("api_ocr_uploads_total", status="failed")

        self.assertEqual(metrics.get_counter("api_ocr_uploads_total", status="completed"), 2)
        self.assertEqual(metrics.get_counter("api_ocr_uploads_total", status="failed"), 1)
        self.assertEqual(metrics.get_counter("api_ocr_uploads_total", status="pending"), 0)

    def test_snapshot_includes_timings(self):
        metrics.observe_ms("api_ocr_delegate_latency_ms", 20, status="completed")
        metrics.observe_ms("api_ocr_delegate_latency_ms", 40, status="completed")

        timing = metrics.snapshot()["timings"][0]
        self.assertEqual(timing["count"], 2)
        self.assertEqual(timing["sum_ms"], 60.0)
        self.assertEqual(timing["max_ms"], 40.0)


class LoggingUnitTests(unittest.TestCase):
    def tearDown(self):
        set_request_id(None)

    def test_failed_stage_logs_at_error(self):
        with self.assertLogs("api.stage", level="INFO") as captured:
            log_stage(stage="OCR_UPLOAD", event="started", uid="abc")
            log_stage(stage="OCR_UPLOAD", event="FAILED", record_id=7, error="boom")

        self.assertEqual([r.levelno for r in captured.records], [logging.INFO, logging.ERROR])
        payload = json.loads(captured.records[1].getMessage().split(" ", 1)[1])
        self.assertEqual(payload["record_id"], 7)
        self.assertEqual(payload["error"], "boom")

    def test_json_formatter_carries_request_id(self):
        set_request_id("req-abc-123")
        record = logging.makeLogRecord({"name": "api.test", "levelname": "INFO", "msg": "hello %s", "args": ("x",)})
        _ContextFilter("doc-ocr-api").filter(record)

        payload = json.loads(JsonFormatter().format(record))
        self.assertEqual(payload["message"], "hello x")
        self.assertEqual(payload["service"], "doc-ocr-api")
        self.assertEqual(payload["request_id"], "req-abc-123")

    def test_bad_request_id_is_replaced(self):
        generated = normalize_request_id("bad id with spaces")
        self.assertNotEqual(generated, "bad id with spaces")
        self.assertTrue(generated)


class HealthUnitTests(unittest.TestCase):
    def test_health_and_metrics_endpoints(self):
        with ApiHarness() as h:
            resp = h.client.get("/health")
            self.assertEqual(resp.status_code, 200)
            self.assertEqual(resp.json()["database"], "connected")

            resp = h.client.get("/health/metrics")
            self.assertEqual(resp.status_code, 200)
            self.assertIn("counters", resp.json())


if __name__ == "__main__":
    unittest.main()
