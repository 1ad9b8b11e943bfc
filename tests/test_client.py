import unittest

import requests
import responses

from describer.client import ServiceClient
from describer.exceptions import BatchInProgress
from describer.models import BatchItemIn, ResultStatus, ServiceStatus


class TestServiceClient(unittest.TestCase):
    def setUp(self):
        self.base_url = "http://testserver"
        self.client = ServiceClient(self.base_url)

    def test_scheme_is_added(self):
        self.assertEqual(ServiceClient("localhost:8000/").server_url, "http://localhost:8000")

    @responses.activate
    def test_start_batch_ok(self):
        """
        Simulate POST /batch accepting a run.
        """
        snapshot = {
            "status": "OK",
            "running": True,
            "counts": {"pending": 2, "processing": 0, "completed": 0, "failed": 0},
            "results": [
                {"id": "a", "display_name": "a.jpg", "image_url": "https://x/a.jpg", "status": "pending"},
                {"id": "b", "display_name": "b.jpg", "image_url": "https://x/b.jpg", "status": "pending"},
            ],
        }
        responses.add(responses.POST, f"{self.base_url}/batch", json=snapshot, status=202)

        resp = self.client.start_batch([BatchItemIn(image_url="https://x/a.jpg"),
                                        BatchItemIn(image_url="https://x/b.jpg", note="blue")])

        self.assertEqual(resp.status, ServiceStatus.OK)
        self.assertTrue(resp.running)
        self.assertEqual(len(resp.results), 2)
        self.assertEqual(resp.counts.pending, 2)
        self.assertIn(b'"note": "blue"', responses.calls[0].request.body)

    @responses.activate
    def test_start_batch_busy(self):
        responses.add(responses.POST, f"{self.base_url}/batch", json={"status": "busy"}, status=409)
        resp = self.client.start_batch([BatchItemIn(image_url="https://x/a.jpg")])
        self.assertEqual(resp.status, ServiceStatus.BUSY)

    @responses.activate
    def test_server_unavailable(self):
        """
        Simulate a connection error => SERVICE_UNAVAILABLE.
        """
        def raise_connection_error(request):
            raise requests.ConnectionError("Server is down")

        responses.add_callback(responses.GET, f"{self.base_url}/batch", callback=raise_connection_error)

        resp = self.client.get_batch()
        self.assertEqual(resp.status, ServiceStatus.SERVICE_UNAVAILABLE)
        self.assertEqual(resp.results, [])

    @responses.activate
    def test_export_csv(self):
        responses.add(responses.GET, f"{self.base_url}/batch/export/csv",
                      body="name,imageReference,description\n\"a.jpg\",\"u\",\"d\"", status=200)
        self.assertTrue(self.client.export_csv().startswith("name,"))

    @responses.activate
    def test_export_csv_empty(self):
        responses.add(responses.GET, f"{self.base_url}/batch/export/csv",
                      json={"detail": "No completed results to export"}, status=404)
        self.assertIsNone(self.client.export_csv())

    @responses.activate
    def test_retry_failed(self):
        responses.add(responses.POST, f"{self.base_url}/batch/retry-failed",
                      json={"status": "OK", "running": True}, status=202)
        self.assertTrue(self.client.retry_failed().running)


    @responses.activate
    def test_retry_one(self):
        record = {"id": "a", "display_name": "a.jpg", "image_url": "https://x/a.jpg",
                  "status": "completed", "output": "fixed", "progress": 100}
        responses.add(responses.POST, f"{self.base_url}/batch/retry/a", json=record, status=200)
        responses.add(responses.POST, f"{self.base_url}/batch/retry/missing",
                      json={"detail": "Unknown item missing"}, status=404)
        responses.add(responses.POST, f"{self.base_url}/batch/retry/busy",
                      json={"status": "busy", "detail": "A batch action is already running"}, status=409)

        result = self.client.retry_one("a")
        self.assertEqual(result.status, ResultStatus.COMPLETED)
        self.assertEqual(result.output, "fixed")
        self.assertIsNone(self.client.retry_one("missing"))
        with self.assertRaises(BatchInProgress):
            self.client.retry_one("busy")

    @responses.activate
    def test_cancel(self):
        responses.add(responses.POST, f"{self.base_url}/batch/cancel", json={"cancelled": True}, status=200)
        self.assertTrue(self.client.cancel())

    @responses.activate
    def test_reset_batch(self):
        responses.add(responses.DELETE, f"{self.base_url}/batch",
                      json={"status": "OK", "running": False, "results": []}, status=200)
        responses.add(responses.DELETE, f"{self.base_url}/batch", json={"status": "busy"}, status=409)

        self.assertEqual(self.client.reset_batch().results, [])
        self.assertEqual(self.client.reset_batch().status, ServiceStatus.BUSY)

if __name__ == "__main__":
    unittest.main()
