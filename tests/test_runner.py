import unittest

from describer.exceptions import ConfigurationError
from describer.models import ResultStatus, WorkItem
from describer.runner import BatchRunner, CancelToken, drain
from describer.store import BatchStore
from .mocks import CREDENTIALS, ScriptedBackend, SleepRecorder, http_error, ok


def url_items(count):
    return [WorkItem(image_url=f"https://cdn.example.com/img/{i}.jpg", note=f"note {i}") for i in range(count)]


class TestBatchRunner(unittest.TestCase):
    def setUp(self):
        self.store = BatchStore()
        self.sleep = SleepRecorder()

    def make_runner(self, backend):
        return BatchRunner(self.store, backend, delay=1.0, sleep=self.sleep)

    def statuses(self):
        return [r.status for r in self.store.results()]

    def test_single_successful_item(self):
        backend = ScriptedBackend([ok("A red shoe on a white background.")])
        runner = self.make_runner(backend)

        events = drain(runner.run(url_items(1), "gpt-4o-mini", "Describe it.", CREDENTIALS))

        record, = self.store.results()
        self.assertEqual(record.status, ResultStatus.COMPLETED)
        self.assertEqual(record.output, "A red shoe on a white background.")
        self.assertIsNone(record.failure_message)
        self.assertEqual(record.progress, 100)
        self.assertEqual(len(events), 1)
        self.assertEqual((events[0].completed, events[0].total), (1, 1))
        self.assertEqual(self.sleep.delays, [])

    def test_empty_image_is_failed_without_a_call(self):
        backend = ScriptedBackend()
        runner = self.make_runner(backend)

        events = drain(runner.run([WorkItem(image_url="")], "gpt-4o-mini", "Describe it.", CREDENTIALS))

        record, = self.store.results()
        self.assertEqual(record.status, ResultStatus.FAILED)
        self.assertEqual(record.failure_message, "empty image data")
        self.assertIsNone(record.output)
        self.assertEqual(backend.calls, [])
        self.assertEqual((events[0].completed, events[0].total), (1, 1))

    def test_partial_failure_then_retry_all_failed(self):
        backend = ScriptedBackend([ok("first"), http_error(429, "rate limited"), ok("second")])
        runner = self.make_runner(backend)
        items = url_items(2)

        drain(runner.run(items, "gpt-4o", "Describe it.", CREDENTIALS))
        self.assertEqual(self.statuses(), [ResultStatus.COMPLETED, ResultStatus.FAILED])
        self.assertIn("429", self.store.get_result(items[1].id).failure_message)

        events = drain(runner.retry_all_failed())

        self.assertEqual([e.item.id for e in events], [items[1].id])
        self.assertEqual(self.statuses(), [ResultStatus.COMPLETED, ResultStatus.COMPLETED])
        self.assertEqual(self.store.get_result(items[0].id).output, "first")
        self.assertEqual(self.store.get_result(items[1].id).output, "second")
        self.assertEqual(len(backend.calls), 3)

    def test_every_item_ends_resolved_in_input_order(self):
        backend = ScriptedBackend([ok("a"), http_error(500), ok("c"), http_error(502), ok("e")])
        runner = self.make_runner(backend)
        items = url_items(5)

        events = drain(runner.run(items, "gpt-4o-mini", "p", CREDENTIALS))

        results = self.store.results()
        self.assertEqual([r.id for r in results], [i.id for i in items])
        for record in results:
            self.assertIn(record.status, (ResultStatus.COMPLETED, ResultStatus.FAILED))
        self.assertEqual([e.completed for e in events], [1, 2, 3, 4, 5])
        self.assertTrue(all(e.total == 5 for e in events))
        self.assertEqual([c["image"] for c in backend.calls], [i.image_url for i in items])

    def test_delay_between_items_but_not_after_last(self):
        runner = self.make_runner(ScriptedBackend([ok("a"), http_error(500), ok("c")]))

        drain(runner.run(url_items(3), "gpt-4o-mini", "p", CREDENTIALS))

        self.assertEqual(self.sleep.delays, [1.0, 1.0])

    def test_pending_records_exist_before_processing(self):
        backend = ScriptedBackend()
        runner = self.make_runner(backend)

        events = runner.run(url_items(3), "gpt-4o-mini", "p", CREDENTIALS)

        self.assertEqual(self.statuses(), [ResultStatus.PENDING] * 3)
        self.assertEqual(backend.calls, [])
        next(events)
        self.assertEqual(self.statuses(), [ResultStatus.COMPLETED, ResultStatus.PENDING, ResultStatus.PENDING])

    def test_empty_item_list(self):
        runner = self.make_runner(ScriptedBackend())

        events = drain(runner.run([], "gpt-4o-mini", "p", CREDENTIALS))

        self.assertEqual(events, [])
        self.assertEqual(self.store.results(), [])

    def test_configuration_error_before_any_work(self):
        backend = ScriptedBackend(reject_config=True)
        runner = self.make_runner(backend)

        with self.assertRaises(ConfigurationError):
            runner.run(url_items(2), "gpt-4o-mini", "p", CREDENTIALS)

        self.assertEqual(self.store.results(), [])
        self.assertEqual(backend.calls, [])

    def test_unexpected_backend_exception_becomes_failure(self):
        backend = ScriptedBackend([RuntimeError("boom"), ok("fine")])
        runner = self.make_runner(backend)

        drain(runner.run(url_items(2), "gpt-4o-mini", "p", CREDENTIALS))

        first, second = self.store.results()
        self.assertEqual(first.status, ResultStatus.FAILED)
        self.assertEqual(first.failure_message, "boom")
        self.assertEqual(second.status, ResultStatus.COMPLETED)

    def test_note_and_settings_are_passed_through(self):
        backend = ScriptedBackend()
        runner = self.make_runner(backend)
        item = WorkItem(image_url="https://cdn.example.com/a.png", note="leather, size 42")

        drain(runner.run([item], "claude-3-haiku", "Write copy.", CREDENTIALS))

        call, = backend.calls
        self.assertEqual(call["note"], "leather, size 42")
        self.assertEqual(call["model"], "claude-3-haiku")
        self.assertEqual(call["prompt"], "Write copy.")

    def test_binary_payload_is_submitted(self):
        backend = ScriptedBackend()
        runner = self.make_runner(backend)
        item = WorkItem(image_data=b"\x89PNG\r\n\x1a\nrest", file_name="shoe.png")

        drain(runner.run([item], "gpt-4o-mini", "p", CREDENTIALS))

        self.assertEqual(backend.calls[0]["image"], b"\x89PNG\r\n\x1a\nrest")
        self.assertEqual(self.store.results()[0].display_name, "shoe.png")


class TestRetry(unittest.TestCase):
    def setUp(self):
        self.store = BatchStore()
        self.sleep = SleepRecorder()

    def test_retry_one_completed_with_same_outcome_keeps_output(self):
        backend = ScriptedBackend([ok("same text"), ok("same text")])
        runner = BatchRunner(self.store, backend, sleep=self.sleep)
        item, = url_items(1)
        drain(runner.run([item], "gpt-4o-mini", "p", CREDENTIALS))

        event = runner.retry_one(item.id)

        self.assertIsNotNone(event)
        self.assertEqual(self.store.get_result(item.id).status, ResultStatus.COMPLETED)
        self.assertEqual(self.store.get_result(item.id).output, "same text")

    def test_retry_one_failure_overwrites_message(self):
        backend = ScriptedBackend([http_error(500, "old"), http_error(503, "new")])
        runner = BatchRunner(self.store, backend, sleep=self.sleep)
        item, = url_items(1)
        drain(runner.run([item], "gpt-4o-mini", "p", CREDENTIALS))

        runner.retry_one(item.id)

        record = self.store.get_result(item.id)
        self.assertEqual(record.status, ResultStatus.FAILED)
        self.assertIn("503 new", record.failure_message)
        self.assertNotIn("old", record.failure_message)

    def test_retry_one_leaves_other_items_alone(self):
        backend = ScriptedBackend([http_error(500), ok("b"), ok("a")])
        runner = BatchRunner(self.store, backend, sleep=self.sleep)
        items = url_items(2)
        drain(runner.run(items, "gpt-4o-mini", "p", CREDENTIALS))
        before = self.store.get_result(items[1].id)

        runner.retry_one(items[0].id)

        self.assertEqual(self.store.get_result(items[0].id).output, "a")
        self.assertEqual(self.store.get_result(items[1].id), before)

    def test_retry_one_is_noop_for_pending_or_unknown(self):
        backend = ScriptedBackend()
        runner = BatchRunner(self.store, backend, sleep=self.sleep)
        items = url_items(2)
        runner.run(items, "gpt-4o-mini", "p", CREDENTIALS)  # not consumed: all pending

        self.assertIsNone(runner.retry_one(items[0].id))
        self.assertIsNone(runner.retry_one("no-such-id"))
        self.assertEqual(self.store.get_result(items[0].id).status, ResultStatus.PENDING)
        self.assertEqual(backend.calls, [])

    def test_retry_uses_run_configuration(self):
        backend = ScriptedBackend([http_error(500), ok("x")])
        runner = BatchRunner(self.store, backend, sleep=self.sleep)
        item, = url_items(1)
        drain(runner.run([item], "gemini-1.5-pro", "Be brief.", CREDENTIALS))

        runner.retry_one(item.id)

        self.assertEqual(backend.calls[1]["model"], "gemini-1.5-pro")
        self.assertEqual(backend.calls[1]["prompt"], "Be brief.")

    def test_retry_all_failed_marks_snapshot_processing_and_skips_throttle(self):
        backend = ScriptedBackend([http_error(500), ok("b"), http_error(500), ok("a2"), http_error(429)])
        runner = BatchRunner(self.store, backend, sleep=self.sleep)
        items = url_items(3)
        drain(runner.run(items, "gpt-4o-mini", "p", CREDENTIALS))
        self.sleep.delays.clear()

        events = runner.retry_all_failed()
        self.assertEqual(self.store.get_result(items[0].id).status, ResultStatus.PROCESSING)
        self.assertEqual(self.store.get_result(items[2].id).status, ResultStatus.PROCESSING)
        self.assertEqual(self.store.get_result(items[1].id).status, ResultStatus.COMPLETED)

        events = drain(events)

        self.assertEqual([e.item.id for e in events], [items[0].id, items[2].id])
        self.assertEqual(self.store.get_result(items[0].id).status, ResultStatus.COMPLETED)
        self.assertEqual(self.store.get_result(items[2].id).status, ResultStatus.FAILED)
        self.assertEqual(self.sleep.delays, [])

    def test_retry_all_failed_with_nothing_failed(self):
        backend = ScriptedBackend()
        runner = BatchRunner(self.store, backend, sleep=self.sleep)
        drain(runner.run(url_items(2), "gpt-4o-mini", "p", CREDENTIALS))

        self.assertEqual(drain(runner.retry_all_failed()), [])
        self.assertEqual(len(backend.calls), 2)


class TestCancellation(unittest.TestCase):
    def test_cancel_marks_remaining_items_failed(self):
        store = BatchStore()
        cancel = CancelToken()

        def cancel_after_first(*args):
            cancel.cancel()
            return ok("first")

        backend = ScriptedBackend([cancel_after_first])
        runner = BatchRunner(store, backend, sleep=SleepRecorder())
        items = url_items(3)

        events = drain(runner.run(items, "gpt-4o-mini", "p", CREDENTIALS, cancel=cancel))

        self.assertEqual(len(events), 1)
        self.assertEqual(len(backend.calls), 1)
        statuses = [r.status for r in store.results()]
        self.assertEqual(statuses, [ResultStatus.COMPLETED, ResultStatus.FAILED, ResultStatus.FAILED])
        self.assertEqual(store.get_result(items[2].id).failure_message, "cancelled")

        drain(runner.retry_all_failed())
        self.assertEqual([r.status for r in store.results()], [ResultStatus.COMPLETED] * 3)


if __name__ == "__main__":
    unittest.main()
