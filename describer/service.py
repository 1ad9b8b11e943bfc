import logging
import threading
import time
from typing import Callable, Iterator, List, Optional

from describer import export
from describer.backend import DescriptionBackend, HttpDescriptionBackend, MockDescriptionBackend
from describer.backend.request import ImageReference
from describer.exceptions import BatchInProgress
from describer.models import (
    BatchSnapshot,
    GenerationOutcome,
    HistoryEntry,
    ResultRecord,
    WorkItem,
)
from describer.runner import BatchEvent, BatchRunner, CancelToken, drain
from describer.state import AppState

logger = logging.getLogger(__name__)

NO_NOTE = "unspecified"


class DescriberService:
    """
    User-facing actions over the application state.

    Batch actions (run, retry, bulk retry) are serialized: only one may be
    active at a time, and starting another raises :class:`BatchInProgress`.
    Background actions run on a worker thread that drains the runner's event
    stream; :meth:`wait` joins it.
    """

    def __init__(self,
                 state: AppState,
                 backend: Optional[DescriptionBackend] = None,
                 delay: float = 1.0,
                 request_timeout: float = 120,
                 sleep: Callable[[float], None] = time.sleep):
        self.state = state
        self._backend = backend
        self._http_backend: Optional[HttpDescriptionBackend] = None
        self._mock_backend: Optional[MockDescriptionBackend] = None
        self.delay = delay
        self.request_timeout = request_timeout
        self._sleep = sleep

        self._busy = threading.Lock()
        self._cancel: Optional[CancelToken] = None
        self._worker: Optional[threading.Thread] = None

    @property
    def backend(self) -> DescriptionBackend:
        """Explicit backend if one was given, else mock or HTTP according to the settings."""
        if self._backend is not None:
            return self._backend
        if self.state.settings.use_mock:
            if self._mock_backend is None:
                self._mock_backend = MockDescriptionBackend()
            return self._mock_backend
        if self._http_backend is None:
            self._http_backend = HttpDescriptionBackend(request_timeout=self.request_timeout)
        return self._http_backend

    def _runner(self) -> BatchRunner:
        return BatchRunner(self.state.batch, self.backend, delay=self.delay, sleep=self._sleep)

    # -- single image ------------------------------------------------------

    def describe_one(self, image: ImageReference, note: str = "") -> GenerationOutcome:
        """Describe one image with the current settings; successes are added to history."""
        settings = self.state.settings
        backend = self.backend
        backend.check_config(settings.credentials)

        outcome = backend.generate(image, note or None, settings.model, settings.prompt, settings.credentials)
        if outcome.succeeded:
            self.state.storage.append_history(HistoryEntry(
                note=note or NO_NOTE,
                model=settings.model,
                prompt=settings.prompt,
                result=outcome.text,
            ))
            logger.info("Single image description generated")
        else:
            logger.warning(f"Single image description failed: {outcome.error_detail}")
        return outcome

    def history(self) -> List[HistoryEntry]:
        return self.state.storage.history()

    def clear_history(self) -> None:
        self.state.storage.clear_history()

    # -- batch ---------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._busy.locked()

    def start_batch(self, items: List[WorkItem], background: bool = True) -> Optional[List[BatchEvent]]:
        settings = self.state.settings
        return self._launch(
            lambda cancel: self._runner().run(items, settings.model, settings.prompt,
                                              settings.credentials, cancel=cancel),
            background,
        )

    def retry_failed(self, background: bool = True) -> Optional[List[BatchEvent]]:
        return self._launch(lambda cancel: self._runner().retry_all_failed(cancel=cancel), background)

    def retry_one(self, item_id: str) -> Optional[BatchEvent]:
        if not self._busy.acquire(blocking=False):
            raise BatchInProgress("A batch action is already running")
        try:
            return self._runner().retry_one(item_id)
        finally:
            self._busy.release()

    def cancel(self) -> bool:
        """Ask the active run to stop; False if nothing is running."""
        if self._cancel is None or not self.running:
            return False
        self._cancel.cancel()
        return True

    def wait(self, timeout: Optional[float] = None) -> None:
        if self._worker is not None:
            self._worker.join(timeout)

    def reset_batch(self) -> None:
        if not self._busy.acquire(blocking=False):
            raise BatchInProgress("Cannot clear the batch while it is running")
        try:
            self.state.batch.reset()
        finally:
            self._busy.release()

    def results(self) -> List[ResultRecord]:
        return self.state.batch.results()

    def snapshot(self) -> BatchSnapshot:
        return BatchSnapshot(running=self.running,
                             counts=self.state.batch.counts(),
                             results=self.state.batch.results())

    def export_csv(self) -> str:
        return export.to_csv(self.results())

    def export_table(self) -> str:
        return export.to_table(self.results())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _launch(self,
                start: Callable[[CancelToken], Iterator[BatchEvent]],
                background: bool) -> Optional[List[BatchEvent]]:
        if not self._busy.acquire(blocking=False):
            raise BatchInProgress("A batch action is already running")
        try:
            self._cancel = CancelToken()
            events = start(self._cancel)
        except Exception:
            self._busy.release()
            raise

        if not background:
            try:
                return drain(events, _log_progress)
            finally:
                self._busy.release()

        self._worker = threading.Thread(target=self._drain_and_release, args=(events,), daemon=True)
        self._worker.start()
        return None

    def _drain_and_release(self, events: Iterator[BatchEvent]):
        try:
            drain(events, _log_progress)
        except Exception as e:
            logger.exception(f"Batch worker stopped unexpectedly: {e}")
        finally:
            self._busy.release()


def _log_progress(event: BatchEvent):
    logger.info(f"Progress: {event.completed}/{event.total}")
