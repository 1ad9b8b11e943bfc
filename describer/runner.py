import logging
import threading
import time
from typing import Callable, Iterable, Iterator, List, NamedTuple, Optional

from describer.backend.base import DescriptionBackend
from describer.exceptions import ConfigurationError, TransportError
from describer.models import (
    Credentials,
    ErrorKind,
    GenerationOutcome,
    ResultRecord,
    ResultStatus,
    RunConfig,
    WorkItem,
)
from describer.store import BatchStore

logger = logging.getLogger(__name__)

EMPTY_IMAGE_MESSAGE = "empty image data"
CANCELLED_MESSAGE = "cancelled"


class CancelToken:
    """Set from any thread to stop a run after the call currently in flight."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class BatchEvent(NamedTuple):
    """One resolved item, emitted in input order."""
    item: WorkItem
    record: ResultRecord
    outcome: GenerationOutcome
    completed: int
    total: int


ProgressCallback = Callable[[BatchEvent], None]


def drain(events: Iterable[BatchEvent], on_progress: Optional[ProgressCallback] = None) -> List[BatchEvent]:
    """Consume an event stream to the end, calling ``on_progress`` for each event."""
    collected = []
    for event in events:
        if on_progress is not None:
            on_progress(event)
        collected.append(event)
    return collected


class BatchRunner:
    """
    Drives work items through a description backend one at a time.

    At most one backend call is in flight.  :meth:`run` waits ``delay``
    seconds between items (never after the last) to stay under the provider's
    rate limits; :meth:`retry_all_failed` does not.  Every per-item failure is
    written to the store as a failed record, so a single bad item never stops
    the batch.  Only configuration problems are raised, and only before any
    state is touched.
    """

    def __init__(self,
                 store: BatchStore,
                 backend: DescriptionBackend,
                 delay: float = 1.0,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize the runner.

        Args:
            store: Batch state the runner writes status transitions into
            backend: Description backend, called once per item
            delay: Seconds between items during :meth:`run`
            sleep: Sleep function, replaceable in tests
        """
        self.store = store
        self.backend = backend
        self.delay = delay
        self._sleep = sleep

    def run(self,
            items: List[WorkItem],
            model_id: str,
            prompt: str,
            credentials: Credentials,
            cancel: Optional[CancelToken] = None) -> Iterator[BatchEvent]:
        """
        Start a batch and return the stream of per-item events.

        Every item gets a pending record immediately; items are processed as
        the returned iterator is consumed.

        Raises:
            ConfigurationError: if the credentials are unusable (nothing is started)
        """
        self.backend.check_config(credentials)
        config = RunConfig(model=model_id, prompt=prompt, credentials=credentials)
        self.store.start(items, config)
        return self._process(self.store.items, config, throttle=True, cancel=cancel)

    def retry_one(self, item_id: str) -> Optional[BatchEvent]:
        """
        Re-run a single failed or completed item with its current values.

        Returns None (and changes nothing) if the item is unknown or is
        still pending/processing.
        """
        status = self.store.status_of(item_id)
        if status not in (ResultStatus.FAILED, ResultStatus.COMPLETED):
            logger.info(f"Ignoring retry of item {item_id} in state {status}")
            return None

        config = self._run_config()
        self.backend.check_config(config.credentials)

        item = self.store.get_item(item_id)
        record, outcome = self._describe(item, config)
        return BatchEvent(item, record, outcome, 1, 1)

    def retry_all_failed(self, cancel: Optional[CancelToken] = None) -> Iterator[BatchEvent]:
        """
        Re-run every item that is failed right now, in input order, without throttling.

        The failed set is snapshotted and moved to processing immediately.
        """
        failed_ids = self.store.ids_with_status(ResultStatus.FAILED)
        if not failed_ids:
            return iter(())

        config = self._run_config()
        self.backend.check_config(config.credentials)

        for item_id in failed_ids:
            self.store.mark_processing(item_id)
        logger.info(f"Retrying {len(failed_ids)} failed items")
        items = [self.store.get_item(item_id) for item_id in failed_ids]
        return self._process(items, config, throttle=False, cancel=cancel)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run_config(self) -> RunConfig:
        if self.store.run_config is None:
            raise ConfigurationError("No batch has been started")
        return self.store.run_config

    def _process(self,
                 items: List[WorkItem],
                 config: RunConfig,
                 throttle: bool,
                 cancel: Optional[CancelToken]) -> Iterator[BatchEvent]:
        total = len(items)
        for index, item in enumerate(items):
            if cancel is not None and cancel.cancelled:
                self._cancel_remaining(items[index:])
                return

            record, outcome = self._describe(item, config)
            yield BatchEvent(item, record, outcome, index + 1, total)

            if throttle and index < total - 1:
                self._sleep(self.delay)

        logger.info(f"Processed {total} items")

    def _describe(self, item: WorkItem, config: RunConfig):
        self.store.mark_processing(item.id)

        image = item.image_reference
        if not image:
            outcome = GenerationOutcome(succeeded=False, error_detail=EMPTY_IMAGE_MESSAGE)
        else:
            logger.info(f"Describing {item.display_name} ({item.id})")
            try:
                outcome = self.backend.generate(image, item.note or None, config.model,
                                                config.prompt, config.credentials)
            except Exception as e:
                logger.exception(f"Unexpected error describing {item.id}: {e}")
                outcome = GenerationOutcome.failure(str(e), _kind_of(e))

        if outcome.succeeded:
            record = self.store.mark_completed(item.id, outcome.text)
            logger.info(f"Completed {item.display_name} ({item.id})")
        else:
            record = self.store.mark_failed(item.id, outcome.error_detail or "generation failed")
            logger.warning(f"Failed {item.display_name} ({item.id}): {record.failure_message}")
        return record, outcome

    def _cancel_remaining(self, items: List[WorkItem]):
        logger.info(f"Run cancelled; {len(items)} items not processed")
        for item in items:
            self.store.mark_failed(item.id, CANCELLED_MESSAGE)


def _kind_of(error: Exception) -> ErrorKind:
    if isinstance(error, ConfigurationError):
        return ErrorKind.CONFIGURATION
    if isinstance(error, TransportError):
        return ErrorKind.TRANSPORT
    return ErrorKind.PROVIDER
