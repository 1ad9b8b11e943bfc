import logging
import threading
from typing import Dict, List, Optional

from describer.models import ResultRecord, ResultStatus, RunConfig, StatusCounts, WorkItem

logger = logging.getLogger(__name__)


class BatchStore:
    """
    Canonical list of work items and their result records for one batch.

    Records are created in lockstep with items by :meth:`start`, mutated in
    place through the ``mark_*`` point updates and only ever cleared all at
    once by :meth:`reset`.  Readers get copies from :meth:`results`.
    """

    def __init__(self):
        self.run_config: Optional[RunConfig] = None
        self._items: List[WorkItem] = []
        self._records: List[ResultRecord] = []
        self._index: Dict[str, int] = {}     # id -> position in both lists
        self._state_lock = threading.Lock()

    def start(self, items: List[WorkItem], run_config: RunConfig) -> None:
        """Replace the batch with ``items``, each with a fresh pending record."""
        index = {}
        for position, item in enumerate(items):
            if item.id in index:
                raise ValueError(f"Duplicate work item id {item.id}")
            index[item.id] = position

        with self._state_lock:
            self.run_config = run_config
            self._items = [item.model_copy() for item in items]
            self._records = [ResultRecord.for_item(item) for item in self._items]
            self._index = index
        logger.info(f"Batch started with {len(items)} items (model={run_config.model})")

    def reset(self) -> None:
        with self._state_lock:
            self.run_config = None
            self._items = []
            self._records = []
            self._index = {}
        logger.info("Batch cleared")

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[WorkItem]:
        with self._state_lock:
            return list(self._items)

    def get_item(self, item_id: str) -> Optional[WorkItem]:
        with self._state_lock:
            position = self._index.get(item_id)
            return None if position is None else self._items[position]

    def get_result(self, item_id: str) -> Optional[ResultRecord]:
        with self._state_lock:
            position = self._index.get(item_id)
            return None if position is None else self._records[position].model_copy()

    def status_of(self, item_id: str) -> Optional[ResultStatus]:
        with self._state_lock:
            position = self._index.get(item_id)
            return None if position is None else self._records[position].status

    def results(self) -> List[ResultRecord]:
        with self._state_lock:
            return [record.model_copy() for record in self._records]

    def ids_with_status(self, status: ResultStatus) -> List[str]:
        """Ids in input order whose record currently has ``status``."""
        with self._state_lock:
            return [record.id for record in self._records if record.status == status]

    def counts(self) -> StatusCounts:
        counts = StatusCounts()
        with self._state_lock:
            for record in self._records:
                setattr(counts, record.status.value, getattr(counts, record.status.value) + 1)
        return counts

    # -- point updates -----------------------------------------------------

    def mark_processing(self, item_id: str) -> ResultRecord:
        return self._update(item_id, lambda record: record.mark_processing())

    def mark_completed(self, item_id: str, text: str) -> ResultRecord:
        return self._update(item_id, lambda record: record.mark_completed(text))

    def mark_failed(self, item_id: str, message: str) -> ResultRecord:
        return self._update(item_id, lambda record: record.mark_failed(message))

    def _update(self, item_id: str, change) -> ResultRecord:
        with self._state_lock:
            position = self._index.get(item_id)
            if position is None:
                raise KeyError(f"Unknown work item {item_id}")
            record = self._records[position]
            change(record)
            return record.model_copy()
