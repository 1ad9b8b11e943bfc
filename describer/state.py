from typing import Optional

from describer.models import Settings
from describer.persistence import LocalStore
from describer.store import BatchStore


class AppState:
    """Everything a front end shares: current settings, the batch, and local storage."""

    def __init__(self,
                 settings: Optional[Settings] = None,
                 storage: Optional[LocalStore] = None,
                 batch: Optional[BatchStore] = None):
        self.storage = storage or LocalStore()
        self.settings = settings or self.storage.load_settings()
        self.batch = batch or BatchStore()

    def update_settings(self, persist: bool = True, **changes) -> Settings:
        """Apply non-None ``changes`` to the settings, optionally writing them to storage."""
        updates = {k: v for k, v in changes.items() if v is not None}
        self.settings = self.settings.model_copy(update=updates)
        if persist:
            self.storage.save_settings(self.settings)
        return self.settings
