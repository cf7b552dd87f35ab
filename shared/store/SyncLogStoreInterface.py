from abc import ABC, abstractmethod

from shared.helper.HelperConfig import HelperConfig
from shared.store.models.SyncRun import SyncRun, SyncType


class SyncLogStoreInterface(ABC):
    """Append-only audit log of sync runs.

    A run is created as STARTED and transitions exactly once to COMPLETED or
    FAILED. Implementations raise SyncLogStateError on any further update.
    The log does not prevent concurrent writers; single-flight is enforced by
    the sync service.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config

    @abstractmethod
    async def create_run(self, sync_type: SyncType) -> SyncRun:
        """Records the start of a sync attempt."""
        pass

    @abstractmethod
    async def complete_run(self, run_id: str, documents_synced: int, chunks_created: int) -> SyncRun:
        """
        Marks a run COMPLETED with its counters and completion time.

        Raises:
            NotFound: If the run does not exist.
            SyncLogStateError: If the run already reached a terminal status.
        """
        pass

    @abstractmethod
    async def fail_run(self, run_id: str, error_message: str) -> SyncRun:
        """
        Marks a run FAILED with the error message and completion time.

        Raises:
            NotFound: If the run does not exist.
            SyncLogStateError: If the run already reached a terminal status.
        """
        pass

    @abstractmethod
    async def get_last_successful_run(self) -> SyncRun | None:
        """
        Returns:
            SyncRun | None: The COMPLETED run (full or incremental) with the latest completed_at.
        """
        pass

    @abstractmethod
    async def list_runs(self, limit: int = 20) -> list[SyncRun]:
        """
        Returns:
            list[SyncRun]: The most recent runs, newest first.
        """
        pass
