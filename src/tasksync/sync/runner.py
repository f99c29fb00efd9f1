"""Drives the connector: credentials first, then the upload queue until empty."""

import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tasksync.config import Settings, get_settings
from tasksync.core.exceptions import BackendError, ConfigurationError, UnauthenticatedError
from tasksync.sync.connector import SyncConnector
from tasksync.sync.local_replica import LocalReplica
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SyncState:
    """What the UI shows about synchronization."""

    connected: bool = False
    syncing: bool = False
    pending_changes: int = 0
    last_synced_at: Optional[datetime] = None
    last_error: Optional[str] = None
    needs_reauth: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        data = asdict(self)
        if self.last_synced_at:
            data["last_synced_at"] = self.last_synced_at.isoformat()
        return data


class SyncRunner:
    """Single-threaded sync loop for one local replica.

    Upload failures are retried with exponential backoff; authentication and
    configuration failures stop the pass immediately and are reported through
    :attr:`state`.
    """

    def __init__(
        self,
        connector: SyncConnector,
        replica: LocalReplica,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the runner.

        Args:
            connector: Connector used for credentials and uploads
            replica: Local replica whose queue is drained
            settings: Application settings (retry policy)
            sleep: Sleep function used between retries
        """
        self.connector = connector
        self.replica = replica
        self.settings = settings or get_settings()
        self.state = SyncState(pending_changes=replica.pending_count())
        self._retrying = Retrying(
            stop=stop_after_attempt(self.settings.upload_max_attempts),
            wait=wait_exponential(
                multiplier=self.settings.upload_backoff_seconds,
                max=self.settings.upload_backoff_max_seconds,
            ),
            retry=retry_if_exception_type(BackendError),
            before_sleep=self._log_retry,
            sleep=sleep,
            reraise=True,
        )

    def trigger_sync(self) -> SyncState:
        """Run one sync pass and return the resulting state."""
        self.state.syncing = True
        self.state.last_error = None
        try:
            self.connector.fetch_credentials()
            self.state.connected = True
            self.state.needs_reauth = False
            uploaded = self._drain()
        except UnauthenticatedError as e:
            logger.warning("sync_unauthenticated", error=e.message)
            self.state.connected = False
            self.state.needs_reauth = True
            self.state.last_error = e.message
        except ConfigurationError as e:
            logger.error("sync_misconfigured", error=e.message)
            self.state.connected = False
            self.state.last_error = e.message
        except BackendError as e:
            logger.error("sync_upload_gave_up", table=e.table, error=e.message)
            self.state.last_error = e.message
        else:
            self.state.last_synced_at = datetime.now(timezone.utc)
            logger.info("sync_completed", transactions=uploaded)
        finally:
            self.state.syncing = False
            self.state.pending_changes = self.replica.pending_count()

        return self.state

    def _drain(self) -> int:
        """Upload transactions until the queue is empty."""
        uploaded = 0
        while True:
            summary = self._retrying(self.connector.upload_data, self.replica)
            if summary is None:
                return uploaded
            uploaded += 1

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "upload_retry_scheduled",
            attempt=retry_state.attempt_number,
            delay=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc) if exc else None,
        )
