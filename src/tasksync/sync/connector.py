"""Bridge between the local replica and the remote store.

The local sync runtime calls :meth:`SyncConnector.fetch_credentials` to keep
pulling remote changes and :meth:`SyncConnector.upload_data` to push queued
local writes. A transaction is acknowledged only after every mutation in it
reached the remote store; on failure it stays queued and is replayed whole on
the next pass, which is safe because upserts and deletes are keyed by row id.
"""

from typing import Dict, List, Optional

from tasksync.auth import SessionProvider
from tasksync.backend import Filter, RemoteBackend
from tasksync.catalog import get_table, is_syncable
from tasksync.config import Settings, get_settings
from tasksync.core.exceptions import BackendError, ConfigurationError, UnauthenticatedError
from tasksync.sync.mutations import (
    MutationKind,
    QueuedMutation,
    SyncCredentials,
    TransactionSource,
    UploadSummary,
)
from tasksync.sync.sanitizer import sanitize_record
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)


class SyncConnector:
    """Uploads queued mutations and hands out sync credentials."""

    def __init__(
        self,
        backend: RemoteBackend,
        sessions: SessionProvider,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the connector.

        Args:
            backend: User-scoped remote backend
            sessions: Source of the current authenticated session
            settings: Application settings
        """
        self.backend = backend
        self.sessions = sessions
        self.settings = settings or get_settings()

    def fetch_credentials(self) -> SyncCredentials:
        """
        Return the endpoint and bearer token for the sync runtime.

        Raises:
            UnauthenticatedError: no session, or the session has expired
            ConfigurationError: the sync endpoint is not configured
        """
        session = self.sessions.current_session()
        if session is None:
            raise UnauthenticatedError("Not logged in")
        if session.is_expired():
            raise UnauthenticatedError("Session expired")

        endpoint = self.settings.sync_endpoint_url
        if not endpoint:
            raise ConfigurationError("Sync endpoint is not configured")

        return SyncCredentials(
            endpoint=endpoint,
            token=session.access_token,
            expires_at=session.expires_at,
        )

    def upload_data(self, source: TransactionSource) -> Optional[UploadSummary]:
        """
        Push the next pending transaction to the remote store.

        Args:
            source: Local replica handing out pending transactions

        Returns:
            Summary of the acknowledged transaction, or None if nothing is pending

        Raises:
            BackendError: a remote write failed; the transaction stays queued
        """
        transaction = source.get_next_transaction()
        if transaction is None:
            return None

        summary = UploadSummary(transaction_id=transaction.transaction_id)
        last_op: Optional[QueuedMutation] = None

        try:
            for mutation in transaction.mutations:
                last_op = mutation
                if self._apply(mutation):
                    summary.applied += 1
                else:
                    summary.skipped.append(mutation.table)
        except BackendError as e:
            logger.error(
                "upload_failed",
                transaction_id=transaction.transaction_id,
                table=last_op.table if last_op else None,
                op=last_op.kind.value if last_op else None,
                row_id=last_op.row_id if last_op else None,
                error=e.message,
            )
            raise

        transaction.complete()
        logger.info(
            "transaction_uploaded",
            transaction_id=transaction.transaction_id,
            applied=summary.applied,
            skipped=len(summary.skipped),
        )
        return summary

    def _apply(self, mutation: QueuedMutation) -> bool:
        """Apply one mutation; False if its table is not synced."""
        if not is_syncable(mutation.table):
            logger.warning(
                "unsyncable_table_skipped", table=mutation.table, row_id=mutation.row_id
            )
            return False

        table_def = get_table(mutation.table)
        try:
            key = table_def.key_filter(mutation.row_id)
        except ValueError as e:
            raise BackendError(str(e), table=mutation.table) from e
        filters = _key_filters(key)

        if mutation.kind is MutationKind.UPSERT:
            record = sanitize_record(mutation.data or {})
            record.update(key)
            self.backend.upsert(mutation.table, record).raise_for_error()
        elif mutation.kind is MutationKind.PARTIAL_UPDATE:
            changes = sanitize_record(mutation.data or {})
            for column in key:
                changes.pop(column, None)
            # Nothing left to change
            if changes:
                self.backend.update(mutation.table, changes, filters).raise_for_error()
        elif mutation.kind is MutationKind.DELETE:
            self.backend.delete(mutation.table, filters).raise_for_error()

        return True


def _key_filters(key: Dict[str, str]) -> List[Filter]:
    return [Filter.eq(column, value) for column, value in key.items()]
