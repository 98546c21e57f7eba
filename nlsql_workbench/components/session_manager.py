"""Upload lifecycle and the session that scopes queries to one dataset"""
from typing import Callable, List, Optional
import logging
import uuid

from nlsql_workbench.components.api_client import UploadFile, WorkbenchAPIClient
from nlsql_workbench.components.errors import QueryError, UploadError
from nlsql_workbench.components.models import Session, Table
from nlsql_workbench.components.schema_introspector import generate_examples

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[Session]], None]


class SessionManager:
    """Owns the active session.

    Uploads are atomic: a failed upload leaves the previous session in place,
    a successful one replaces it and notifies listeners. Only one upload may
    be in flight; each carries a generation number and commits only if no
    ``close`` happened in the meantime.
    """

    def __init__(self, api_client: WorkbenchAPIClient):
        self.api_client = api_client
        self.current: Optional[Session] = None
        self.is_busy = False
        self._generation = 0
        self._listeners: List[SessionListener] = []

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    @property
    def session_id(self) -> Optional[str]:
        return self.current.id if self.current else None

    @property
    def schema(self) -> Optional[List[Table]]:
        return self.current.schema if self.current else None

    @property
    def examples(self) -> List[str]:
        return generate_examples(self.schema)

    async def upload(self, file: Optional[UploadFile]) -> Session:
        """Upload a dataset and make it the active session."""
        if file is None or not file.filename:
            raise UploadError("Please choose a file first.", reason="missing_file")
        if self.is_busy:
            raise UploadError("Another upload is still in progress.", reason="busy")

        self._generation += 1
        generation = self._generation
        self.is_busy = True
        try:
            response = await self.api_client.upload(file)
        finally:
            self.is_busy = False

        if generation != self._generation:
            logger.info("Discarding upload of %s: workbench was reset meanwhile", file.filename)
            raise UploadError("Upload was superseded.", reason="superseded")

        server_scoped = response.session_id is not None
        session = Session(
            id=response.session_id if server_scoped else uuid.uuid4().hex,
            filename=file.filename,
            schema_text=response.schema_text,
            server_scoped=server_scoped,
        )
        self._commit(session)

        if server_scoped:
            await self.fetch_schema(session.id)
        return session

    async def fetch_schema(self, session_id: str) -> Optional[List[Table]]:
        """Introspect the session's tables. Failures only cost the examples."""
        try:
            tables = await self.api_client.fetch_schema(session_id)
        except QueryError as e:
            logger.warning("Schema fetch for session %s failed: %s", session_id, e)
            return None

        if self.current is None or self.current.id != session_id:
            logger.info("Ignoring schema for replaced session %s", session_id)
            return tables
        self.current.schema = tables
        logger.info("Session %s schema: %d tables", session_id, len(tables))
        return tables

    def close(self) -> None:
        """Drop the active session; an in-flight upload will not commit."""
        self._generation += 1
        if self.current is not None:
            logger.info("Closing session %s", self.current.id)
            self.current = None
            self._notify()

    def _commit(self, session: Session) -> None:
        previous = self.current
        self.current = session
        logger.info(
            "Session %s active for %s (replaces %s)",
            session.id, session.filename, previous.id if previous else None,
        )
        self._notify()

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self.current)
