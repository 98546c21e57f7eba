"""Query orchestration: input buffer, submission, result and error state"""
from datetime import datetime, timezone
from typing import Callable, List, Optional
import logging

from nlsql_workbench.components.api_client import WorkbenchAPIClient
from nlsql_workbench.components.errors import QueryError, ValidationError
from nlsql_workbench.components.history import HistoryStore
from nlsql_workbench.components.models import QueryRecord, ResultSet, Session, utc_timestamp
from nlsql_workbench.components.session_manager import SessionManager

logger = logging.getLogger(__name__)


class QueryController:
    """Accepts typed or spoken questions and runs them against the active session.

    State:
        query_text     current input buffer
        sql            SQL of the last successful query (or a replayed entry)
        result_set     rows of the last successful query; None before any query
        error_message  user-facing message of the last failure, "" when none
        is_busy        True exactly while a request is in flight

    A failed query keeps the previous ``sql`` and ``result_set``.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        api_client: WorkbenchAPIClient,
        history: HistoryStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session_manager = session_manager
        self.api_client = api_client
        self.history = history
        self.clock = clock

        self.query_text = ""
        self.sql = ""
        self.result_set: Optional[ResultSet] = None
        self.error_message = ""
        self.is_busy = False

        if not self.history.loaded:
            self.history.load()
        self.session_manager.add_listener(self._on_session_changed)

    @property
    def active_session(self) -> Optional[Session]:
        return self.session_manager.current

    @property
    def examples(self) -> List[str]:
        return self.session_manager.examples

    @property
    def history_records(self) -> List[QueryRecord]:
        return self.history.records

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _reject(self, message: str):
        self.error_message = message
        raise ValidationError(message)

    async def submit_query(
        self, text: Optional[str] = None, session_id: Optional[str] = None
    ) -> ResultSet:
        """Generate SQL for ``text`` (default: the input buffer) and fetch its rows.

        ``session_id``, when given, is the session the caller believes is
        active; a mismatch with the current session is rejected.
        """
        if self.is_busy:
            raise ValidationError("A query is already running.")

        text = self.query_text if text is None else text
        if not text or not text.strip():
            self._reject("Please enter a query.")
        session = self.active_session
        if session is None or not session.id:
            self._reject("Please upload a file first.")
        if session_id is not None and session_id != session.id:
            self._reject("The dataset changed. Please submit the query again.")

        question = text.strip()
        self.query_text = text
        self.is_busy = True
        logger.info("Submitting query for session %s: %r", session.id, question)
        try:
            response = await self.api_client.generate_sql(
                question, session.id if session.server_scoped else None
            )
        except QueryError as e:
            if self.session_manager.current is session:
                self.error_message = str(e)
            logger.error("Query failed (%s): %s", e.category, e)
            raise
        finally:
            self.is_busy = False

        if self.session_manager.current is not session:
            message = "The dataset changed while the query was running; its result was discarded."
            self.error_message = message
            logger.info("Dropping result for replaced session %s", session.id)
            raise QueryError(message, "stale_session")

        self.sql = response.sql
        self.result_set = response.results
        self.error_message = ""
        self.history.append(
            QueryRecord(
                natural_language=question,
                sql=response.sql,
                timestamp=utc_timestamp(self.clock()),
            )
        )
        logger.info("Query returned %d rows", len(response.results))
        return response.results

    # ------------------------------------------------------------------
    # Local input mutations
    # ------------------------------------------------------------------

    def replay(self, record: QueryRecord) -> None:
        """Show a history entry again. Rows are not persisted, so none are fetched."""
        self.query_text = record.natural_language
        self.sql = record.sql

    def use_example(self, text: str) -> None:
        self.query_text = text

    def set_query_text(self, text: str) -> None:
        self.query_text = text or ""

    def append_to_query(self, fragment: str) -> None:
        """Merge dictated text into the buffer, separated by a space."""
        fragment = (fragment or "").strip()
        if not fragment:
            return
        if self.query_text.strip():
            self.query_text = f"{self.query_text.rstrip()} {fragment}"
        else:
            self.query_text = fragment

    def clear_history(self) -> None:
        self.history.clear()

    def _on_session_changed(self, session: Optional[Session]) -> None:
        # Results belong to the dataset they were computed on
        self.sql = ""
        self.result_set = None
        self.error_message = ""
