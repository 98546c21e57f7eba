"""Wiring of the core components for one client instance"""
from typing import Optional
import logging

import httpx

from nlsql_workbench.components.api_client import WorkbenchAPIClient
from nlsql_workbench.components.history import HistoryStore, JSONFileKeyValueStore, KeyValueStore
from nlsql_workbench.components.query_controller import QueryController
from nlsql_workbench.components.session_manager import SessionManager
from nlsql_workbench.components.voice_input import (
    RemoteSpeechRecognizer,
    SpeechRecognizer,
    VoiceInputAdapter,
)

logger = logging.getLogger(__name__)


class Workbench:
    """One client's session manager, controller, history and voice channel.

    Everything is constructed here and passed by reference; there is no
    module-level state. A ``history`` store or ``api_client`` passed in is
    shared with other workbenches and is not closed by :meth:`close`.
    """

    def __init__(
        self,
        api_client: WorkbenchAPIClient,
        storage: Optional[KeyValueStore] = None,
        recognizer: Optional[SpeechRecognizer] = None,
        history_key: str = "nlsql_history",
        history_limit: int = 10,
        history: Optional[HistoryStore] = None,
        owns_client: bool = True,
    ):
        if history is None:
            if storage is None:
                raise ValueError("either storage or history is required")
            history = HistoryStore(storage, key=history_key, limit=history_limit)
        self.api_client = api_client
        self.owns_client = owns_client
        self.session_manager = SessionManager(api_client)
        self.history = history
        self.controller = QueryController(self.session_manager, api_client, self.history)
        self.recognizer = recognizer
        self.voice = VoiceInputAdapter(recognizer, on_transcript=self.controller.append_to_query)

    @staticmethod
    def create_api_client(settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> WorkbenchAPIClient:
        return WorkbenchAPIClient(
            settings.api_url,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    @staticmethod
    def create_history(settings, storage: Optional[KeyValueStore] = None) -> HistoryStore:
        if storage is None:
            storage = JSONFileKeyValueStore(settings.history_storage_path)
        history = HistoryStore(storage, key=settings.history_storage_key, limit=settings.history_limit)
        history.load()
        return history

    @classmethod
    def from_settings(
        cls,
        settings,
        storage: Optional[KeyValueStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        history: Optional[HistoryStore] = None,
        api_client: Optional[WorkbenchAPIClient] = None,
    ) -> "Workbench":
        """Build a workbench from settings.

        Pass ``history`` and ``api_client`` to share them between browser
        sessions; otherwise the workbench creates and owns its own.
        """
        owns_client = api_client is None
        if api_client is None:
            api_client = cls.create_api_client(settings, transport)
        if history is None:
            history = cls.create_history(settings, storage)
        recognizer = None
        if settings.voice_enabled:
            recognizer = RemoteSpeechRecognizer(api_client)
        workbench = cls(
            api_client,
            recognizer=recognizer,
            history=history,
            owns_client=owns_client,
        )
        if isinstance(recognizer, RemoteSpeechRecognizer):
            recognizer.session_id_provider = lambda: workbench.session_manager.session_id or ""
        logger.info(
            "Workbench ready: api_url=%s voice=%s history=%d entries",
            settings.api_url, workbench.voice.available, len(workbench.history),
        )
        return workbench

    async def close(self):
        if self.owns_client:
            await self.api_client.close()
