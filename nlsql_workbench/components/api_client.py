"""Async HTTP client for the translation backend"""
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Optional, Union
import logging

import httpx

from nlsql_workbench.components.errors import (
    QueryError,
    UploadError,
    describe_transport_error,
)
from nlsql_workbench.components.models import ResultSet, Table

logger = logging.getLogger(__name__)

FileContent = Union[bytes, BinaryIO]


@dataclass
class UploadFile:
    """A file picked by the user, ready to be sent as multipart form data"""

    filename: str
    content: FileContent
    content_type: str = "application/octet-stream"


@dataclass
class UploadResponse:
    """Outcome of ``POST /upload``.

    ``session_id`` is None for backends without a session concept; those
    return the detected schema inline as ``schema_text`` instead.
    """

    session_id: Optional[str]
    schema_text: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GenerateResponse:
    """Outcome of ``POST /generate-sql``"""

    sql: str
    results: ResultSet


class WorkbenchAPIClient:
    """Talks to the backend's upload, schema and SQL generation endpoints.

    Transport and backend failures are mapped onto ``UploadError`` and
    ``QueryError``; schema fetches raise ``QueryError`` and callers decide
    whether that is fatal.
    """

    UPLOAD_PATH = "/upload"
    SCHEMA_PATH = "/schemas/{session_id}"
    GENERATE_PATH = "/generate-sql"
    TRANSCRIBE_PATH = "/transcribe"

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self) -> "WorkbenchAPIClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def upload(self, file: UploadFile) -> UploadResponse:
        """Send a dataset file to the backend."""
        try:
            response = await self._client.post(
                self.UPLOAD_PATH,
                files={"file": (file.filename, file.content, file.content_type)},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            category, message = describe_transport_error(e)
            logger.error("Upload of %s failed (%s): %s", file.filename, category, e)
            reason = "rejected" if category in ("rejected", "server_error", "bad_response") else "transport"
            raise UploadError(f"Upload failed. {message}", reason=reason) from e

        if not isinstance(body, dict):
            raise UploadError("Upload failed. The backend returned an unexpected response.")
        error = body.get("error")
        if isinstance(error, str) and error.strip():
            raise UploadError(f"Upload failed. {error.strip()}")

        session_id = body.get("session_id")
        schema_text = body.get("schema")
        if session_id is not None and not (isinstance(session_id, str) and session_id):
            raise UploadError("Upload failed. The backend returned an invalid session id.")
        if session_id is None and schema_text is None:
            raise UploadError("Upload failed. The backend returned neither a session nor a schema.")

        logger.info(
            "Uploaded %s (session=%s, inline_schema=%s)",
            file.filename, session_id, schema_text is not None,
        )
        return UploadResponse(
            session_id=session_id,
            schema_text=schema_text if isinstance(schema_text, str) else None,
            raw=body,
        )

    async def fetch_schema(self, session_id: str) -> List[Table]:
        """Fetch the introspected tables of an uploaded dataset."""
        try:
            response = await self._client.get(
                self.SCHEMA_PATH.format(session_id=session_id)
            )
            response.raise_for_status()
            body = response.json()
            if not body.get("success"):
                raise QueryError("Backend reported schema introspection failure.", "rejected")
            return [Table.from_dict(t) for t in body.get("tables") or []]
        except QueryError:
            raise
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            category, message = describe_transport_error(e)
            raise QueryError(message, category) from e

    async def generate_sql(self, query: str, session_id: Optional[str] = None) -> GenerateResponse:
        """Translate a question into SQL and run it against the session's data."""
        payload: Dict[str, Any] = {"query": query}
        if session_id is not None:
            payload["session_id"] = session_id

        try:
            response = await self._client.post(self.GENERATE_PATH, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            category, message = describe_transport_error(e)
            logger.error("SQL generation failed (%s): %s", category, e)
            raise QueryError(message, category) from e

        if not isinstance(body, dict):
            raise QueryError("The backend returned a response the workbench could not read.", "bad_response")
        error = body.get("error")
        if isinstance(error, str) and error.strip():
            raise QueryError(error.strip(), "rejected")
        sql = body.get("sql")
        if not isinstance(sql, str) or not sql.strip():
            raise QueryError("The backend returned no SQL for this question.", "bad_response")

        return GenerateResponse(sql=sql, results=ResultSet.from_rows(body.get("results")))

    async def transcribe(self, audio: UploadFile, session_id: str = "") -> str:
        """Send recorded audio to the backend and return the transcript."""
        try:
            response = await self._client.post(
                self.TRANSCRIBE_PATH,
                files={"file": (audio.filename, audio.content, audio.content_type)},
                data={"session_id": session_id},
            )
            response.raise_for_status()
            body = response.json()
            if not isinstance(body, dict):
                raise TypeError("transcription response must be a JSON object")
        except (httpx.HTTPError, ValueError, TypeError) as e:
            category, message = describe_transport_error(e)
            logger.error("Transcription failed (%s): %s", category, e)
            raise QueryError(message, category) from e
        return str(body.get("text") or "").strip()
