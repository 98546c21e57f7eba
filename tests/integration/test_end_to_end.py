"""End-to-end integration tests"""
import json

import httpx
import pytest
from nlsql_workbench.config import Settings
from nlsql_workbench.components.api_client import UploadFile
from nlsql_workbench.components.errors import QueryError
from nlsql_workbench.components.history import JSONFileKeyValueStore
from nlsql_workbench.components.models import RecordingState
from nlsql_workbench.components.schema_introspector import DEFAULT_EXAMPLES
from nlsql_workbench.components.workbench import Workbench


class FakeBackend:
    """Minimal stand-in for the translation service"""

    def __init__(self):
        self.sessions = {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        path = request.url.path
        if path == "/upload":
            session_id = f"session-{len(self.sessions) + 1}"
            self.sessions[session_id] = [
                {"name": "sqlite_sequence", "columns": [{"name": "seq", "type": "INTEGER"}]},
                {
                    "name": "employees",
                    "row_count": 2,
                    "columns": [
                        {"name": "employee_id", "type": "INTEGER"},
                        {"name": "salary", "type": "REAL FLOAT"},
                        {"name": "name", "type": "TEXT"},
                    ],
                },
            ]
            return httpx.Response(200, json={"session_id": session_id})
        if path.startswith("/schemas/"):
            tables = self.sessions.get(path.rsplit("/", 1)[-1])
            if tables is None:
                return httpx.Response(404, json={"detail": "Session not found"})
            return httpx.Response(200, json={"success": True, "tables": tables})
        if path == "/generate-sql":
            payload = json.loads(request.content)
            if payload.get("session_id") not in self.sessions:
                return httpx.Response(200, json={"sql": "", "error": "Unknown session"})
            if "salary" not in payload["query"]:
                return httpx.Response(200, json={"sql": "", "error": "Invalid question."})
            return httpx.Response(200, json={
                "sql": "SELECT name, salary FROM employees ORDER BY salary DESC",
                "results": [{"name": "Ada", "salary": 120.0}, {"name": "Lin", "salary": 95.5}],
            })
        if path == "/transcribe":
            return httpx.Response(200, json={"text": "by salary", "confidence": -0.1})
        return httpx.Response(404, json={"detail": "Not Found"})


class TestEndToEnd:
    """End-to-end tests"""

    @pytest.fixture
    def backend(self):
        return FakeBackend()

    @pytest.fixture
    def settings(self, tmp_path):
        return Settings(
            API_URL="http://backend.test",
            HISTORY_STORAGE_PATH=str(tmp_path / "storage.json"),
            VOICE_ENABLED=True,
        )

    def _workbench(self, settings, backend):
        return Workbench.from_settings(settings, transport=httpx.MockTransport(backend))

    @pytest.mark.asyncio
    async def test_upload_query_and_history(self, settings, backend):
        """Upload, pick an example, query, and reload history in a new client"""
        workbench = self._workbench(settings, backend)
        controller = workbench.controller
        assert controller.examples == DEFAULT_EXAMPLES

        await workbench.session_manager.upload(UploadFile("staff.db", b"SQLite format 3\x00"))
        assert controller.examples == [
            "Show all records from employees",
            "What is the average salary in employees?",
            "Find the highest salary in employees",
            'Search for records where name contains "example"',
        ]

        controller.use_example(controller.examples[2])
        rows = await controller.submit_query()
        assert rows.columns == ["name", "salary"]
        assert controller.sql.startswith("SELECT name, salary")
        assert controller.history_records[0].natural_language == "Find the highest salary in employees"
        await workbench.close()

        # A fresh client reloads the persisted log
        reopened = self._workbench(settings, backend)
        records = reopened.controller.history_records
        assert [r.sql for r in records] == ["SELECT name, salary FROM employees ORDER BY salary DESC"]
        reopened.controller.replay(records[0])
        assert reopened.controller.query_text == "Find the highest salary in employees"
        assert reopened.controller.result_set is None
        await reopened.close()

    @pytest.mark.asyncio
    async def test_failed_query_not_recorded(self, settings, backend):
        workbench = self._workbench(settings, backend)
        await workbench.session_manager.upload(UploadFile("staff.csv", b"name,salary\n"))
        await workbench.controller.submit_query("top salary")
        with pytest.raises(QueryError):
            await workbench.controller.submit_query("tell me a joke")
        assert workbench.controller.error_message == "Invalid question."
        assert workbench.controller.result_set.rows[0]["name"] == "Ada"
        assert len(workbench.controller.history_records) == 1
        assert workbench.controller.is_busy is False
        await workbench.close()

    @pytest.mark.asyncio
    async def test_voice_composes_with_typed_text(self, settings, backend):
        workbench = self._workbench(settings, backend)
        await workbench.session_manager.upload(UploadFile("staff.csv", b"name,salary\n"))
        workbench.controller.set_query_text("list employees")

        assert workbench.voice.available
        await workbench.voice.start()
        workbench.recognizer.feed(UploadFile("clip.wav", b"RIFF", "audio/wav"))
        await workbench.voice.stop()
        assert workbench.voice.state == RecordingState.IDLE
        assert workbench.controller.query_text == "list employees by salary"

        # Stop straight after start: nothing recorded, nothing appended
        await workbench.voice.start()
        await workbench.voice.stop()
        assert workbench.controller.query_text == "list employees by salary"
        assert workbench.voice.state == RecordingState.IDLE
        assert ("POST", "/transcribe") in backend.requests
        await workbench.close()

    @pytest.mark.asyncio
    async def test_history_file_corruption_tolerated(self, settings, backend, tmp_path):
        (tmp_path / "storage.json").write_text("{oops", encoding="utf-8")
        workbench = self._workbench(settings, backend)
        assert workbench.controller.history_records == []
        await workbench.session_manager.upload(UploadFile("staff.csv", b"x"))
        await workbench.controller.submit_query("salary please")
        stored = JSONFileKeyValueStore(settings.history_storage_path).get("nlsql_history")
        assert json.loads(stored)[0]["query"] == "salary please"
        await workbench.close()
