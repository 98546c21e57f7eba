"""Gradio web interface for the NL-to-SQL workbench"""
import logging
import mimetypes
import os
from typing import List, Optional, Tuple

import gradio as gr

from nlsql_workbench.config import settings
from nlsql_workbench.components.api_client import UploadFile, WorkbenchAPIClient
from nlsql_workbench.components.errors import QueryError, UploadError, ValidationError
from nlsql_workbench.components.history import HistoryStore
from nlsql_workbench.components.models import QueryRecord
from nlsql_workbench.components.schema_introspector import describe_schema
from nlsql_workbench.components.voice_input import RemoteSpeechRecognizer
from nlsql_workbench.components.workbench import Workbench

logger = logging.getLogger(__name__)

ACCEPTED_FILE_TYPES = [".csv", ".txt", ".xls", ".xlsx", ".db"]


def _read_upload(path: Optional[str]) -> Optional[UploadFile]:
    """Turn a Gradio temp-file path into an UploadFile."""
    if not path:
        return None
    with open(path, "rb") as f:
        content = f.read()
    content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return UploadFile(filename=os.path.basename(path), content=content, content_type=content_type)


class WorkbenchApp:
    """Main application class for the workbench UI"""

    def __init__(
        self,
        api_client: Optional[WorkbenchAPIClient] = None,
        history: Optional[HistoryStore] = None,
    ):
        # Shared by every browser session: one connection pool, one history log
        if api_client is None:
            api_client = Workbench.create_api_client(settings)
        if history is None:
            history = Workbench.create_history(settings)
        self.api_client = api_client
        self.history = history
        logger.info(
            "Startup config: api_url=%s timeout=%s voice_enabled=%s history_path=%s",
            settings.api_url,
            settings.request_timeout_seconds,
            settings.voice_enabled,
            settings.history_storage_path,
        )

    # ------------------------------------------------------------------
    # Session State Management (per-browser isolation)
    # ------------------------------------------------------------------

    def create_session_state(self) -> Workbench:
        """Create a new workbench for a browser session."""
        return Workbench.from_settings(settings, history=self.history, api_client=self.api_client)

    async def close(self):
        """Release the shared backend connection pool."""
        await self.api_client.close()

    def _ensure_session_initialized(self, workbench: Optional[Workbench]) -> Workbench:
        if workbench is None:
            workbench = self.create_session_state()
        return workbench

    # ------------------------------------------------------------------
    # Formatting Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _format_session(workbench: Workbench) -> str:
        session = workbench.session_manager.current
        if session is None:
            return "*No file uploaded yet.*"
        return f"File uploaded successfully! Session ID: `{session.id[:8]}...` ({session.filename})"

    @staticmethod
    def _format_schema(workbench: Workbench) -> str:
        session = workbench.session_manager.current
        if session is None:
            return ""
        if session.schema is None and session.schema_text:
            return f"```\n{session.schema_text}\n```"
        return describe_schema(session.schema)

    @staticmethod
    def _history_choices(records: List[QueryRecord]) -> List[Tuple[str, int]]:
        return [
            (f"{record.natural_language}  ·  {record.timestamp}", index)
            for index, record in enumerate(records)
        ]

    def _render(self, workbench: Workbench) -> tuple:
        """Project the controller state onto every output component."""
        controller = workbench.controller
        result_set = controller.result_set
        if result_set is None:
            table = gr.update(value=None, visible=False)
        else:
            table = gr.update(
                value={"headers": result_set.columns, "data": result_set.as_table()},
                visible=True,
            )
        error = f"❌ {controller.error_message}" if controller.error_message else ""
        return (
            controller.query_text,
            self._format_session(workbench),
            self._format_schema(workbench),
            gr.update(choices=controller.examples, value=None),
            error,
            controller.sql,
            table,
            gr.update(choices=self._history_choices(controller.history_records), value=None),
            workbench,
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def handle_upload(self, path, workbench):
        workbench = self._ensure_session_initialized(workbench)
        try:
            await workbench.session_manager.upload(_read_upload(path))
        except UploadError as e:
            logger.info("Upload rejected (%s): %s", e.reason, e)
            workbench.controller.error_message = str(e)
        return self._render(workbench)

    async def handle_submit(self, text, workbench):
        workbench = self._ensure_session_initialized(workbench)
        workbench.controller.set_query_text(text)
        try:
            await workbench.controller.submit_query()
        except (ValidationError, QueryError) as e:
            logger.debug("Submission not completed: %s", e)
        return self._render(workbench)

    def handle_example(self, example, workbench):
        workbench = self._ensure_session_initialized(workbench)
        if example:
            workbench.controller.use_example(example)
        return self._render(workbench)

    def handle_history(self, index, workbench):
        workbench = self._ensure_session_initialized(workbench)
        records = workbench.controller.history_records
        if index is not None and 0 <= index < len(records):
            workbench.controller.replay(records[index])
        return self._render(workbench)

    def handle_clear_history(self, workbench):
        workbench = self._ensure_session_initialized(workbench)
        workbench.controller.clear_history()
        return self._render(workbench)

    async def handle_voice_start(self, text, workbench):
        workbench = self._ensure_session_initialized(workbench)
        workbench.controller.set_query_text(text)
        await workbench.voice.start()
        return workbench

    async def handle_voice_stop(self, audio_path, text, workbench):
        workbench = self._ensure_session_initialized(workbench)
        # Keep whatever was typed while recording; the transcript is appended to it
        workbench.controller.set_query_text(text)
        if isinstance(workbench.recognizer, RemoteSpeechRecognizer) and audio_path:
            workbench.recognizer.feed(_read_upload(audio_path))
        await workbench.voice.stop()
        if workbench.voice.last_error:
            workbench.controller.error_message = f"Voice input failed: {workbench.voice.last_error}"
        return self._render(workbench)

    async def handle_voice_cancel(self, workbench):
        workbench = self._ensure_session_initialized(workbench)
        await workbench.voice.cancel()
        return workbench

    # ------------------------------------------------------------------
    # Interface
    # ------------------------------------------------------------------

    def create_interface(self) -> gr.Blocks:
        """Create Gradio interface"""
        with gr.Blocks(title="NL to SQL Workbench") as demo:
            gr.Markdown(
                "# NL to SQL Workbench\n"
                "Upload your data file and ask questions in natural language."
            )
            session_state = gr.State(value=None)

            with gr.Row():
                with gr.Column(scale=2):
                    gr.Markdown("## 📁 Upload Your Data")
                    file_input = gr.File(
                        label="CSV, TXT, Excel or SQLite file",
                        file_types=ACCEPTED_FILE_TYPES,
                        type="filepath",
                    )
                    upload_btn = gr.Button("Upload", variant="primary")
                    upload_status = gr.Markdown("*No file uploaded yet.*")

                    gr.Markdown("## 🗣️ Ask your question")
                    msg = gr.Textbox(
                        lines=4,
                        placeholder="E.g., List all employees hired after 2020",
                        show_label=False,
                    )
                    voice_input = gr.Audio(
                        sources=["microphone"],
                        type="filepath",
                        label="Dictate",
                        visible=settings.voice_enabled,
                    )
                    submit_btn = gr.Button("Generate SQL", variant="primary")
                    error_output = gr.Markdown("")

                    sql_output = gr.Code(label="Generated SQL", language="sql", interactive=False)
                    results_output = gr.Dataframe(label="Results", visible=False, interactive=False)

                with gr.Column(scale=1):
                    gr.Markdown("### Example Queries")
                    examples = gr.Radio(choices=[], show_label=False)
                    gr.Markdown("### Database Schema")
                    schema_output = gr.Markdown("")
                    gr.Markdown("### Query History")
                    history = gr.Dropdown(choices=[], show_label=False, interactive=True)
                    clear_history_btn = gr.Button("🗑️ Clear", variant="secondary", size="sm")

            outputs = [
                msg, upload_status, schema_output, examples, error_output,
                sql_output, results_output, history, session_state,
            ]

            demo.load(lambda ws: self._render(self._ensure_session_initialized(ws)),
                      inputs=[session_state], outputs=outputs)
            upload_btn.click(self.handle_upload, inputs=[file_input, session_state], outputs=outputs)
            submit_btn.click(self.handle_submit, inputs=[msg, session_state], outputs=outputs)
            msg.submit(self.handle_submit, inputs=[msg, session_state], outputs=outputs)
            examples.input(self.handle_example, inputs=[examples, session_state], outputs=outputs)
            history.input(self.handle_history, inputs=[history, session_state], outputs=outputs)
            clear_history_btn.click(self.handle_clear_history, inputs=[session_state], outputs=outputs)

            voice_input.start_recording(
                self.handle_voice_start, inputs=[msg, session_state], outputs=[session_state]
            )
            voice_input.stop_recording(
                self.handle_voice_stop, inputs=[voice_input, msg, session_state], outputs=outputs
            )
            voice_input.clear(self.handle_voice_cancel, inputs=[session_state], outputs=[session_state])

        return demo


def main():
    """Main entry point"""
    app = WorkbenchApp()
    demo = app.create_interface()

    demo.queue(default_concurrency_limit=1)
    demo.launch(
        server_name=settings.server_host,
        server_port=settings.gradio_server_port,
        share=settings.gradio_share,
    )


if __name__ == "__main__":
    main()
