"""Voice input channel: speech recognition behind a start/stop/cancel contract"""
from abc import ABC, abstractmethod
from typing import Callable, Optional
import logging

from nlsql_workbench.components.errors import CapabilityError
from nlsql_workbench.components.models import RecordingState

logger = logging.getLogger(__name__)


class SpeechRecognizer(ABC):
    """Abstract speech-to-text capability"""

    @abstractmethod
    async def start(self) -> None:
        """Begin a recognition session"""
        pass

    @abstractmethod
    async def stop(self) -> Optional[str]:
        """Finalize the session and return the transcript, or None if nothing was heard"""
        pass

    @abstractmethod
    async def abort(self) -> None:
        """Drop the session without producing a transcript"""
        pass


class RemoteSpeechRecognizer(SpeechRecognizer):
    """Transcribes recorded audio with the backend's ``/transcribe`` endpoint.

    Audio is captured by the front end and handed over with ``feed`` before
    ``stop``; a stop without fed audio yields no transcript.
    """

    def __init__(self, api_client, session_id_provider: Callable[[], str] = lambda: ""):
        self.api_client = api_client
        self.session_id_provider = session_id_provider
        self._audio = None

    def feed(self, audio) -> None:
        """Attach a recorded clip (an ``UploadFile``) to the running session."""
        self._audio = audio

    async def start(self) -> None:
        self._audio = None

    async def stop(self) -> Optional[str]:
        audio, self._audio = self._audio, None
        if audio is None:
            return None
        transcript = await self.api_client.transcribe(audio, self.session_id_provider())
        return transcript or None

    async def abort(self) -> None:
        self._audio = None


class VoiceInputAdapter:
    """Feeds recognized speech into the query buffer.

    State machine: Idle -> Listening on start, Listening -> Idle on stop or on
    a recognizer-terminated result, Listening -> Error -> Idle on failure.
    A missing recognizer means the capability is absent; ``start`` then
    degrades instead of raising.
    """

    def __init__(
        self,
        recognizer: Optional[SpeechRecognizer],
        on_transcript: Callable[[str], None],
        on_state_change: Optional[Callable[[RecordingState], None]] = None,
    ):
        self.recognizer = recognizer
        self.on_transcript = on_transcript
        self.on_state_change = on_state_change
        self.state = RecordingState.IDLE
        self.last_error: Optional[str] = None
        # Bumped by every start/stop/cancel so late completions can tell they are stale
        self._generation = 0
        self._stopping = False

    @property
    def available(self) -> bool:
        return self.recognizer is not None

    @property
    def is_listening(self) -> bool:
        return self.state == RecordingState.LISTENING

    def _set_state(self, state: RecordingState) -> None:
        if state == self.state:
            return
        logger.debug("Voice input %s -> %s", self.state.value, state.value)
        self.state = state
        if self.on_state_change:
            self.on_state_change(state)

    def _fail(self, exc: BaseException) -> None:
        self.last_error = str(exc) or type(exc).__name__
        logger.warning("Voice input failed: %s", self.last_error)
        self._set_state(RecordingState.ERROR)
        self._set_state(RecordingState.IDLE)

    def _deliver(self, transcript: Optional[str]) -> None:
        if transcript and transcript.strip():
            self.on_transcript(transcript.strip())

    async def start(self) -> None:
        """Begin listening. A no-op while already listening."""
        if self.is_listening:
            return
        if self.recognizer is None:
            self._fail(CapabilityError("Speech recognition is not available"))
            return

        self._generation += 1
        generation = self._generation
        self.last_error = None
        self._set_state(RecordingState.LISTENING)
        try:
            await self.recognizer.start()
        except Exception as e:
            if generation == self._generation:
                self._fail(e)

    async def stop(self) -> Optional[str]:
        """Finalize and append the transcript, if any, to the query text."""
        if not self.is_listening or self._stopping:
            return None
        self._generation += 1
        generation = self._generation
        self._stopping = True
        try:
            transcript = await self.recognizer.stop()
        except Exception as e:
            if generation == self._generation:
                self._fail(e)
            return None
        finally:
            self._stopping = False
        if generation != self._generation:
            return None
        self._set_state(RecordingState.IDLE)
        self._deliver(transcript)
        return transcript

    async def cancel(self) -> None:
        """Abort listening and discard anything recognized so far."""
        if not self.is_listening:
            return
        self._generation += 1
        self._set_state(RecordingState.IDLE)
        try:
            await self.recognizer.abort()
        except Exception as e:
            logger.warning("Recognizer abort failed: %s", e)

    def handle_result(self, transcript: Optional[str]) -> None:
        """Recognizer-initiated termination with a final transcript."""
        if not self.is_listening:
            return
        self._generation += 1
        self._set_state(RecordingState.IDLE)
        self._deliver(transcript)

    def handle_error(self, exc: BaseException) -> None:
        """Recognizer-initiated failure."""
        if not self.is_listening:
            return
        self._generation += 1
        self._fail(exc)
