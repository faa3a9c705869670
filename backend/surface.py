import logging, threading, time, uuid
from typing import Callable

from starlette.concurrency import run_in_threadpool

from backend.prompts import busy_label
from backend.schemas import Idle, Submitting, Succeeded, Failed, Success, SurfaceView, mode_for

logger = logging.getLogger(__name__)

UNEXPECTED_MSG = "An unexpected error occurred."


def is_submit_keystroke(key: str, shift: bool = False) -> bool:
    # Shift+Enter inserts a line break instead
    return key == "Enter" and not shift


class ChatSurface:
    """Transient UI state for one chat window: prompt, mode and the last outcome.

    State moves idle -> submitting -> (succeeded | failed). A new submission
    from succeeded/failed replaces the previous outcome. Only one call is in
    flight at a time; submissions while busy are ignored.
    """

    def __init__(self, client_factory: Callable):
        self.client_factory = client_factory
        self.prompt = ""
        self.deep = False
        self.state = Idle()

    @property
    def mode(self):
        return mode_for(self.deep)

    @property
    def busy(self) -> bool:
        return self.state.status == "submitting"

    def set_prompt(self, text: str):
        self.prompt = text or ""

    def set_mode(self, deep: bool):
        self.deep = bool(deep)

    def toggle_mode(self):
        self.deep = not self.deep

    def can_submit(self) -> bool:
        return bool(self.prompt.strip()) and not self.busy

    async def submit(self) -> bool:
        if not self.can_submit():
            logger.debug("Submit ignored (busy=%s, blank=%s)", self.busy, not self.prompt.strip())
            return False

        prompt, deep = self.prompt, self.deep
        self.state = Submitting(mode=mode_for(deep))
        try:
            client = self.client_factory()
            result = await run_in_threadpool(client.generate, prompt, deep)
            if isinstance(result, Success):
                self.state = Succeeded(text=result.text, model=result.model)
            else:
                self.state = Failed(error=result.error, message=result.message)
        except Exception as e:
            logger.exception("Generation failed outside the client")
            self.state = Failed(error="unknown", message=str(e) or UNEXPECTED_MSG)
        finally:
            if self.busy:
                self.state = Failed(error="unknown", message=UNEXPECTED_MSG)
        return True

    def view(self) -> SurfaceView:
        return SurfaceView(
            prompt=self.prompt,
            mode=self.mode,
            busy=self.busy,
            can_submit=self.can_submit(),
            busy_label=busy_label(self.state.mode if self.busy else self.mode),
            state=self.state,
        )


def sanitize_session_id(value, create_if_empty=True):
    raw = (value or "").strip()
    safe = "".join(ch for ch in raw if ch.isalnum() or ch in {"-", "_"})[:64]
    if not safe and create_if_empty:
        return uuid.uuid4().hex
    return safe


class SurfaceSessions:
    """One ChatSurface per browser session, oldest idle ones dropped past max_sessions."""

    def __init__(self, client_factory: Callable, max_sessions: int = 200):
        self.client_factory = client_factory
        self.max_sessions = max_sessions
        self._surfaces = {}
        self._last_seen = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._surfaces)

    def __contains__(self, session_id):
        return session_id in self._surfaces

    def get(self, session_id: str) -> ChatSurface:
        with self._lock:
            surface = self._surfaces.get(session_id)
            if surface is None:
                surface = ChatSurface(client_factory=self.client_factory)
                self._surfaces[session_id] = surface
                logger.debug("New chat session %s", session_id)
            self._last_seen[session_id] = time.monotonic()
            self._cleanup_unlocked(keep=session_id)
            return surface

    def _cleanup_unlocked(self, keep):
        if len(self._surfaces) <= self.max_sessions:
            return
        # busy surfaces still have a caller waiting on them
        idle = [sid for sid, s in self._surfaces.items() if sid != keep and not s.busy]
        idle.sort(key=lambda sid: self._last_seen.get(sid, 0.0))
        for sid in idle[: len(self._surfaces) - self.max_sessions]:
            self._surfaces.pop(sid, None)
            self._last_seen.pop(sid, None)
