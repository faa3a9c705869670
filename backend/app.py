from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pathlib import Path
import logging, os

from backend.llm import PRESETS, client_from_env
from backend.schemas import SubmitRequest, ModeRequest, ModelPreset, ModelList, SurfaceView
from backend.surface import ChatSurface, SurfaceSessions, sanitize_session_id

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="ThinkingChat")

BASE_DIR = Path(__file__).resolve().parent
STATIC_CANDIDATES = [BASE_DIR.parent / "static", BASE_DIR / "static"]
STATIC_DIR = next((p for p in STATIC_CANDIDATES if p.exists()), None)
if STATIC_DIR is None:
    (BASE_DIR.parent / "static").mkdir(parents=True, exist_ok=True)
    STATIC_DIR = BASE_DIR.parent / "static"

app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

SESSION_COOKIE = "thinkingchat_session"
MAX_SESSIONS = int(os.environ.get("MAX_SESSIONS", "200"))

# One chat window per browser session; the credential is read on every submission
sessions = SurfaceSessions(client_factory=client_from_env, max_sessions=MAX_SESSIONS)

def current_surface(request: Request, response: Response) -> ChatSurface:
    session_id = sanitize_session_id(request.cookies.get(SESSION_COOKIE))
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return sessions.get(session_id)

@app.get("/")
def root():
    page = STATIC_DIR / "index.html"
    if not page.exists():
        raise HTTPException(404, "Chat page not found")
    return FileResponse(str(page))

@app.get("/api/health")
def health():
    return {"ok": True, "msg": "ThinkingChat API running.", "static_dir": str(STATIC_DIR)}

@app.get("/api/models", response_model=ModelList)
def models():
    return ModelList(models=[ModelPreset(mode=mode, **preset) for mode, preset in PRESETS.items()])

@app.get("/api/state", response_model=SurfaceView)
def state(surface: ChatSurface = Depends(current_surface)):
    return surface.view()

@app.post("/api/mode", response_model=SurfaceView)
def set_mode(payload: ModeRequest, surface: ChatSurface = Depends(current_surface)):
    surface.set_mode(payload.deep)
    return surface.view()

@app.post("/api/submit", response_model=SurfaceView)
async def submit(payload: SubmitRequest, surface: ChatSurface = Depends(current_surface)):
    if surface.busy:
        raise HTTPException(409, "A response is still being generated")
    if not payload.prompt.strip():
        raise HTTPException(400, "Missing 'prompt'")
    surface.set_prompt(payload.prompt)
    if payload.deep is not None:
        surface.set_mode(payload.deep)
    if not await surface.submit():
        raise HTTPException(409, "A response is still being generated")
    view = surface.view()
    logger.info("Submission settled: %s", view.state.status)
    return view
