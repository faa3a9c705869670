import requests, os, logging

from backend.prompts import DEEP_SYSTEM_INSTRUCTION
from backend.schemas import Success, Failure, GenerationResult, mode_for

logger = logging.getLogger(__name__)

GEMINI_URL = os.environ.get("GEMINI_URL", "https://generativelanguage.googleapis.com/v1beta")
API_KEY_VARS = ("GEMINI_API_KEY", "API_KEY")

FAST_MODEL = "gemini-2.5-flash"
DEEP_MODEL = "gemini-2.5-pro"
THINKING_BUDGET = 32768

PRESETS = {
    "fast": {"model": FAST_MODEL, "label": "Fast", "thinking_budget": None, "system_instruction": False},
    "deep": {"model": DEEP_MODEL, "label": "Deep", "thinking_budget": THINKING_BUDGET, "system_instruction": True},
}

MISSING_KEY_MSG = "API_KEY environment variable is not set."
UNKNOWN_MSG = "An unknown error occurred while generating the response."


class ProviderError(Exception):
    """The provider answered, but not with usable text."""


def build_request(prompt: str, deep: bool):
    """Return (model, payload) for one generateContent call."""
    preset = PRESETS[mode_for(deep)]
    model = preset["model"]
    payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
    if preset["system_instruction"]:
        payload["systemInstruction"] = {"parts": [{"text": DEEP_SYSTEM_INSTRUCTION}]}
    if preset["thinking_budget"] is not None:
        payload["generationConfig"] = {"thinkingConfig": {"thinkingBudget": preset["thinking_budget"]}}
    return model, payload


def extract_text(resp: dict) -> str:
    feedback = resp.get("promptFeedback") or {}
    if feedback.get("blockReason"):
        raise ProviderError(f"Prompt was blocked ({feedback['blockReason']})")
    candidates = resp.get("candidates") or []
    if not candidates:
        raise ProviderError("Response contained no candidates")
    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [p["text"] for p in parts if isinstance(p, dict) and "text" in p and not p.get("thought")]
    if not texts:
        reason = candidates[0].get("finishReason") or "no text"
        raise ProviderError(f"Response contained no text ({reason})")
    return "".join(texts)


def _error_message(e: requests.HTTPError) -> str:
    # Gemini error bodies look like {"error": {"code": 400, "message": "...", "status": "..."}}
    try:
        body = e.response.json()
    except (ValueError, AttributeError):
        return str(e)
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        msg = err.get("message")
    else:
        # proxies in front of GEMINI_URL may answer {"error": "..."}
        msg = err if isinstance(err, str) else None
    return msg if isinstance(msg, str) and msg else str(e)


class GeminiClient:
    """One prompt in, one text (or a described failure) out."""

    def __init__(self, api_key, base_url=GEMINI_URL, timeout=None):
        self.api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _post(self, path: str, payload: dict):
        url = f"{self.base_url}{path}"
        r = requests.post(url, json=payload, headers={"x-goog-api-key": self.api_key}, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def generate(self, prompt: str, deep: bool = False) -> GenerationResult:
        if not self.api_key:
            logger.error("Refusing to call provider: %s", MISSING_KEY_MSG)
            return Failure(error="configuration", message=MISSING_KEY_MSG)

        model, payload = build_request(prompt, deep)
        logger.info("generateContent model=%s mode=%s chars=%d", model, mode_for(deep), len(prompt))
        try:
            resp = self._post(f"/models/{model}:generateContent", payload)
            text = extract_text(resp)
        except requests.HTTPError as e:
            logger.error("Error generating content: %s", e)
            return Failure(error="provider", message=f"An error occurred: {_error_message(e)}")
        except requests.exceptions.JSONDecodeError as e:
            # must precede RequestException, which it subclasses
            logger.error("Malformed provider response: %s", e)
            return Failure(error="provider", message=f"An error occurred: malformed response ({e})")
        except (requests.RequestException, ProviderError) as e:
            logger.error("Error generating content: %s", e)
            return Failure(error="provider", message=f"An error occurred: {e}")
        except ValueError as e:
            logger.error("Malformed provider response: %s", e)
            return Failure(error="provider", message=f"An error occurred: malformed response ({e})")
        except Exception:
            logger.exception("Unexpected failure generating content")
            return Failure(error="unknown", message=UNKNOWN_MSG)
        logger.debug("Got %d chars from %s", len(text), model)
        return Success(text=text, model=model)


def api_key_from_env():
    for var in API_KEY_VARS:
        val = os.environ.get(var)
        if val and val.strip():
            return val
    return None


def timeout_from_env():
    raw = os.environ.get("GEMINI_TIMEOUT")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric GEMINI_TIMEOUT=%r", raw)
        return None


def client_from_env() -> GeminiClient:
    """Build a client from the environment as it is right now."""
    return GeminiClient(api_key_from_env(), base_url=os.environ.get("GEMINI_URL", GEMINI_URL), timeout=timeout_from_env())
