from pydantic import BaseModel, Field
from typing import Annotated, List, Optional, Literal, Union

Mode = Literal["fast", "deep"]
ErrorKind = Literal["configuration", "provider", "unknown"]

def mode_for(deep: bool) -> Mode:
    return "deep" if deep else "fast"

# --- Generation results ---

class Success(BaseModel):
    kind: Literal["success"] = "success"
    text: str
    model: str

class Failure(BaseModel):
    kind: Literal["failure"] = "failure"
    error: ErrorKind
    message: str

GenerationResult = Annotated[Union[Success, Failure], Field(discriminator="kind")]

# --- Surface states ---

class Idle(BaseModel):
    status: Literal["idle"] = "idle"

class Submitting(BaseModel):
    status: Literal["submitting"] = "submitting"
    mode: Mode

class Succeeded(BaseModel):
    status: Literal["succeeded"] = "succeeded"
    text: str
    model: str

class Failed(BaseModel):
    status: Literal["failed"] = "failed"
    error: ErrorKind
    message: str

SurfaceState = Annotated[Union[Idle, Submitting, Succeeded, Failed], Field(discriminator="status")]

class SurfaceView(BaseModel):
    prompt: str
    mode: Mode
    busy: bool
    can_submit: bool
    busy_label: str
    state: SurfaceState

# --- API payloads ---

class SubmitRequest(BaseModel):
    prompt: str = ""
    deep: Optional[bool] = None

class ModeRequest(BaseModel):
    deep: bool

class ModelPreset(BaseModel):
    mode: Mode
    model: str
    label: str
    thinking_budget: Optional[int] = None
    system_instruction: bool = False

class ModelList(BaseModel):
    models: List[ModelPreset]
