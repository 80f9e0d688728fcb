from pydantic import BaseModel
from typing import Literal, Optional

class TriageBatchResult(BaseModel):
    status: Literal["ok", "fallback"]
    out_path: Optional[str] = None
    urgency_level: Optional[str] = None
    ai_model: Optional[str] = None

    # fallback fields
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    failure_artifact: Optional[str] = None
