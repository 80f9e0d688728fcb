from pydantic import BaseModel, Field
from dotenv import load_dotenv
import os

load_dotenv()


def _env(name: str, default: str | None = None):
    return Field(default_factory=lambda: os.getenv(name, default))


class Settings(BaseModel):
    triage_provider: str = _env("TRIAGE_PROVIDER", "rules")
    llm_model: str = _env("LLM_MODEL", "gpt-4.1-mini")
    openai_api_key: str | None = _env("OPENAI_API_KEY")
    out_dir: str = _env("OUT_DIR", "out")
    failure_dir: str = _env("FAILURE_DIR", os.path.join("out", "fail"))
    keep_raw_llm_output: bool = Field(
        default_factory=lambda: os.getenv("KEEP_RAW_LLM_OUTPUT", "0") == "1"
    )


def get_settings() -> Settings:
    # re-read env each time (good for tests)
    return Settings()
