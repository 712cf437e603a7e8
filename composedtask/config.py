from __future__ import annotations
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_MAX_NESTING_DEPTH = 64


class Settings(BaseModel, frozen=True):
    """Runtime settings, read from COMPOSEDTASK_* environment variables."""
    max_dsl_length: int = Field(default=65536, gt=0)
    # Bounded so that parsing and rendering stay well inside the interpreter's recursion limit
    max_nesting_depth: int = Field(default=DEFAULT_MAX_NESTING_DEPTH, gt=0, le=100)
    log_level: str = "WARNING"
    trace: bool = False

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("trace", mode="before")
    @classmethod
    def coerce_trace(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return v


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Raises pydantic ValidationError when a variable holds an invalid value."""
    env = os.environ if environ is None else environ
    values = {}
    for key in ("max_dsl_length", "max_nesting_depth", "log_level", "trace"):
        raw = env.get(f"COMPOSEDTASK_{key.upper()}")
        if raw is not None:
            values[key] = raw
    return Settings(**values)
