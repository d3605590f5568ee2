from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_USER_AGENT = "euromakers-moderation-bot"


class ModerationSettings(BaseModel):
    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1)
    reachability_timeout_s: float = Field(9.0, gt=0, le=60)
    logo_timeout_s: float = Field(15.0, gt=0, le=120)
    log_level: str = Field("WARNING")

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> ModerationSettings:
        # Values already present in the environment win over the .env file.
        load_dotenv(env_file or Path.cwd() / ".env", override=False)
        values: dict[str, str] = {}
        for key, name in (
            ("user_agent", "MODERATION_USER_AGENT"),
            ("reachability_timeout_s", "MODERATION_REACHABILITY_TIMEOUT_S"),
            ("logo_timeout_s", "MODERATION_LOGO_TIMEOUT_S"),
            ("log_level", "MODERATION_LOG_LEVEL"),
        ):
            raw = os.getenv(name, "").strip()
            if raw:
                values[key] = raw
        return cls.model_validate(values)
