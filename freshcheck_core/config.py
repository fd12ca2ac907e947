import os
from typing import Optional

from pydantic import BaseModel, Field

from freshcheck_core.runtime_config import EngineRuntimeConfig


class FreshCheckConfig(BaseModel):
    """
    Configuration for the FreshCheck Core Engine.
    Decouples the engine from environment variables.
    """

    model_config = {"arbitrary_types_allowed": True}

    # Outbound HTTP identity
    user_agent: str = Field("FreshCheck-Engine/0.4", description="User-Agent sent to external sources")

    # Credentials for key-gated sources. Falls back to the process environment.
    credentials: dict[str, str] = Field(
        default_factory=dict,
        description="Overrides for env-provided credentials (e.g. METALS_API_KEY)",
    )

    # Operating mode used when the caller does not pass one
    default_mode: str = Field("truth_general", description="Default operating mode for doctrine enforcement")

    runtime: EngineRuntimeConfig = Field(default_factory=EngineRuntimeConfig.load_from_env)

    def credential(self, name: str) -> Optional[str]:
        value = self.credentials.get(name) or os.getenv(name)
        value = (value or "").strip()
        return value or None
