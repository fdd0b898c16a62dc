import os
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

if TYPE_CHECKING:
    from .curriculum.weights import CurriculumWeights


class Settings(BaseSettings):
    log_level: str = Field("INFO", alias="ROLLMODEL_LOG_LEVEL")
    debug_endpoints: bool = Field(False, alias="ROLLMODEL_DEBUG_ENDPOINTS")
    max_recommendations: int = Field(12, ge=1, le=100, alias="ROLLMODEL_MAX_RECOMMENDATIONS")
    evidence_ready_threshold: int = Field(3, ge=1, alias="ROLLMODEL_EVIDENCE_READY_THRESHOLD")
    recent_entry_limit: int = Field(50, ge=1, alias="ROLLMODEL_RECENT_ENTRY_LIMIT")
    default_athlete_id: Optional[str] = Field(None, alias="ROLLMODEL_DEFAULT_ATHLETE_ID")
    host: str = Field("0.0.0.0", alias="ROLLMODEL_HOST")
    port: int = Field(8000, ge=1, le=65535, alias="ROLLMODEL_PORT")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    def curriculum_weights(self) -> "CurriculumWeights":
        from .curriculum.weights import DEFAULT_WEIGHTS

        overrides: Dict[str, Any] = {
            "max_recommendations": self.max_recommendations,
            "evidence_ready_threshold": self.evidence_ready_threshold,
        }
        return DEFAULT_WEIGHTS.model_copy(update=overrides)


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
