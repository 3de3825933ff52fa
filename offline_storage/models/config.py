"""
Pydantic model for storage configuration.
Provides validation for every setting the storage manager recognises.
"""

from typing import Any, Callable, Optional

from pydantic import BaseModel, field_validator, model_validator

ENGINE_NAMES = ("memory", "sqlite", "files")

# Largest height still considered standard definition by the default selector
DEFAULT_MAX_SD_HEIGHT = 480


class StorageConfig(BaseModel):
    """A validated configuration model for the storage manager."""

    # Selection and progress hooks (never loaded from INI files)
    track_selection_callback: Optional[Callable[[list], list]] = None
    progress_callback: Optional[Callable[[Any, float], None]] = None

    # Licensing and track selection
    use_persistent_license: bool = True
    preferred_audio_language: str = ""
    max_sd_height: int = DEFAULT_MAX_SD_HEIGHT

    # Storage backend
    engine: str = "memory"
    storage_path: str = ""

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("max_sd_height")
    @classmethod
    def validate_max_sd_height(cls, v: int) -> int:
        """Ensures a sensible resolution cutoff."""
        if v < 1 or v > 4320:
            raise ValueError("max_sd_height must be between 1 and 4320.")
        return v

    @field_validator("engine")
    @classmethod
    def validate_engine(cls, v: str) -> str:
        """Ensures the engine name refers to a known backend."""
        v = v.lower()
        if v not in ENGINE_NAMES:
            raise ValueError(f"engine must be one of: {', '.join(ENGINE_NAMES)}.")
        return v

    @model_validator(mode="after")
    def validate_storage_path(self) -> "StorageConfig":
        """Persistent backends need somewhere to put their data."""
        if self.engine != "memory" and not self.storage_path:
            raise ValueError(f"storage_path is required for the '{self.engine}' engine.")
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"track_selection_callback", "progress_callback"}
        return {key for key in cls.model_fields if key not in internal_fields}
