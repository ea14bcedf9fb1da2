from pydantic import BaseModel, Field, ValidationError, field_validator

from config import YamlConfig


class AnalyticsSettings(BaseModel):
    db_path: str = "workout.db"
    user_id: str = "local"
    stagnation_threshold: int = Field(default=6, ge=2)
    notify_interval_days: float = Field(default=7, gt=0)
    default_intensity: str = "moderate"
    default_duration: float = Field(default=45, gt=0)
    workout_streak_buffer: int = Field(default=2, ge=0)
    calorie_monthly_freezes: int = Field(default=3, ge=0)

    @field_validator("default_intensity")
    @classmethod
    def _known_intensity(cls, value: str) -> str:
        value = value.lower()
        if value not in {"light", "moderate", "vigorous", "high"}:
            raise ValueError(f"unknown intensity: {value}")
        return value


def validate_settings(data: dict) -> None:
    try:
        AnalyticsSettings(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def load_settings(path: str = "settings.yaml") -> AnalyticsSettings:
    """Read ``path`` through YamlConfig and return validated settings."""
    data = YamlConfig(path).load()
    try:
        return AnalyticsSettings(**data)
    except ValidationError as e:
        raise ValueError(str(e))
