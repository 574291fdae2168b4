from pydantic import BaseModel, ValidationError


class SettingsSchema(BaseModel):
    advice_api_url: str = "https://api.mistral.ai/v1/chat/completions"
    advice_api_key: str = ""
    advice_model: str = "mistral-medium"
    advice_timeout: float = 30.0
    cache_ttl_seconds: float = 600.0
    cache_capacity: int = 1000
    default_history_days: int = 30
    weekly_window_days: int = 7
    log_level: str = "INFO"


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
