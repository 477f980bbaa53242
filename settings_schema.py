from pydantic import BaseModel, Field, ValidationError


class SettingsSchema(BaseModel):
    secret_key: str = "change-me"
    admin_string: str = "change-me-admin"
    token_expire_minutes: int = Field(default=1440, gt=0)
    log_level: str = "INFO"
    log_file: str | None = None


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
