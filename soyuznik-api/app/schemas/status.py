from pydantic import BaseModel


class StatusResponse(BaseModel):
    telegram: bool
    database: bool
    uptime_seconds: float
    checked_at: str


class DebugResponse(BaseModel):
    telegram_bot_token: bool
    openai_api_key: bool
    database_url: bool
    public_base_url: bool
