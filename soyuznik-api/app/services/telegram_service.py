from typing import List, Optional

import httpx

from app.config import settings
from app.logging_config import get_logger

logger = get_logger("telegram_service")


class TelegramService:
    """Client for the Telegram Bot API."""

    def __init__(self, bot_token: str, api_base: str = "https://api.telegram.org"):
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self.base_url = f"{self.api_base}/bot{bot_token}"

    def _make_request(self, method: str, data: Optional[dict] = None, timeout: float = 30.0) -> dict:
        """Make request to Telegram API."""
        url = f"{self.base_url}/{method}"
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(url, json=data or {})
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Telegram API error: method={method}, error={e}")
            return {"ok": False, "error": str(e)}

    def get_me(self) -> dict:
        return self._make_request("getMe")

    def send_message(
        self,
        chat_id: str,
        text: str,
        parse_mode: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
    ) -> dict:
        """Send message to Telegram chat."""
        data = {
            "chat_id": chat_id,
            "text": text,
        }
        if parse_mode:
            data["parse_mode"] = parse_mode
        if reply_to_message_id:
            data["reply_to_message_id"] = reply_to_message_id

        result = self._make_request("sendMessage", data)
        if not result.get("ok"):
            logger.warning(f"sendMessage failed: chat_id={chat_id}, response={result}")
        return result

    def get_file(self, file_id: str) -> dict:
        return self._make_request("getFile", {"file_id": file_id})

    def get_file_url(self, file_id: str) -> Optional[str]:
        """Resolve a file_id into a download URL. Returns None on failure."""
        result = self.get_file(file_id)
        if not result.get("ok"):
            logger.warning(f"getFile failed: file_id={file_id}, response={result}")
            return None
        file_path = result["result"].get("file_path")
        if not file_path:
            return None
        return f"{self.api_base}/file/bot{self.bot_token}/{file_path}"

    def get_updates(self, offset: Optional[int] = None, timeout: int = 25) -> List[dict]:
        """Long-poll for updates. Returns an empty list on failure."""
        data = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            data["offset"] = offset
        result = self._make_request("getUpdates", data, timeout=timeout + 10)
        if not result.get("ok"):
            logger.warning(f"getUpdates failed: {result}")
            return []
        return result.get("result", [])

    def set_webhook(self, url: str) -> dict:
        return self._make_request("setWebhook", {"url": url, "allowed_updates": ["message"]})

    def delete_webhook(self) -> dict:
        return self._make_request("deleteWebhook", {"drop_pending_updates": False})


_telegram_service: Optional[TelegramService] = None


def get_telegram_service() -> TelegramService:
    """Get or create the bot client from settings."""
    global _telegram_service
    if _telegram_service is None:
        _telegram_service = TelegramService(settings.telegram_bot_token or "", settings.telegram_api_base)
    return _telegram_service
