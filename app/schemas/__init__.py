from app.schemas.telegram import TelegramChat, TelegramMessage, TelegramUpdate, TelegramWebhookResponse

__all__ = ["TelegramChat", "TelegramMessage", "TelegramUpdate", "TelegramWebhookResponse"]
