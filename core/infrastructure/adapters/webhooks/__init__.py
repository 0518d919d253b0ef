from .aiohttp_webhook_sender import AiohttpWebhookSender

__all__ = ["AiohttpWebhookSender"]
