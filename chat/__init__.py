from chat.base import ChatGateway

__all__ = ["ChatGateway"]
