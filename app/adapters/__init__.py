from app.adapters.base import BasePlatformAdapter
from app.adapters.facebook import FacebookAdapter
from app.adapters.instagram import InstagramAdapter
from app.adapters.web_widget import WebWidgetAdapter
from app.adapters.whatsapp import WhatsAppAdapter

__all__ = [
    "BasePlatformAdapter",
    "FacebookAdapter",
    "InstagramAdapter",
    "WebWidgetAdapter",
    "WhatsAppAdapter",
]
