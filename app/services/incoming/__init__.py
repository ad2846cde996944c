from app.services.incoming.facebook_service import FacebookIncomingService
from app.services.incoming.instagram_service import InstagramIncomingService
from app.services.incoming.whatsapp_service import WhatsAppIncomingService

__all__ = [
    "FacebookIncomingService",
    "InstagramIncomingService",
    "WhatsAppIncomingService",
]
