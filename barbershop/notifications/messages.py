"""Notification copy, per locale"""

import logging

from ..config import DEFAULT_LOCALE, SHOP_NAME

logger = logging.getLogger(__name__)

MESSAGES = {
    "en": {
        "turn_now_title": "🔔 It's your turn now!",
        "turn_now_body": "Please head to the barbershop now. Your turn has arrived!",
        "turn_soon_title": "⏰ Your turn is coming up!",
        "turn_soon_body": "You are number {position} in the queue. About {minutes} minutes to go.",
        "admin_title": "Your turn is almost here!",
        "admin_body": (
            "Hi {name}, your turn is almost here (queue position {position}). "
            "Please come to {shop} soon!"
        ),
    },
    "id": {
        "turn_now_title": "🔔 Giliran Anda Sekarang!",
        "turn_now_body": "Silakan menuju barber shop sekarang. Giliran Anda sudah tiba!",
        "turn_soon_title": "⏰ Giliran Anda Segera Tiba!",
        "turn_soon_body": "Anda antrian nomor {position}. Estimasi {minutes} menit lagi.",
        "admin_title": "Giliran Anda Sudah Dekat!",
        "admin_body": (
            "Hai {name}, giliran antrian Anda sudah dekat (posisi {position}). "
            "Silakan segera datang ke {shop}!"
        ),
    },
}


def _catalog(locale: str) -> dict:
    catalog = MESSAGES.get(locale)
    if catalog is None:
        logger.debug(f"Unknown locale {locale!r}, falling back to {DEFAULT_LOCALE}")
        catalog = MESSAGES.get(DEFAULT_LOCALE, MESSAGES["en"])
    return catalog


def render_queue_message(
    position: int, estimated_wait_minutes: int, locale: str = DEFAULT_LOCALE
) -> tuple[str, str]:
    catalog = _catalog(locale)
    if position == 1:
        return catalog["turn_now_title"], catalog["turn_now_body"]
    return (
        catalog["turn_soon_title"],
        catalog["turn_soon_body"].format(position=position, minutes=estimated_wait_minutes),
    )


def render_admin_default(
    customer_name: str, position: int, locale: str = DEFAULT_LOCALE
) -> tuple[str, str]:
    """Pre-filled copy for the operator's manual notification"""
    catalog = _catalog(locale)
    body = catalog["admin_body"].format(name=customer_name, position=position, shop=SHOP_NAME)
    return catalog["admin_title"], body
