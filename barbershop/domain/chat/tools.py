"""
Function-calling tools the assistant may use to read live shop data

Each tool is a plain function over the Firestore client; ``run_tool``
dispatches a model tool call by name.
"""

import logging
from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from google.cloud.firestore_v1.base_query import FieldFilter

from ...config import (
    SHOP_CLOSE_HOUR,
    SHOP_CONTACT_NAME,
    SHOP_CONTACT_PHONE,
    SHOP_OPEN_HOUR,
    SHOP_TIMEZONE,
)

logger = logging.getLogger(__name__)

PRODUCT_CATEGORIES = ["pomade", "gel", "wax", "shampoo", "oil", "all"]

TOOLS_DEFINITION = [
    {
        "type": "function",
        "function": {
            "name": "get_services",
            "description": "Get the current list of barbershop services with their prices and durations.",
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_products",
            "description": (
                "Get the current list of available grooming products with stock and prices. "
                "Optionally filter by category."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "category": {
                        "type": "string",
                        "description": "Product category to filter (optional)",
                        "enum": PRODUCT_CATEGORIES,
                    }
                },
                "required": [],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "check_operating_hours",
            "description": "Get current operating hours and check if the barbershop is open right now.",
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_available_barbers",
            "description": "Get list of currently active barbers with their specialties and ratings.",
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
]


def get_services(db) -> dict:
    services = []
    for doc in db.collection("services").stream():
        data = doc.to_dict() or {}
        services.append(
            {
                "name": data.get("name"),
                "price": data.get("price"),
                "duration": data.get("duration"),
                "description": data.get("description"),
            }
        )
    return {"total": len(services), "services": services}


def get_products(db, category: Optional[str] = None) -> dict:
    query = db.collection("products")
    if category and category != "all":
        query = query.where(filter=FieldFilter("category", "==", category))

    products = []
    for doc in query.stream():
        data = doc.to_dict() or {}
        products.append(
            {
                "name": data.get("name"),
                "price": data.get("price"),
                "stock": data.get("stock"),
                "category": data.get("category"),
                "description": data.get("description"),
            }
        )
    return {"category": category or "all", "total": len(products), "products": products}


def check_operating_hours(db=None, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(ZoneInfo(SHOP_TIMEZONE))
    is_open = SHOP_OPEN_HOUR <= now.hour < SHOP_CLOSE_HOUR
    return {
        "current_time": now.strftime("%A, %d %B %Y %H:%M"),
        "is_open": is_open,
        "status": "BUKA" if is_open else "TUTUP",
        "schedule": f"Setiap Hari: {SHOP_OPEN_HOUR:02d}:00 - {SHOP_CLOSE_HOUR:02d}:00 WIB",
        "note": (
            "Libur tidak menentu, disesuaikan dengan kondisi. "
            f"Hubungi {SHOP_CONTACT_PHONE} untuk konfirmasi."
        ),
        "contact": {"name": SHOP_CONTACT_NAME, "phone": SHOP_CONTACT_PHONE},
    }


def get_available_barbers(db) -> dict:
    query = db.collection("barbers").where(filter=FieldFilter("isActive", "==", True))
    barbers = []
    for doc in query.stream():
        data = doc.to_dict() or {}
        barbers.append(
            {
                "name": data.get("name"),
                "specialty": data.get("specialty"),
                "experience": data.get("experience"),
                "rating": data.get("rating"),
            }
        )
    return {"total": len(barbers), "barbers": barbers}


def run_tool(db, name: str, args: dict[str, Any]) -> dict:
    if name == "get_services":
        return get_services(db)
    if name == "get_products":
        return get_products(db, args.get("category"))
    if name == "check_operating_hours":
        return check_operating_hours(db)
    if name == "get_available_barbers":
        return get_available_barbers(db)
    raise ValueError(f"Unknown function: {name}")
