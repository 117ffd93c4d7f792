from typing import Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Query


def success_response(message: str, data: Optional[dict] = None) -> dict:
    return {
        "success": True,
        "message": message,
        "data": jsonable_encoder(data or {}),
    }


def error_body(message: str) -> dict:
    return {"success": False, "message": message}


def paginate(query: Query, page: int, limit: int):
    """Returns (items, total) for a 1-based page of ``query``."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, total
