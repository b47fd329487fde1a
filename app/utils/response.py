"""
Standard API response format and utility functions.
"""

import math
from typing import Any


def success_response(data: Any = None, message: str = "Success") -> dict:
    return {"success": True, "data": data, "message": message}


def error_response(message: str = "Error", data: Any = None) -> dict:
    return {"success": False, "data": data, "message": message}


def pagination(total: int, page: int, limit: int) -> dict:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if limit else 0,
    }
