from typing import Any


def success(message: str, data: Any = None, **extra) -> dict:
    """Standard envelope for successful responses."""
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def failure(message: str) -> dict:
    return {"success": False, "message": message}
