from typing import Any, Dict, List, Optional


class BookingError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(BookingError):
    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message, status_code=400)
        self.fields = fields or []

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.fields:
            body["fields"] = self.fields
        return body


class NotFoundError(BookingError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


class ConflictError(BookingError):
    def __init__(self, key: Optional[Dict[str, Any]] = None):
        super().__init__("conflict", status_code=409)
        self.key = key or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "detail": "duplicate key", "key": self.key}


class InternalError(BookingError):
    """Unexpected failure while serving a booking route, answered as 400."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)
