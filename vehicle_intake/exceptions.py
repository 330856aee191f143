# vehicle_intake/exceptions.py
"""Domain exceptions raised by the intake pipeline."""

from typing import List, Optional

from vehicle_intake.utils.retry import RetryableError


class IntakeError(Exception):
    """Base class for intake pipeline errors."""


class BatchValidationError(IntakeError):
    """Submission rejected at the boundary. Nothing has been written."""

    def __init__(self, message: str, group_index: Optional[int] = None,
                 vehicle_index: Optional[int] = None, fields: Optional[List[str]] = None,
                 error: str = "Invalid request"):
        super().__init__(message)
        self.message = message
        self.error = error
        self.group_index = group_index
        self.vehicle_index = vehicle_index
        self.fields = fields or []

    def to_dict(self) -> dict:
        body = {"error": self.error, "message": self.message}
        if self.group_index is not None:
            body["group_index"] = self.group_index
        if self.vehicle_index is not None:
            body["vehicle_index"] = self.vehicle_index
        if self.fields:
            body["fields"] = self.fields
        return body


class OrderNumberCollision(RetryableError):
    """The generated order number is already taken."""

    def __init__(self, order_number: str):
        super().__init__(f"Order number {order_number} already exists")
        self.order_number = order_number


class OrderCreationError(IntakeError):
    def __init__(self, message: str, order_number: Optional[str] = None):
        super().__init__(message)
        self.order_number = order_number


class HomologationError(IntakeError):
    """No homologation card could be linked to the vehicle."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []
