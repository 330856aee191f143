# vehicle_intake/services/validation.py
"""
Intake validator: the single boundary where the raw JSON body becomes typed
VehicleGroupSubmission objects. Rejects the whole batch on the first offending
location, before anything is written.
"""

import json
from typing import Any, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from vehicle_intake.exceptions import BatchValidationError
from vehicle_intake.schemas.submission import VehicleGroupSubmission
from vehicle_intake.utils.logger import get_logger

logger = get_logger(__name__)

_GROUP_FIELDS = {"company_name", "usage_type", "vehicles"}
_batch_adapter = TypeAdapter(List[VehicleGroupSubmission])


def parse_request_body(raw_body: bytes) -> Any:
    """Decode the request body. Empty or malformed JSON is a 400."""
    if not raw_body or not raw_body.strip():
        raise BatchValidationError("Request body is empty", error="Empty request")
    try:
        return json.loads(raw_body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise BatchValidationError(f"Request body is not valid JSON: {e}", error="Invalid JSON")


def _split_loc(loc: Tuple) -> Tuple[Optional[int], Optional[int], Optional[str]]:
    """(group_index, vehicle_index, field) from a pydantic error location."""
    group_index = loc[0] if loc and isinstance(loc[0], int) else None
    vehicle_index = None
    field = None
    if len(loc) >= 3 and loc[1] == "vehicles" and isinstance(loc[2], int):
        vehicle_index = loc[2]
        field = loc[3] if len(loc) > 3 and isinstance(loc[3], str) else None
    elif len(loc) >= 2 and isinstance(loc[1], str):
        field = loc[1]
    return group_index, vehicle_index, field


def _to_batch_error(exc: ValidationError) -> BatchValidationError:
    errors = exc.errors()
    first = errors[0]
    group_index, vehicle_index, field = _split_loc(tuple(first["loc"]))

    # All offending fields at the same position
    fields = []
    for err in errors:
        g, v, f = _split_loc(tuple(err["loc"]))
        if (g, v) == (group_index, vehicle_index) and f and f not in fields:
            fields.append(f)

    if group_index is None:
        return BatchValidationError(
            "Request body must be a non-empty array of vehicle groups",
            error="Invalid request format",
        )

    if vehicle_index is None:
        if field == "vehicles" and first["type"] == "too_short":
            return BatchValidationError(
                f"Group at index {group_index} has an empty vehicles array",
                group_index=group_index, fields=fields, error="Empty vehicles array",
            )
        if field is None or field in _GROUP_FIELDS:
            return BatchValidationError(
                f"Group at index {group_index} must have company_name, usage_type, and vehicles array",
                group_index=group_index, fields=fields, error="Invalid group structure",
            )
        return BatchValidationError(
            f"Group at index {group_index} has an invalid '{field}': {first['msg']}",
            group_index=group_index, fields=fields, error="Invalid field",
        )

    if field == "quantity":
        return BatchValidationError(
            f"Vehicle at group {group_index}, position {vehicle_index} has an invalid quantity. "
            f"Must be a positive integer",
            group_index=group_index, vehicle_index=vehicle_index, fields=fields, error="Invalid quantity",
        )
    if field is None or field in ("vehicle", "brand"):
        return BatchValidationError(
            f"Vehicle at group {group_index}, position {vehicle_index} must have vehicle and brand fields",
            group_index=group_index, vehicle_index=vehicle_index, fields=fields,
            error="Invalid vehicle structure",
        )
    return BatchValidationError(
        f"Vehicle at group {group_index}, position {vehicle_index} has an invalid '{field}': {first['msg']}",
        group_index=group_index, vehicle_index=vehicle_index, fields=fields, error="Invalid field",
    )


def validate_submission(payload: Any) -> List[VehicleGroupSubmission]:
    """Validate a decoded body. Raises BatchValidationError on the first problem."""
    try:
        groups = _batch_adapter.validate_python(payload)
    except ValidationError as e:
        err = _to_batch_error(e)
        logger.warning(f"[INTAKE] Rejected batch: {err.error}: {err.message}")
        raise err

    if not groups:
        raise BatchValidationError(
            "Request body must be a non-empty array of vehicle groups",
            error="Invalid request format",
        )
    return groups
