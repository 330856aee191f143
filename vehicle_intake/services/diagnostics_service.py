# vehicle_intake/services/diagnostics_service.py
"""
Self-service diagnostics for integrators of POST /receive-vehicle.
Nothing here ever returns a secret: only whether it is configured, its length
and, for long values, a 4+4 character preview.
"""

import hmac
from datetime import datetime
from typing import Mapping, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from vehicle_intake.config import Settings

API_KEY_HEADER = "x-api-key"
REDACTED_HEADERS = {"x-api-key", "authorization", "cookie"}
PREVIEW_MIN_LENGTH = 16

DIAGNOSTIC_ENDPOINTS = {
    "test": "/receive-vehicle/test",
    "auth_debug": "/receive-vehicle/auth-debug",
    "config_debug": "/receive-vehicle/config-debug",
}

COMMON_SOLUTIONS = [
    "Send the key in the 'x-api-key' header (not as a query parameter or bearer token)",
    "Remove leading/trailing spaces or newlines copied together with the key",
    "Check that the key was not rotated on the server side",
    "Call /receive-vehicle/auth-debug with the same headers to compare lengths",
]


def mask_secret(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    if len(value) <= PREVIEW_MIN_LENGTH:
        return "***"
    return f"{value[:4]}...{value[-4:]}"


def api_key_matches(provided: Optional[str], expected: Optional[str]) -> bool:
    if provided is None or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def specific_issue(provided: Optional[str], expected: Optional[str]) -> Optional[str]:
    """Short machine-readable reason a key was rejected, or None if it matches."""
    if not expected:
        return "server_key_not_configured"
    if provided is None:
        return "missing_header"
    if provided == "":
        return "empty_header"
    if api_key_matches(provided, expected):
        return None
    if provided.strip() != provided and api_key_matches(provided.strip(), expected):
        return "whitespace_around_key"
    if len(provided) != len(expected):
        return "length_mismatch"
    return "value_mismatch"


def redact_headers(headers: Mapping[str, str]) -> dict:
    return {
        k: ("[REDACTED]" if k.lower() in REDACTED_HEADERS else v)
        for k, v in headers.items()
    }


def unauthorized_body(headers: Mapping[str, str], settings: Settings, request_id: str) -> dict:
    provided = headers.get(API_KEY_HEADER)
    expected = settings.VEHICLE_API_KEY
    return {
        "error": "Unauthorized",
        "message": "Invalid or missing API key",
        "request_id": request_id,
        "debug_info": {
            "api_key_provided": bool(provided),
            "api_key_header_present": provided is not None,
            "expected_key_configured": bool(expected),
            "specific_issue": specific_issue(provided, expected),
            "key_length_provided": len(provided) if provided else 0,
            "key_length_expected": len(expected) if expected else 0,
            "common_solutions": COMMON_SOLUTIONS,
            "test_endpoints": DIAGNOSTIC_ENDPOINTS,
        },
    }


def auth_debug(headers: Mapping[str, str], settings: Settings, request_id: str) -> dict:
    provided = headers.get(API_KEY_HEADER)
    expected = settings.VEHICLE_API_KEY
    issue = specific_issue(provided, expected)

    recommendations = []
    if issue == "server_key_not_configured":
        recommendations.append("Server has no VEHICLE_API_KEY configured; contact the operator")
    elif issue in ("missing_header", "empty_header"):
        recommendations.append("Add the 'x-api-key' header to the request")
    elif issue == "whitespace_around_key":
        recommendations.append("Trim whitespace around the key value")
    elif issue == "length_mismatch":
        recommendations.append("Key length differs from the configured key; check for truncation")
    elif issue == "value_mismatch":
        recommendations.append("Key has the right length but a different value; check for a rotated key")
    else:
        recommendations.append("API key is valid")

    return {
        "request_id": request_id,
        "timestamp": datetime.utcnow().isoformat(),
        "analysis": {
            "header_present": provided is not None,
            "provided_length": len(provided) if provided else 0,
            "expected_configured": bool(expected),
            "expected_length": len(expected) if expected else 0,
            "length_difference": (len(provided or "") - len(expected or "")),
            "has_surrounding_whitespace": bool(provided) and provided != provided.strip(),
            "provided_preview": mask_secret(provided),
            "expected_preview": mask_secret(expected),
            "keys_match": issue is None,
            "specific_issue": issue,
        },
        "headers": redact_headers(headers),
        "recommendations": recommendations,
    }


def config_debug(settings: Settings, request_id: str) -> dict:
    try:
        backend = make_url(settings.DATABASE_URL).get_backend_name()
    except ArgumentError:
        backend = "invalid"
    key = settings.VEHICLE_API_KEY
    return {
        "request_id": request_id,
        "timestamp": datetime.utcnow().isoformat(),
        "environment": {
            "vehicle_api_key_configured": bool(key),
            "vehicle_api_key_length": len(key) if key else 0,
            "vehicle_api_key_preview": mask_secret(key),
            "database_backend": backend,
            "log_level": settings.LOG_LEVEL,
        },
        "pipeline": {
            "auto_order_prefix": settings.AUTO_ORDER_PREFIX,
            "auto_order_sequence": settings.AUTO_ORDER_SEQUENCE,
            "default_order_status": settings.DEFAULT_ORDER_STATUS,
            "retry_max_attempts": settings.RETRY_MAX_ATTEMPTS,
            "retry_base_delay_seconds": settings.RETRY_BASE_DELAY_SECONDS,
        },
    }


def test_info(request_id: str) -> dict:
    return {
        "status": "ok",
        "request_id": request_id,
        "timestamp": datetime.utcnow().isoformat(),
        "endpoint": "/receive-vehicle",
        "method": "POST",
        "required_headers": {"x-api-key": "<shared secret>", "content-type": "application/json"},
        "expected_format": [
            {
                "company_name": "Acme Corp",
                "usage_type": "frota",
                "cpf": "000.000.000-00",
                "sale_summary_id": 123,
                "vehicles": [
                    {"vehicle": "Model X", "brand": "Brand", "year": 2023, "quantity": 2},
                ],
                "accessories": [{"accessory_name": "Panic button", "quantity": 2}],
            }
        ],
        "troubleshooting": {
            "401": "Check the x-api-key header; see " + DIAGNOSTIC_ENDPOINTS["auth_debug"],
            "400": "Body must be a non-empty JSON array; the response names the group/vehicle index",
            "500": "Server-side failure; quote the request_id when reporting it",
        },
    }
