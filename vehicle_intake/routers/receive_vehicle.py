# vehicle_intake/routers/receive_vehicle.py
"""
Vehicle intake endpoint + diagnostics.
POST /receive-vehicle                 : batch of vehicle groups from the sales system (x-api-key).
GET|POST /receive-vehicle/test        : expected payload and troubleshooting hints.
GET|POST /receive-vehicle/auth-debug  : explains why a key is (not) accepted.
GET|POST /receive-vehicle/config-debug: server-side configuration summary.
The same diagnostics answer ?test, ?auth-debug and ?config-debug on /receive-vehicle.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from vehicle_intake.context import PipelineContext, get_pipeline_context
from vehicle_intake.exceptions import BatchValidationError
from vehicle_intake.services import diagnostics_service
from vehicle_intake.services.audit_service import log_action
from vehicle_intake.services.processing_service import process_vehicle_groups
from vehicle_intake.services.validation import parse_request_body, validate_submission
from vehicle_intake.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

DIAGNOSTIC_FLAGS = ("test", "auth-debug", "config-debug")


def diagnostic_flag(request: Request) -> Optional[str]:
    for flag in DIAGNOSTIC_FLAGS:
        if flag in request.query_params:
            return flag
    return None


def _diagnostics(flag: str, request: Request, ctx: PipelineContext) -> dict:
    if flag == "auth-debug":
        return diagnostics_service.auth_debug(request.headers, ctx.settings, ctx.request_id)
    if flag == "config-debug":
        return diagnostics_service.config_debug(ctx.settings, ctx.request_id)
    return diagnostics_service.test_info(ctx.request_id)


@router.post("/receive-vehicle", summary="Receive vehicle groups from the sales system")
async def receive_vehicle(request: Request, ctx: PipelineContext = Depends(get_pipeline_context)):
    """
    Validates the whole batch first (400 on any problem, nothing written),
    then processes it. Per-vehicle failures are reported in the body; the
    request still returns 201.
    """
    flag = diagnostic_flag(request)
    if flag:
        return _diagnostics(flag, request, ctx)

    try:
        groups = validate_submission(parse_request_body(await request.body()))
    except BatchValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={**e.to_dict(), "request_id": ctx.request_id},
        )

    logger.info(f"[INTAKE][{ctx.request_id}] Accepted batch of {len(groups)} group(s)")
    try:
        body = await process_vehicle_groups(ctx, groups)
    except Exception as e:
        ctx.db.rollback()
        logger.error(f"[INTAKE][{ctx.request_id}] Batch failed: {e}", exc_info=True)
        await log_action(ctx.db, "receive_vehicle_failed", "request", ctx.request_id, {"error": str(e)})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "request_id": ctx.request_id},
        )

    return JSONResponse(status_code=status.HTTP_201_CREATED, content=body)


@router.get("/receive-vehicle", summary="Diagnostics via ?test, ?auth-debug or ?config-debug")
def receive_vehicle_info(request: Request, ctx: PipelineContext = Depends(get_pipeline_context)):
    return _diagnostics(diagnostic_flag(request) or "test", request, ctx)


@router.api_route("/receive-vehicle/test", methods=["GET", "POST"], summary="Expected payload format")
def receive_vehicle_test(request: Request, ctx: PipelineContext = Depends(get_pipeline_context)):
    return _diagnostics("test", request, ctx)


@router.api_route("/receive-vehicle/auth-debug", methods=["GET", "POST"], summary="API key analysis")
def receive_vehicle_auth_debug(request: Request, ctx: PipelineContext = Depends(get_pipeline_context)):
    return _diagnostics("auth-debug", request, ctx)


@router.api_route("/receive-vehicle/config-debug", methods=["GET", "POST"], summary="Configuration summary")
def receive_vehicle_config_debug(request: Request, ctx: PipelineContext = Depends(get_pipeline_context)):
    return _diagnostics("config-debug", request, ctx)
