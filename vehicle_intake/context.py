# vehicle_intake/context.py
"""
PipelineContext: what every pipeline step needs, passed explicitly.
Built once per request (or per script invocation) around a fresh session.
"""

import uuid
from dataclasses import dataclass, field

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from vehicle_intake.config import Settings, settings as default_settings
from vehicle_intake.database import get_db
from vehicle_intake.utils.retry import RetryPolicy


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class PipelineContext:
    db: Session
    settings: Settings = field(default_factory=lambda: default_settings)
    request_id: str = field(default_factory=new_request_id)

    def retry_policy(self, retry_on=None) -> RetryPolicy:
        if retry_on is None:
            return RetryPolicy.from_settings(self.settings)
        return RetryPolicy.from_settings(self.settings, retry_on=retry_on)


def get_pipeline_context(request: Request, db: Session = Depends(get_db)) -> PipelineContext:
    """FastAPI dependency: one context per request, sharing the request id set by middleware."""
    request_id = getattr(request.state, "request_id", None) or new_request_id()
    return PipelineContext(db=db, request_id=request_id)
