"""Progression API endpoints.

One router per user action. Every endpoint goes through the single
ProgressionSession so the record has exactly one writer.
"""

from fastapi import APIRouter, Depends, Request

from brainjourney.core.errors import ValidationError
from brainjourney.core.logging import get_request_id
from brainjourney.features.progression.models import SetLabelRequest, SetWayRequest
from brainjourney.features.progression.service import ProgressionSession, get_progression_session

router = APIRouter(prefix="/v1/progress", tags=["progression"])


def _rid(request: Request):
    return getattr(request.state, "request_id", None) or get_request_id()


@router.get("")
def get_progress(request: Request, session: ProgressionSession = Depends(get_progression_session)):
    """Current day, button state and unlocked/selected units."""
    return {"data": session.view().model_dump(mode="json"), "request_id": _rid(request)}


@router.get("/record")
def get_record(request: Request, session: ProgressionSession = Depends(get_progression_session)):
    return {"data": session.payload(), "request_id": _rid(request)}


@router.post("/check-in")
def check_in(request: Request, session: ProgressionSession = Depends(get_progression_session)):
    view = session.check_in()
    return {"data": view.model_dump(mode="json"), "request_id": _rid(request)}


@router.post("/fail")
def fail_reset(request: Request, session: ProgressionSession = Depends(get_progression_session)):
    view = session.fail_reset()
    return {"data": view.model_dump(mode="json"), "request_id": _rid(request)}


@router.post("/units/{unit}/toggle")
def toggle_unit(unit: int, request: Request, session: ProgressionSession = Depends(get_progression_session)):
    view = session.toggle_unit(unit)
    return {"data": view.model_dump(mode="json"), "request_id": _rid(request)}


@router.put("/way")
def set_way(body: SetWayRequest, request: Request, session: ProgressionSession = Depends(get_progression_session)):
    rid = _rid(request)
    if not session.set_way(body.way):
        raise ValidationError(f"Invalid way setting: {body.way}", code="invalid_way", request_id=rid)
    return {"data": session.view().model_dump(mode="json"), "request_id": rid}


@router.get("/label")
def get_label(request: Request, session: ProgressionSession = Depends(get_progression_session)):
    return {"data": {"label": session.label}, "request_id": _rid(request)}


@router.put("/label")
def set_label(body: SetLabelRequest, request: Request, session: ProgressionSession = Depends(get_progression_session)):
    label = session.set_label(body.label)
    return {"data": {"label": label}, "request_id": _rid(request)}
