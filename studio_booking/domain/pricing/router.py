"""Pricing router - studio suggestion and rate quotes"""

import logging
from typing import List, Optional

import pydantic
from fastapi import APIRouter, Query

from ...errors import ValidationError
from . import service
from .schemas import QuoteRequest, QuoteResponse, StudioSuggestion, session_config_adapter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rates", tags=["Rates"])


def parse_session_config(raw: dict):
    """Validate a raw dict as a session configuration, raising the domain ValidationError"""
    try:
        return session_config_adapter.validate_python(raw)
    except pydantic.ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError(
            "Invalid session configuration", field="session_options", details={"errors": errors}
        ) from e


@router.get("/suggest", response_model=StudioSuggestion)
async def suggest_studio(
    session_type: str = Query(...),
    karaoke_option: Optional[str] = Query(None),
    live_option: Optional[str] = Query(None),
    band_equipment: Optional[List[str]] = Query(None),
    recording_option: Optional[str] = Query(None),
):
    """Suggest the best-fit studio for a session configuration"""
    raw = {
        "session_type": session_type,
        "karaoke_option": karaoke_option,
        "live_option": live_option,
        "band_equipment": band_equipment,
        "recording_option": recording_option,
    }
    config = parse_session_config({k: v for k, v in raw.items() if v is not None})
    return service.suggest_studio(config)


@router.post("/quote", response_model=QuoteResponse)
async def quote(data: QuoteRequest):
    """Price a configuration in a specific studio"""
    config = data.session_options
    suggestion = service.suggest_studio(config)
    if data.studio not in suggestion.allowed_studios:
        raise ValidationError(
            f"{data.studio.value} cannot host {service.describe(config)}",
            field="studio",
            details={"allowed_studios": [s.value for s in suggestion.allowed_studios]},
        )

    rate = service.get_rate(data.studio, config)
    total = service.compute_total(rate, data.duration_hours) if data.duration_hours else None
    return QuoteResponse(
        studio=data.studio,
        session_type=config.session_type,
        session_details=service.describe(config),
        rate_per_hour=rate,
        duration_hours=data.duration_hours,
        total_amount=total,
        allowed_studios=suggestion.allowed_studios,
        recommended_studio=suggestion.recommended_studio,
    )


__all__ = ["router", "parse_session_config"]
