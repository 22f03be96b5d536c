"""Survey API: submit a report with photos, reporter history, reachability ping."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from ..models.base import get_db
from ..models.survey import (
    CulvertSurvey,
    SurveyPhoto,
    ReportType,
    PHOTO_LIMITS,
    MULTI_PHOTO_FIELDS,
    OPTIONAL_TEXT_FIELDS,
    DETAIL_TEXT_FIELDS,
)
from ..services.survey_client import SurveySummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["surveys"])


class SurveySubmission(BaseModel):
    reporter_name: str
    report_type: str
    latitude: float
    longitude: float
    timestamp: str
    client_submission_id: Optional[str] = None

    @field_validator("reporter_name", "timestamp")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("report_type")
    @classmethod
    def _known_report_type(cls, value: str) -> str:
        if value not in ReportType.ALL:
            raise ValueError(f"must be one of {', '.join(ReportType.ALL)}")
        return value


async def _read_photos(form, field_name: str) -> List[bytes]:
    uploads = [item for item in form.getlist(field_name) if isinstance(item, UploadFile)]
    limit = PHOTO_LIMITS[field_name]
    if len(uploads) > limit:
        raise HTTPException(status_code=400, detail=f"Too many files for {field_name} (max {limit})")
    photos = []
    for upload in uploads:
        content = await upload.read()
        if content:
            photos.append(content)
    return photos


@router.post("/submit")
async def submit_survey(request: Request, db: Session = Depends(get_db)):
    """Store one survey report. Replays of an already stored client submission are acknowledged as-is."""
    form = await request.form()
    scalars = {key: value for key, value in form.items() if isinstance(value, str)}

    try:
        submission = SurveySubmission.model_validate(scalars)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors(include_url=False, include_context=False))

    if submission.client_submission_id:
        existing = (
            db.query(CulvertSurvey)
            .filter(CulvertSurvey.client_submission_id == submission.client_submission_id)
            .first()
        )
        if existing:
            logger.info("Duplicate submission %s ignored", submission.client_submission_id)
            return {"success": True, "message": "Form already saved", "id": existing.id}

    photos = {name: await _read_photos(form, name) for name in PHOTO_LIMITS}

    survey = CulvertSurvey(**submission.model_dump())
    for name in OPTIONAL_TEXT_FIELDS:
        setattr(survey, name, scalars.get(name) or None)
    for name in DETAIL_TEXT_FIELDS:
        setattr(survey, name, scalars.get(name) or "")
    for name, images in photos.items():
        if name in MULTI_PHOTO_FIELDS:
            survey.photos = [SurveyPhoto(image=image) for image in images]
        elif images:
            setattr(survey, name, images[0])

    try:
        db.add(survey)
        db.commit()
        db.refresh(survey)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Insert error: %s", exc)
        return JSONResponse(status_code=500, content={"success": False, "message": "Database error"})

    return {"success": True, "message": "Form saved successfully", "id": survey.id}


@router.get("/history", response_model=List[SurveySummary])
def survey_history(reporter_name: Optional[str] = None, db: Session = Depends(get_db)):
    """Prior submissions of one reporter, newest first."""
    if not reporter_name or not reporter_name.strip():
        raise HTTPException(status_code=400, detail="Missing reporter_name query parameter")
    try:
        return (
            db.query(CulvertSurvey)
            .filter(CulvertSurvey.reporter_name == reporter_name.strip())
            .order_by(CulvertSurvey.timestamp.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        logger.error("History query failed: %s", exc)
        raise HTTPException(status_code=500, detail="Database error")


@router.get("/ping", response_class=PlainTextResponse)
def ping():
    return "pong"
