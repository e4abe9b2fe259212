"""JSON API endpoints."""

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, field_validator

from ctreport.config import settings
from ctreport.report.service import ReportGenerationError, build_plan, generate_report_async

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class DictationRequest(BaseModel):
    dictation: str = Field(min_length=1, max_length=settings.max_dictation_length)

    @field_validator("dictation")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("El dictado es obligatorio")
        return v


class ReportResponse(BaseModel):
    report: str


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/generate-report", response_model=ReportResponse)
async def generate_report(body: DictationRequest):
    try:
        report = await generate_report_async(body.dictation)
    except ReportGenerationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return ReportResponse(report=report)


@router.post("/plan")
async def plan(body: DictationRequest):
    """Show how each dictated sentence would be placed, without rendering."""
    try:
        result = await build_plan(body.dictation)
    except ReportGenerationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    data = result.to_dict()
    logger.info(
        "Plan request: %d replaces, %d adds, %d loose",
        len(data["replaces"]), len(data["adds"]), len(data["loose"]),
    )
    return data
