# hse_guardian/routers/reports.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from hse_guardian.deps import get_report_service
from hse_guardian.schemas.report import ReportOut
from hse_guardian.services.report_service import ReportService

router = APIRouter()


@router.post("/reports/shift", response_model=ReportOut, summary="Generate shift incident report")
async def generate_shift_report(service: ReportService = Depends(get_report_service)):
    """Always 200 — text service failures come back as the report content."""
    content, count = await service.generate_report()
    return ReportOut(content=content, incident_count=count, generated_at=datetime.now(timezone.utc))
