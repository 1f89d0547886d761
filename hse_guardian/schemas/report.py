# hse_guardian/schemas/report.py
from pydantic import BaseModel
from datetime import datetime


class ReportOut(BaseModel):
    content: str
    incident_count: int
    generated_at: datetime
