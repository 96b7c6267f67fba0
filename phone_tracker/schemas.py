# phone_tracker/schemas.py
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

class JobStatusOut(BaseModel):
    job_id: str
    marketplace: str
    status: str
    schedule_frequency_hours: int
    last_run: Optional[datetime]
    next_run: Optional[datetime]
    items_scraped: int
    duration_seconds: int
    error_message: Optional[str]
    is_running: bool

class ScheduleUpdate(BaseModel):
    hours: int = Field(..., ge=1, le=168)

class ScrapingLogOut(BaseModel):
    id: int
    job_id: str
    marketplace_name: str
    log_level: str
    message: str
    details: Optional[Dict[str, Any]]
    created_at: Optional[datetime]
    class Config:
        from_attributes = True

class MessageOut(BaseModel):
    success: bool = True
    message: str
