# phone_tracker/api/routes.py
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from typing import List
from .. import crud, schemas
from ..utils import logger

router = APIRouter()


def get_context(request: Request):
    ctx = getattr(request.app.state, "context", None)
    if ctx is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return ctx


def _known(ctx, marketplace):
    if marketplace not in ctx.settings.marketplaces:
        raise HTTPException(status_code=404, detail=f"Unknown marketplace: {marketplace}")


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/admin/jobs", response_model=List[schemas.JobStatusOut])
def list_jobs(ctx=Depends(get_context)):
    return ctx.job_manager.get_job_statuses()


def _run_trigger(job_manager, marketplace):
    try:
        job_manager.trigger_job(marketplace)
    except Exception as e:
        logger.exception("Manual job trigger failed for %s: %s", marketplace, e)


@router.post("/admin/jobs/{marketplace}/trigger", response_model=schemas.MessageOut)
def trigger_job(marketplace: str, background_tasks: BackgroundTasks, ctx=Depends(get_context)):
    _known(ctx, marketplace)
    background_tasks.add_task(_run_trigger, ctx.job_manager, marketplace)
    return {"message": f"Scraping job for {marketplace} has been triggered"}


@router.put("/admin/jobs/{marketplace}/schedule", response_model=schemas.MessageOut)
def update_schedule(marketplace: str, payload: schemas.ScheduleUpdate, ctx=Depends(get_context)):
    _known(ctx, marketplace)
    ctx.job_manager.update_job_schedule(marketplace, payload.hours)
    return {"message": f"Schedule for {marketplace} updated to every {payload.hours} hours"}


@router.get("/admin/logs", response_model=List[schemas.ScrapingLogOut])
def list_logs(
    marketplace: str | None = Query(None),
    level: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    ctx=Depends(get_context),
):
    with ctx.session_factory() as db:
        return crud.list_logs(db, marketplace=marketplace, level=level, limit=limit, offset=offset)
