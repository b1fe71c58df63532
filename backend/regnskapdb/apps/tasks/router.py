from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from regnskapdb.security import get_current_active_user, require_roles
from regnskapdb.apps.accounts import models as account_models
from regnskapdb.database import get_db

from . import models, schemas, services
from .scheduler import RecurringTaskScheduler


router = APIRouter(tags=["tasks"])

_require_task_admin = require_roles(
    account_models.AccountRole.ADMIN,
    account_models.AccountRole.OPPDRAGSANSVARLIG,
)


def get_task_scheduler(request: Request) -> RecurringTaskScheduler:
    scheduler = getattr(request.app.state, "task_scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Task scheduler not configured")
    return scheduler


# ---------------------------------------------------------------------------
# Scheduler control (admin / oppdragsansvarlig)
# ---------------------------------------------------------------------------


@router.get("/tasks/scheduler/status", response_model=schemas.SchedulerStatus)
def scheduler_status(
    scheduler: RecurringTaskScheduler = Depends(get_task_scheduler),
    current_user: account_models.User = Depends(_require_task_admin),
):
    return scheduler.status()


@router.post("/tasks/scheduler/trigger", response_model=schemas.TickSummary)
def trigger_scheduler(
    scheduler: RecurringTaskScheduler = Depends(get_task_scheduler),
    current_user: account_models.User = Depends(_require_task_admin),
):
    result = scheduler.trigger_now()
    return result.to_dict()


@router.post("/tasks/scheduler/start", response_model=schemas.SchedulerStatus)
def start_scheduler(
    scheduler: RecurringTaskScheduler = Depends(get_task_scheduler),
    current_user: account_models.User = Depends(_require_task_admin),
):
    scheduler.start()
    return scheduler.status()


@router.post("/tasks/scheduler/stop", response_model=schemas.SchedulerStatus)
def stop_scheduler(
    scheduler: RecurringTaskScheduler = Depends(get_task_scheduler),
    current_user: account_models.User = Depends(_require_task_admin),
):
    scheduler.stop()
    return scheduler.status()


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@router.get("/tasks/my", response_model=List[schemas.TaskRead])
def list_my_tasks(
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_tasks(db, tenant_id=current_user.tenant_id, assignee_id=current_user.id)


@router.get("/tasks", response_model=List[schemas.TaskRead])
def list_tasks(
    status_filter: Optional[str] = None,
    client_id: Optional[str] = None,
    assignee_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    task_status = None
    if status_filter:
        try:
            task_status = models.TaskStatus.parse(status_filter)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return services.list_tasks(
        db,
        tenant_id=current_user.tenant_id,
        status=task_status,
        client_id=client_id,
        assignee_id=assignee_id,
    )


@router.post("/tasks", response_model=schemas.TaskRead, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: schemas.TaskCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    try:
        task = services.create_task(
            db,
            tenant_id=current_user.tenant_id,
            actor_user_id=current_user.id,
            **payload.model_dump(),
        )
    except services.TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    db.commit()
    db.refresh(task)
    return task


@router.patch("/tasks/{task_id}/status", response_model=schemas.TaskRead)
def update_task_status(
    task_id: str,
    payload: schemas.TaskStatusUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    try:
        task = services.get_task(db, tenant_id=current_user.tenant_id, task_id=task_id)
    except services.TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    services.update_task_status(db, task=task, status=payload.status, actor_user_id=current_user.id)
    db.commit()
    db.refresh(task)
    return task


@router.post("/tasks/{task_id}/complete", response_model=schemas.TaskCompleteResult)
def complete_task(
    task_id: str,
    payload: schemas.TaskComplete,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    try:
        task = services.get_task(db, tenant_id=current_user.tenant_id, task_id=task_id)
        task, entry = services.complete_task(
            db,
            task=task,
            actor_user_id=current_user.id,
            hours=payload.hours,
            description=payload.description,
            billable=payload.billable,
        )
    except services.TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    db.refresh(task)
    if entry is not None:
        db.refresh(entry)
    return {"task": task, "time_entry": entry}


# ---------------------------------------------------------------------------
# Recurring templates
# ---------------------------------------------------------------------------


@router.get("/tasks/templates", response_model=List[schemas.TemplateRead])
def list_templates(
    client_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_templates(db, tenant_id=current_user.tenant_id, client_id=client_id)


@router.post("/tasks/templates", response_model=schemas.TemplateRead, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: schemas.TemplateCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(_require_task_admin),
):
    try:
        template = services.create_template(
            db,
            tenant_id=current_user.tenant_id,
            actor_user_id=current_user.id,
            **payload.model_dump(),
        )
    except services.TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    db.commit()
    db.refresh(template)
    return template


@router.patch("/tasks/templates/{template_id}", response_model=schemas.TemplateRead)
def update_template(
    template_id: str,
    payload: schemas.TemplateUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(_require_task_admin),
):
    try:
        template = services.get_template(db, tenant_id=current_user.tenant_id, template_id=template_id)
    except services.TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    try:
        services.update_template(
            db,
            template=template,
            changes=payload.model_dump(exclude_unset=True),
            actor_user_id=current_user.id,
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    db.refresh(template)
    return template
