from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .frequency import Frequency
from .models import TaskPriority, TaskStatus


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    client_id: Optional[str] = None
    description: Optional[str] = None
    assignee_id: Optional[str] = None
    due_at: Optional[datetime] = None
    priority: TaskPriority = TaskPriority.MEDIUM


class TaskStatusUpdate(BaseModel):
    status: TaskStatus

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return TaskStatus.parse(value)


class TaskComplete(BaseModel):
    hours: Optional[Decimal] = Field(default=None, gt=0)
    description: Optional[str] = None
    billable: bool = True


class TaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    template_id: Optional[str]
    client_id: Optional[str]
    assignee_id: Optional[str]
    title: str
    description: Optional[str]
    priority: TaskPriority
    status: TaskStatus
    due_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class TimeEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    task_id: Optional[str]
    client_id: Optional[str]
    user_id: str
    description: str
    hours: Decimal
    billable: bool


class TaskCompleteResult(BaseModel):
    task: TaskRead
    time_entry: Optional[TimeEntryRead] = None


class TemplateCreate(BaseModel):
    client_id: str
    name: str = Field(min_length=1)
    # Free text; normalised onto Frequency by the service.
    frequency: str = Field(min_length=1)
    next_due_at: Optional[datetime] = None
    description: Optional[str] = None
    assignee_id: Optional[str] = None


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    frequency: Optional[str] = None
    next_due_at: Optional[datetime] = None
    description: Optional[str] = None
    assignee_id: Optional[str] = None


class TemplateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    client_id: str
    name: str
    description: Optional[str]
    frequency: Optional[Frequency]
    next_due_at: Optional[datetime]
    assignee_id: Optional[str]
    created_at: datetime
    updated_at: datetime


class TickSummary(BaseModel):
    started_at: datetime
    generated: int
    skipped: int
    seeded: int
    failed: int
    failed_template_ids: list[str] = []


class SchedulerStatus(BaseModel):
    # Built from RecurringTaskScheduler.status(); served in camelCase.
    is_running: bool = Field(serialization_alias="isRunning")
    interval_seconds: int = Field(serialization_alias="intervalSeconds")
    next_check_at: Optional[datetime] = Field(default=None, serialization_alias="nextCheckAt")
    last_run_at: Optional[datetime] = Field(default=None, serialization_alias="lastRunAt")
    last_result: Optional[TickSummary] = Field(default=None, serialization_alias="lastResult")
