"""
Pydantic schemas for the task sync FastAPI service.
"""

from __future__ import annotations

from pydantic import BaseModel


class CleanupResponse(BaseModel):
    message: str
    deleted: list[str]
    failed: list[str]


class ProvisionResponse(BaseModel):
    uid: str
    task_ids: list[str]


class RemoveUserDataResponse(BaseModel):
    uid: str
    status: str


class HealthResponse(BaseModel):
    status: str
