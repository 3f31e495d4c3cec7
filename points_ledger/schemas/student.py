"""
Pydantic schemas for student enrollment.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class StudentCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=5, max_length=255)
    group_name: str | None = Field(default=None, max_length=50)


class StudentResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    full_name: str
    email: str
    group_name: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
