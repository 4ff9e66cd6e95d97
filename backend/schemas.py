"""Response models shared by the admin and student routers."""

from datetime import datetime

from pydantic import BaseModel


class StudentResponse(BaseModel):
    id: str
    full_name: str | None = None
    username: str
    email: str
    role: str
    course: str | None = None
    absences: int | None = 0
    tests: list[dict] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
