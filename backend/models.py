"""
Pydantic models for the Camp Roster Organizer API.

Defines the processing options sent with uploads and the JSON shapes
returned by the preview and health endpoints.
"""

from typing import Literal

from pydantic import BaseModel


class ProcessOptions(BaseModel):
    """Filtering and ordering options sent with an uploaded registration sheet."""

    hide_cancelled: bool = False
    hide_no_number: bool = False
    sort_by: Literal["registrationNumber", "originalIndex"] = "registrationNumber"


class StudentRow(BaseModel):
    """One processed child as shown in the preview table."""

    original_index: int
    index: int
    registration_number: str = ""
    child_name: str = ""
    gender: str = ""
    grade: str = ""
    school: str = ""
    sibling_titles: str = "無"
    sibling_names: str = "無"
    sibling_genders: str = "無"
    sibling_grades: str = "無"
    guardian_name: str = ""
    guardian_phone: str = ""
    note: str = ""


class GradeGroupPreview(BaseModel):
    """All children of one grade bucket."""

    grade: str
    count: int = 0
    students: list[StudentRow] = []


class RosterPreviewResponse(BaseModel):
    """Response from the /api/preview endpoint."""

    success: bool
    total_students: int = 0
    groups: list[GradeGroupPreview] = []
    error: str | None = None


class HealthResponse(BaseModel):
    status: str
    message: str = ""
