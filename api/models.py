"""
API request and response models for the Aria Creative REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in portfolio/models.py
and auth/models.py, which own the internal domain representation. Route
handlers map between the two.

JSON field names are camelCase (imageUrl, createdAt, ...) via the shared
_CamelModel config; populate_by_name=True also accepts snake_case on input.

Validation is schema-first: a request body that fails any constraint never
reaches a store, and the 422 response lists every violation at once.
"""

import datetime
from enum import Enum
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from portfolio.models import AssociationReport, Category, ContactMessage, Project, ProjectImage

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
URL_PATTERN = r"^https?://\S+$"

_Email = Annotated[str, Field(pattern=EMAIL_PATTERN, max_length=255)]
_Technology = Annotated[str, Field(min_length=1, max_length=50)]

T = TypeVar("T")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProjectStatusEnum(str, Enum):
    EN_COURS = "EN_COURS"
    TERMINE = "TERMINE"
    EN_ATTENTE = "EN_ATTENTE"


class ContactStatusEnum(str, Enum):
    NOUVEAU = "NOUVEAU"
    LU = "LU"
    TRAITE = "TRAITE"
    ARCHIVE = "ARCHIVE"


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class Envelope(_CamelModel, Generic[T]):
    """Success envelope: {"success": true, "message"?: str, "data": T}."""

    success: bool = True
    message: Optional[str] = None
    data: T


class MessageResponse(_CamelModel):
    success: bool = True
    message: str


class ErrorResponse(_CamelModel):
    """Error envelope returned on every 4xx/5xx response.

    details is omitted from the serialized body when None.
    """

    model_config = ConfigDict(frozen=True)

    success: bool = False
    error: str
    message: str
    details: Any = None


class FieldViolation(_CamelModel):
    field: str
    message: str


class HealthResponse(_CamelModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    timestamp: str
    uptime: float
    database: str = "connected"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(_CamelModel):
    """Request body for POST /api/v1/admin/login.

    Only the email is trimmed. The password is compared exactly as typed,
    matching how main.py create-admin hashes it.
    """

    email: _Email
    # Upper bound keeps bcrypt input well under its 72-byte truncation in practice.
    password: str = Field(min_length=8, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class UserResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    role: str


class ProfileResponse(UserResponse):
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, user: User) -> "ProfileResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class LoginResponse(_CamelModel):
    success: bool = True
    message: str = "Login successful."
    token: str
    expires_in: int
    user: UserResponse


class VerifyResponse(_CamelModel):
    success: bool = True
    user: UserResponse
    expires_at: str


class RefreshResponse(_CamelModel):
    success: bool = True
    token: str
    expires_at: str


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ProjectCreate(_CamelModel):
    """Request body for POST /api/v1/projects."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=2, max_length=200)
    description: str = Field(min_length=10, max_length=1000)
    technologies: list[_Technology] = Field(min_length=1, max_length=30)
    client: str = Field(min_length=2, max_length=100)
    duration: str = Field(min_length=2, max_length=50)
    status: ProjectStatusEnum = ProjectStatusEnum.EN_COURS
    date: Optional[datetime.date] = None
    url: Optional[str] = Field(default=None, pattern=URL_PATTERN, max_length=500)
    image_url: Optional[str] = Field(default=None, max_length=500)

    @field_validator("url", "image_url", mode="before")
    @classmethod
    def empty_string_is_none(cls, value: Any) -> Any:
        """The admin form sends "" for a cleared optional field."""
        return _blank_to_none(value)


class ProjectUpdate(_CamelModel):
    """Request body for PATCH /api/v1/projects/{id}. Only sent fields change."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, min_length=10, max_length=1000)
    technologies: Optional[list[_Technology]] = Field(default=None, min_length=1, max_length=30)
    client: Optional[str] = Field(default=None, min_length=2, max_length=100)
    duration: Optional[str] = Field(default=None, min_length=2, max_length=50)
    status: Optional[ProjectStatusEnum] = None
    date: Optional[datetime.date] = None
    url: Optional[str] = Field(default=None, pattern=URL_PATTERN, max_length=500)
    image_url: Optional[str] = Field(default=None, max_length=500)

    @field_validator("url", "image_url", mode="before")
    @classmethod
    def empty_string_is_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def changes(self) -> dict[str, Any]:
        """Return the fields the client actually sent, ready for PortfolioStore.update_project."""
        fields = self.model_dump(exclude_unset=True)
        for required in ("title", "description", "technologies", "client", "duration", "status", "date"):
            # Explicit null on a required column means "leave unchanged".
            if required in fields and fields[required] is None:
                del fields[required]
        if "status" in fields:
            fields["status"] = fields["status"].value
        if "date" in fields:
            fields["date"] = fields["date"].isoformat()
        return fields


class ProjectStatusUpdate(_CamelModel):
    status: ProjectStatusEnum


class ImageResponse(_CamelModel):
    """Reference to a stored image. url is stable for the life of the image."""

    model_config = ConfigDict(frozen=True)

    image_id: str
    filename: str
    size: int
    mimetype: str
    url: str
    project_id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_domain(cls, image: ProjectImage) -> "ImageResponse":
        return cls(
            image_id=image.id,
            filename=image.filename,
            size=image.size,
            mimetype=image.mimetype,
            url=f"/api/v1/upload/image/{image.id}",
            project_id=image.project_id,
            created_at=image.created_at or None,
        )


class ProjectResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    technologies: list[str]
    client: str
    duration: str
    status: str
    date: str
    url: Optional[str] = None
    image_url: Optional[str] = None
    created_at: str
    updated_at: str
    images: list[ImageResponse] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(
        cls,
        project: Project,
        images: Optional[list[ProjectImage]] = None,
        categories: Optional[list[Category]] = None,
    ) -> "ProjectResponse":
        return cls(
            id=project.id,
            title=project.title,
            description=project.description,
            technologies=project.technologies,
            client=project.client,
            duration=project.duration,
            status=project.status,
            date=project.date,
            url=project.url,
            image_url=project.image_url,
            created_at=project.created_at,
            updated_at=project.updated_at,
            images=[ImageResponse.from_domain(i) for i in images or []],
            categories=[c.name for c in categories or []],
        )


# ---------------------------------------------------------------------------
# Contact messages
# ---------------------------------------------------------------------------


class ContactCreate(_CamelModel):
    """Request body for POST /api/v1/contact."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=50)
    email: _Email
    company: Optional[str] = Field(default=None, max_length=100)
    subject: str = Field(min_length=5, max_length=100)
    message: str = Field(min_length=10, max_length=2000)

    @field_validator("company", mode="before")
    @classmethod
    def empty_company_is_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ContactStatusUpdate(_CamelModel):
    status: ContactStatusEnum


class ContactResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    company: Optional[str] = None
    subject: str
    message: str
    status: str
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, msg: ContactMessage) -> "ContactResponse":
        return cls(
            id=msg.id,
            name=msg.name,
            email=msg.email,
            company=msg.company,
            subject=msg.subject,
            message=msg.message,
            status=msg.status,
            created_at=msg.created_at,
            updated_at=msg.updated_at,
        )


class ContactCreated(_CamelModel):
    id: str


class ContactStatsResponse(_CamelModel):
    """Counts for GET /api/v1/contact/admin/stats. by_status has every status key."""

    total: int
    by_status: dict[str, int]


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class CategoryCreate(_CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=100)


class CategoryResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class CategoryAssign(_CamelModel):
    """Request body for POST /api/v1/categories/{id}/projects."""

    project_ids: list[str] = Field(min_length=1, max_length=100)

    @field_validator("project_ids")
    @classmethod
    def dedupe(cls, values: list[str]) -> list[str]:
        """Drop repeated IDs while preserving order."""
        return list(dict.fromkeys(values))


class AssociationItem(_CamelModel):
    project_id: str
    ok: bool
    error: Optional[str] = None


class AssociationResponse(_CamelModel):
    """Per-project outcome of a bulk association.

    success is True only when every item succeeded; callers retry the failed
    subset listed in results.
    """

    success: bool
    category_id: str
    succeeded: int
    failed: int
    results: list[AssociationItem]

    @classmethod
    def from_report(cls, report: AssociationReport) -> "AssociationResponse":
        return cls(
            success=report.failed == 0,
            category_id=report.category_id,
            succeeded=report.succeeded,
            failed=report.failed,
            results=[AssociationItem(project_id=r.project_id, ok=r.ok, error=r.error) for r in report.results],
        )


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


class ImagesUploadResponse(_CamelModel):
    success: bool = True
    count: int
    images: list[ImageResponse]


class UploadStatsResponse(_CamelModel):
    total_files: int
    total_size: int
    total_size_mb: float = Field(alias="totalSizeMB")
    average_size: int
    average_size_mb: float = Field(alias="averageSizeMB")
