"""
portfolio/models.py -- Domain dataclasses for the agency portfolio and inbox.

These are pure data containers with zero logic. Persistence lives in
portfolio/store.py; validation of incoming payloads lives in api/models.py.

id is None before a record is written to the database.
"""

from dataclasses import dataclass, field
from typing import Optional

PROJECT_STATUSES = ("EN_COURS", "TERMINE", "EN_ATTENTE")
PUBLIC_PROJECT_STATUS = "TERMINE"

CONTACT_STATUSES = ("NOUVEAU", "LU", "TRAITE", "ARCHIVE")
NEW_CONTACT_STATUS = "NOUVEAU"


@dataclass
class Project:
    """A portfolio entry.

    Only status == "TERMINE" projects are visible to anonymous visitors.
    technologies keeps the order the admin entered.
    """

    title: str
    description: str
    client: str
    duration: str
    status: str  # "EN_COURS" | "TERMINE" | "EN_ATTENTE"
    technologies: list[str] = field(default_factory=list)
    date: str = ""  # YYYY-MM-DD
    url: Optional[str] = None
    image_url: Optional[str] = None
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ContactMessage:
    """A message submitted through the public contact form."""

    name: str
    email: str
    subject: str
    message: str
    company: Optional[str] = None
    status: str = NEW_CONTACT_STATUS  # "NOUVEAU" | "LU" | "TRAITE" | "ARCHIVE"
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ProjectImage:
    """An uploaded image, standalone or attached to a project.

    Exactly one of data (database backend) or path (disk backend) is set.
    path is relative to the configured upload directory.
    """

    filename: str
    mimetype: str
    size: int
    data: Optional[bytes] = None
    path: Optional[str] = None
    project_id: Optional[str] = None
    id: Optional[str] = None
    created_at: str = ""


@dataclass
class Category:
    name: str
    id: Optional[str] = None


@dataclass
class AssociationResult:
    """Outcome for one project in a bulk category association."""

    project_id: str
    ok: bool
    error: Optional[str] = None


@dataclass
class AssociationReport:
    """Per-item outcome of a bulk association.

    Failures never roll back successes; callers retry only the failed subset.
    """

    category_id: str
    results: list[AssociationResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)
