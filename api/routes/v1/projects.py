"""
api/routes/v1/projects.py -- Portfolio project endpoints.

Routes:
  GET    /api/v1/projects               -- public: TERMINE projects, newest first
  GET    /api/v1/projects/admin         -- admin: all projects, optional ?status=
  GET    /api/v1/projects/admin/{id}    -- admin: one project, any status
  GET    /api/v1/projects/{id}          -- public: one TERMINE project
  POST   /api/v1/projects               -- admin: create (201)
  PATCH  /api/v1/projects/{id}          -- admin: partial update
  DELETE /api/v1/projects/{id}          -- admin: delete with images and category links
  POST   /api/v1/projects/{id}/status   -- admin: change status

The /admin routes are declared before /{id} so "admin" is never captured as
a project ID.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.audit import audit
from api.models import (
    Envelope,
    MessageResponse,
    ProjectCreate,
    ProjectResponse,
    ProjectStatusEnum,
    ProjectStatusUpdate,
    ProjectUpdate,
)
from auth.dependencies import require_admin
from auth.models import SessionClaims
from core.errors import NotFound
from portfolio.models import PUBLIC_PROJECT_STATUS, Project
from portfolio.store import PortfolioStore
from portfolio.uploads import ImageStorage

# Auth policy:
# - GET  /projects, /projects/{id}:  public -- TERMINE only, 404 for anything else
# - all other routes:                 requires admin (require_admin)
router = APIRouter()


def _get_store(request: Request) -> PortfolioStore:
    return request.app.state.portfolio


def _detail(store: PortfolioStore, project: Project) -> ProjectResponse:
    return ProjectResponse.from_domain(
        project,
        images=store.list_images(project_id=project.id),
        categories=store.get_project_categories(project.id),
    )


def _require_project(store: PortfolioStore, project_id: str) -> Project:
    project = store.get_project(project_id)
    if project is None:
        raise NotFound("Project not found.", code="project_not_found")
    return project


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.get("/projects", response_model=Envelope[list[ProjectResponse]])
def list_public_projects(request: Request) -> Envelope[list[ProjectResponse]]:
    """Return completed projects only, newest first."""
    store = _get_store(request)
    projects = store.list_projects(status=PUBLIC_PROJECT_STATUS)
    return Envelope[list[ProjectResponse]](data=[ProjectResponse.from_domain(p) for p in projects])


# ---------------------------------------------------------------------------
# Admin read endpoints
# ---------------------------------------------------------------------------


@router.get("/projects/admin", response_model=Envelope[list[ProjectResponse]])
def list_all_projects(
    request: Request,
    status: Optional[ProjectStatusEnum] = None,
    admin: SessionClaims = Depends(require_admin),
) -> Envelope[list[ProjectResponse]]:
    """Return every project regardless of status, optionally filtered by ?status=."""
    store = _get_store(request)
    projects = store.list_projects(status=status.value if status else None)
    return Envelope[list[ProjectResponse]](data=[ProjectResponse.from_domain(p) for p in projects])


@router.get("/projects/admin/{project_id}", response_model=Envelope[ProjectResponse])
def get_any_project(
    request: Request,
    project_id: str,
    admin: SessionClaims = Depends(require_admin),
) -> Envelope[ProjectResponse]:
    store = _get_store(request)
    project = _require_project(store, project_id)
    return Envelope[ProjectResponse](data=_detail(store, project))


@router.get("/projects/{project_id}", response_model=Envelope[ProjectResponse])
def get_public_project(request: Request, project_id: str) -> Envelope[ProjectResponse]:
    """Return one project if it is public. Unpublished projects are reported as absent."""
    store = _get_store(request)
    project = store.get_project(project_id)
    if project is None or project.status != PUBLIC_PROJECT_STATUS:
        raise NotFound("Project not found.", code="project_not_found")
    return Envelope[ProjectResponse](data=_detail(store, project))


# ---------------------------------------------------------------------------
# Admin write endpoints
# ---------------------------------------------------------------------------


@router.post("/projects", response_model=Envelope[ProjectResponse], status_code=201)
def create_project(
    request: Request,
    body: ProjectCreate,
    admin: SessionClaims = Depends(require_admin),
) -> Envelope[ProjectResponse]:
    store = _get_store(request)
    project = Project(
        title=body.title,
        description=body.description,
        technologies=body.technologies,
        client=body.client,
        duration=body.duration,
        status=body.status.value,
        date=(body.date or datetime.now(timezone.utc).date()).isoformat(),
        url=body.url,
        image_url=body.image_url,
    )
    project_id = store.create_project(project)
    audit(admin, "create", "project", project_id, title=body.title)
    created = store.get_project(project_id)
    return Envelope[ProjectResponse](message="Project created.", data=ProjectResponse.from_domain(created))


@router.patch("/projects/{project_id}", response_model=Envelope[ProjectResponse])
def update_project(
    request: Request,
    project_id: str,
    body: ProjectUpdate,
    admin: SessionClaims = Depends(require_admin),
) -> Envelope[ProjectResponse]:
    store = _get_store(request)
    _require_project(store, project_id)
    changes = body.changes()
    if changes:
        store.update_project(project_id, **changes)
        audit(admin, "update", "project", project_id, fields=",".join(sorted(changes)))
    updated = _require_project(store, project_id)
    return Envelope[ProjectResponse](message="Project updated.", data=_detail(store, updated))


@router.delete("/projects/{project_id}", response_model=MessageResponse)
def delete_project(
    request: Request,
    project_id: str,
    admin: SessionClaims = Depends(require_admin),
) -> MessageResponse:
    """Delete a project, its images (rows and files) and its category links."""
    store = _get_store(request)
    _require_project(store, project_id)
    images = store.list_images(project_id=project_id)
    if not store.delete_project(project_id):
        raise NotFound("Project not found.", code="project_not_found")
    image_storage: ImageStorage = request.app.state.image_storage
    image_storage.remove_stored_files(images)
    audit(admin, "delete", "project", project_id, images=len(images))
    return MessageResponse(message="Project deleted.")


@router.post("/projects/{project_id}/status", response_model=Envelope[ProjectResponse])
def update_project_status(
    request: Request,
    project_id: str,
    body: ProjectStatusUpdate,
    admin: SessionClaims = Depends(require_admin),
) -> Envelope[ProjectResponse]:
    """Change a project's status. Only EN_COURS, TERMINE and EN_ATTENTE are accepted."""
    store = _get_store(request)
    if not store.set_project_status(project_id, body.status.value):
        raise NotFound("Project not found.", code="project_not_found")
    audit(admin, "status_change", "project", project_id, status=body.status.value)
    updated = _require_project(store, project_id)
    return Envelope[ProjectResponse](message="Project status updated.", data=ProjectResponse.from_domain(updated))
