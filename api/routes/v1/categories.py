"""
api/routes/v1/categories.py -- Project categories.

Routes:
  GET  /api/v1/categories                 -- public list
  POST /api/v1/categories                 -- admin: create (409 on duplicate name)
  POST /api/v1/categories/{id}/projects   -- admin: bulk-link projects

Bulk linking returns a per-project report. One failing project (unknown ID,
already linked) never undoes or hides the others; the response is 200 with
success=false and the failed items listed so the client can retry them.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.audit import audit
from api.models import AssociationResponse, CategoryAssign, CategoryCreate, CategoryResponse, Envelope
from auth.dependencies import require_admin
from auth.models import SessionClaims
from core.errors import Conflict, NotFound
from portfolio.store import PortfolioStore

router = APIRouter()


def _get_store(request: Request) -> PortfolioStore:
    return request.app.state.portfolio


@router.get("/categories", response_model=Envelope[list[CategoryResponse]])
def list_categories(request: Request) -> Envelope[list[CategoryResponse]]:
    categories = _get_store(request).list_categories()
    return Envelope[list[CategoryResponse]](data=[CategoryResponse(id=c.id, name=c.name) for c in categories])


@router.post("/categories", response_model=Envelope[CategoryResponse], status_code=201)
def create_category(
    request: Request,
    body: CategoryCreate,
    admin: SessionClaims = Depends(require_admin),
) -> Envelope[CategoryResponse]:
    try:
        category_id = _get_store(request).create_category(body.name)
    except IntegrityError as exc:
        raise Conflict(f"Category {body.name!r} already exists.", code="category_exists") from exc
    audit(admin, "create", "category", category_id, name=body.name)
    return Envelope[CategoryResponse](message="Category created.", data=CategoryResponse(id=category_id, name=body.name))


@router.post("/categories/{category_id}/projects", response_model=AssociationResponse)
def assign_projects(
    request: Request,
    category_id: str,
    body: CategoryAssign,
    admin: SessionClaims = Depends(require_admin),
) -> AssociationResponse:
    store = _get_store(request)
    if store.get_category(category_id) is None:
        raise NotFound("Category not found.", code="category_not_found")
    report = store.associate_projects(category_id, body.project_ids)
    audit(admin, "associate", "category", category_id, succeeded=report.succeeded, failed=report.failed)
    return AssociationResponse.from_report(report)
