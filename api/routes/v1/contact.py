"""
api/routes/v1/contact.py -- Contact form submission and inbox management.

Routes:
  POST   /api/v1/contact                     -- public, rate-limited per IP
  GET    /api/v1/contact/test                -- admin: check SMTP settings
  GET    /api/v1/contact/admin               -- admin: inbox, optional ?status=
  GET    /api/v1/contact/admin/stats         -- admin: counts per status
  GET    /api/v1/contact/admin/{id}          -- admin: one message
  PUT    /api/v1/contact/admin/{id}/status   -- admin: change status
  DELETE /api/v1/contact/admin/{id}          -- admin: delete

Submission persists the message first, then attempts notification email.
Mail failures are logged and reported in the message text only; the visitor
still gets 201 because the message is safely stored.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.audit import audit
from api.limiter import limiter
from api.models import (
    ContactCreate,
    ContactCreated,
    ContactResponse,
    ContactStatsResponse,
    ContactStatusEnum,
    ContactStatusUpdate,
    Envelope,
    MessageResponse,
)
from auth.dependencies import require_admin
from auth.models import SessionClaims
from core.config import get_settings
from core.errors import NotFound, UpstreamFailure
from portfolio.mailer import ContactMailer
from portfolio.models import CONTACT_STATUSES, NEW_CONTACT_STATUS, ContactMessage
from portfolio.store import PortfolioStore

logger = logging.getLogger("ariacreative.api")

_settings = get_settings()

# Auth policy:
# - POST /contact:   public -- slowapi limit per client IP
# - all other routes: requires admin (require_admin)
router = APIRouter()


def _get_store(request: Request) -> PortfolioStore:
    return request.app.state.portfolio


@router.post("/contact", response_model=Envelope[ContactCreated], status_code=201)
@limiter.limit(_settings.contact_rate_limit)
def submit_contact(request: Request, body: ContactCreate) -> Envelope[ContactCreated]:
    """Store a contact form submission, then send notifications best-effort."""
    store = _get_store(request)
    contact = ContactMessage(
        name=body.name,
        email=body.email,
        company=body.company,
        subject=body.subject,
        message=body.message,
        status=NEW_CONTACT_STATUS,
    )
    contact.id = store.create_contact(contact)
    logger.info("Contact message %s stored", contact.id)

    mailer: ContactMailer = request.app.state.mailer
    if not mailer.configured:
        logger.warning("Email not configured; no notification sent for contact message %s", contact.id)
        message = "Message received. Email notifications are not configured."
    else:
        try:
            mailer.send_contact_notifications(contact)
            message = "Message sent successfully."
        except UpstreamFailure as exc:
            logger.warning("Notification email failed for contact message %s: %s", contact.id, exc.message)
            message = "Message received. Notification email could not be sent."

    return Envelope[ContactCreated](message=message, data=ContactCreated(id=contact.id))


@router.get("/contact/test", response_model=MessageResponse)
def test_email(request: Request, admin: SessionClaims = Depends(require_admin)) -> MessageResponse:
    """Open an authenticated SMTP session to check the configuration. 502 on failure."""
    mailer: ContactMailer = request.app.state.mailer
    mailer.verify()
    return MessageResponse(message="Email configuration is valid.")


@router.get("/contact/admin", response_model=Envelope[list[ContactResponse]])
def list_messages(
    request: Request,
    status: Optional[ContactStatusEnum] = None,
    admin: SessionClaims = Depends(require_admin),
) -> Envelope[list[ContactResponse]]:
    store = _get_store(request)
    messages = store.list_contacts(status=status.value if status else None)
    return Envelope[list[ContactResponse]](data=[ContactResponse.from_domain(m) for m in messages])


@router.get("/contact/admin/stats", response_model=Envelope[ContactStatsResponse])
def message_stats(request: Request, admin: SessionClaims = Depends(require_admin)) -> Envelope[ContactStatsResponse]:
    counts = _get_store(request).contact_stats()
    return Envelope[ContactStatsResponse](
        data=ContactStatsResponse(
            total=counts["total"],
            by_status={status: counts[status] for status in CONTACT_STATUSES},
        )
    )


@router.get("/contact/admin/{message_id}", response_model=Envelope[ContactResponse])
def get_message(
    request: Request,
    message_id: str,
    admin: SessionClaims = Depends(require_admin),
) -> Envelope[ContactResponse]:
    message = _get_store(request).get_contact(message_id)
    if message is None:
        raise NotFound("Message not found.", code="message_not_found")
    return Envelope[ContactResponse](data=ContactResponse.from_domain(message))


@router.put("/contact/admin/{message_id}/status", response_model=Envelope[ContactResponse])
def update_message_status(
    request: Request,
    message_id: str,
    body: ContactStatusUpdate,
    admin: SessionClaims = Depends(require_admin),
) -> Envelope[ContactResponse]:
    store = _get_store(request)
    if not store.set_contact_status(message_id, body.status.value):
        raise NotFound("Message not found.", code="message_not_found")
    audit(admin, "status_change", "contact_message", message_id, status=body.status.value)
    return Envelope[ContactResponse](
        message="Status updated.",
        data=ContactResponse.from_domain(store.get_contact(message_id)),
    )


@router.delete("/contact/admin/{message_id}", response_model=MessageResponse)
def delete_message(
    request: Request,
    message_id: str,
    admin: SessionClaims = Depends(require_admin),
) -> MessageResponse:
    if not _get_store(request).delete_contact(message_id):
        raise NotFound("Message not found.", code="message_not_found")
    audit(admin, "delete", "contact_message", message_id)
    return MessageResponse(message="Message deleted.")
