"""
api/audit.py -- Audit trail for admin mutations.

One INFO line per successful create/update/delete/status change on the
"ariacreative.audit" logger. Route it to its own handler in deployment if a
separate audit file is needed.

Audit is best-effort: logging never raises into the caller, so a broken
handler cannot fail the request that already succeeded.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.models import SessionClaims

audit_logger = logging.getLogger("ariacreative.audit")
logger = logging.getLogger("ariacreative.api")


def audit(actor: SessionClaims, action: str, entity: str, entity_id: Optional[str], **context) -> None:
    """Record that actor performed action on entity/entity_id.

    Example:
        audit(admin, "status_change", "project", project_id, status="TERMINE")
    """
    try:
        extra = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        audit_logger.info(
            "actor=%s action=%s entity=%s id=%s %s",
            actor.email,
            action,
            entity,
            entity_id,
            extra,
        )
    except Exception:
        logger.exception("Audit record failed: action=%s entity=%s id=%s", action, entity, entity_id)
