from __future__ import annotations

from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from attendance_app.audit import log_audit
from attendance_app.models import Employee
from attendance_app.schemas import PaginationRead
from attendance_app.security import actor_type_for
from attendance_app.services.attendance import page_count


def client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def pagination(*, page: int, limit: int, total: int) -> PaginationRead:
    return PaginationRead(page=page, limit=limit, total=total, pages=page_count(total, limit))


def audit_action(
    db: Session,
    request: Request,
    *,
    actor: Employee,
    action: str,
    entity_type: str,
    entity_id: int | str,
    details: dict[str, Any] | None = None,
) -> None:
    log_audit(
        db,
        actor_type=actor_type_for(actor),
        actor_id=str(actor.id),
        action=action,
        success=True,
        entity_type=entity_type,
        entity_id=str(entity_id),
        ip=client_ip(request),
        user_agent=user_agent(request),
        details=details,
        request_id=getattr(request.state, "request_id", None),
    )
