from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from attendance_app.db import get_db
from attendance_app.errors import ApiError, Forbidden
from attendance_app.models import AuditActorType, Employee, EmployeeRole
from attendance_app.settings import get_settings

bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_TOKEN_TYPE = "access"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _invalid_token(message: str) -> ApiError:
    return ApiError(status_code=401, code="INVALID_TOKEN", message=message)


def create_access_token(*, employee_id: int, role: EmployeeRole) -> tuple[str, int]:
    settings = get_settings()
    now = _utcnow()
    expires_in = settings.access_token_minutes * 60
    claims = {
        "sub": str(employee_id),
        "role": role.value,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "jti": str(uuid4()),
        "typ": ACCESS_TOKEN_TYPE,
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, expires_in


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise _invalid_token("Token is invalid.") from exc

    if payload.get("typ") != ACCESS_TOKEN_TYPE:
        raise _invalid_token("Token type is invalid.")

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.isdigit():
        raise _invalid_token("Token subject is invalid.")
    return payload


def actor_type_for(employee: Employee) -> AuditActorType:
    if employee.role == EmployeeRole.ADMIN:
        return AuditActorType.ADMIN
    if employee.role == EmployeeRole.MANAGER:
        return AuditActorType.MANAGER
    return AuditActorType.EMPLOYEE


def get_current_employee(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Employee:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _invalid_token("Missing bearer token.")

    payload = decode_token(credentials.credentials)
    employee = db.get(Employee, int(payload["sub"]))
    if employee is None:
        raise _invalid_token("Token subject is invalid.")
    if not employee.is_active:
        raise Forbidden("Employee account is inactive.")

    request.state.actor = actor_type_for(employee).value.lower()
    request.state.actor_id = str(employee.id)
    return employee


def require_roles(*roles: EmployeeRole) -> Callable[..., Employee]:
    if not roles:
        raise ValueError("At least one role is required")
    allowed = frozenset(roles)

    def _dependency(employee: Employee = Depends(get_current_employee)) -> Employee:
        if employee.role not in allowed:
            raise Forbidden("Insufficient permissions.")
        return employee

    return _dependency


def can_access_employee(actor: Employee, target: Employee) -> bool:
    if actor.id == target.id or actor.role == EmployeeRole.ADMIN:
        return True
    return actor.role == EmployeeRole.MANAGER and target.manager_id == actor.id


def ensure_can_access_employee(actor: Employee, target: Employee) -> None:
    if not can_access_employee(actor, target):
        raise Forbidden("Access denied.")
