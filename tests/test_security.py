from __future__ import annotations

import unittest
from unittest.mock import patch

from jose import jwt

from attendance_app.errors import ApiError, Forbidden
from attendance_app.models import AuditActorType, Employee, EmployeeRole
from attendance_app.security import (
    actor_type_for,
    can_access_employee,
    create_access_token,
    decode_token,
    ensure_can_access_employee,
)
from attendance_app.settings import Settings


def _settings() -> Settings:
    return Settings(jwt_secret="unit-test-secret", access_token_minutes=5)


def _employee(employee_id: int, role: EmployeeRole, manager_id: int | None = None) -> Employee:
    return Employee(
        id=employee_id,
        employee_code=f"E{employee_id}",
        first_name="Test",
        last_name=str(employee_id),
        email=f"e{employee_id}@example.com",
        role=role,
        department="Ops",
        manager_id=manager_id,
    )


class TokenTests(unittest.TestCase):
    def test_token_round_trip(self) -> None:
        with patch("attendance_app.security.get_settings", return_value=_settings()):
            token, expires_in = create_access_token(employee_id=42, role=EmployeeRole.MANAGER)
            payload = decode_token(token)

        self.assertEqual(expires_in, 300)
        self.assertEqual(payload["sub"], "42")
        self.assertEqual(payload["role"], "manager")
        self.assertEqual(payload["typ"], "access")

    def test_token_signed_with_other_secret_is_rejected(self) -> None:
        with patch("attendance_app.security.get_settings", return_value=_settings()):
            token, _ = create_access_token(employee_id=42, role=EmployeeRole.EMPLOYEE)

        with patch(
            "attendance_app.security.get_settings",
            return_value=Settings(jwt_secret="another-secret"),
        ):
            with self.assertRaises(ApiError) as ctx:
                decode_token(token)

        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.code, "INVALID_TOKEN")

    def test_token_with_wrong_type_is_rejected(self) -> None:
        settings = _settings()
        with patch("attendance_app.security.get_settings", return_value=settings):
            token, _ = create_access_token(employee_id=7, role=EmployeeRole.EMPLOYEE)
            claims = jwt.get_unverified_claims(token)
            claims["typ"] = "refresh"
            forged = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")

            with self.assertRaises(ApiError) as ctx:
                decode_token(forged)

        self.assertEqual(ctx.exception.code, "INVALID_TOKEN")


class AccessRuleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.admin = _employee(1, EmployeeRole.ADMIN)
        self.manager = _employee(2, EmployeeRole.MANAGER)
        self.member = _employee(3, EmployeeRole.EMPLOYEE, manager_id=2)
        self.outsider = _employee(4, EmployeeRole.EMPLOYEE)

    def test_everyone_can_access_themselves(self) -> None:
        self.assertTrue(can_access_employee(self.outsider, self.outsider))

    def test_admin_can_access_anyone(self) -> None:
        self.assertTrue(can_access_employee(self.admin, self.outsider))

    def test_manager_can_access_only_team(self) -> None:
        self.assertTrue(can_access_employee(self.manager, self.member))
        self.assertFalse(can_access_employee(self.manager, self.outsider))

    def test_employee_cannot_access_peers(self) -> None:
        with self.assertRaises(Forbidden):
            ensure_can_access_employee(self.member, self.outsider)

    def test_actor_type_follows_role(self) -> None:
        self.assertEqual(actor_type_for(self.admin), AuditActorType.ADMIN)
        self.assertEqual(actor_type_for(self.manager), AuditActorType.MANAGER)
        self.assertEqual(actor_type_for(self.member), AuditActorType.EMPLOYEE)


if __name__ == "__main__":
    unittest.main()
