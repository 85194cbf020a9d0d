#!/usr/bin/env python
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine


EXPECTED_HEAD = "0001_initial"
REQUIRED_TABLES = (
    "employees",
    "attendance_records",
    "leave_requests",
    "holidays",
    "system_config",
    "audit_logs",
)
BALANCE_COLUMNS = (
    "annual_balance",
    "sick_balance",
    "personal_balance",
    "maternity_balance",
    "paternity_balance",
)


def load_env_if_exists() -> None:
    env_file = Path(".env")
    if not env_file.exists():
        return
    for raw_line in env_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def _engine_from_env() -> Engine:
    load_env_if_exists()
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL not found (.env or env vars).")
    return create_engine(database_url)


def run(engine: Engine | None = None) -> dict:
    engine = engine or _engine_from_env()
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "database_url": engine.url.render_as_string(hide_password=True),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append({"name": name, "status": status, "details": details})

    tables = set(inspect(engine).get_table_names())

    with engine.connect() as conn:
        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        missing_tables = [table for table in REQUIRED_TABLES if table not in tables]
        add("missing_tables", "fail" if missing_tables else "ok", {"tables": missing_tables})

        if "attendance_records" in tables:
            duplicate_days = conn.execute(
                text(
                    """
                    select employee_id, work_date, count(*)
                    from attendance_records
                    group by employee_id, work_date
                    having count(*) > 1
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "duplicate_attendance_per_day",
                "fail" if duplicate_days else "ok",
                {"rows": [[str(value) for value in row] for row in duplicate_days]},
            )

            punch_order_violations = conn.execute(
                text(
                    """
                    select id
                    from attendance_records
                    where punch_out_at is not null
                      and (punch_in_at is null or punch_out_at < punch_in_at)
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "punch_out_before_punch_in",
                "fail" if punch_order_violations else "ok",
                {"sample_ids": [row[0] for row in punch_order_violations]},
            )

        if "employees" in tables:
            negative_condition = " or ".join(f"{column} < 0" for column in BALANCE_COLUMNS)
            negative_balances = conn.execute(
                text(f"select id from employees where {negative_condition} limit 20")
            ).fetchall()
            add(
                "negative_leave_balance",
                "fail" if negative_balances else "ok",
                {"sample_ids": [row[0] for row in negative_balances]},
            )

        if "leave_requests" in tables:
            overlapping = conn.execute(
                text(
                    """
                    select a.id, b.id
                    from leave_requests a
                    join leave_requests b
                      on a.employee_id = b.employee_id
                     and a.id < b.id
                     and a.start_date <= b.end_date
                     and a.end_date >= b.start_date
                    where a.status in ('pending', 'approved')
                      and b.status in ('pending', 'approved')
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "overlapping_active_leaves",
                "fail" if overlapping else "ok",
                {"pairs": [list(row) for row in overlapping]},
            )

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
