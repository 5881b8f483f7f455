#!/usr/bin/env python3
"""
Teller Risk Ledger: Database Setup Script

Supports:
- init: First-time schema creation
- reset: Drop and recreate tables (--mode=data|schema)
- verify: Check DB connectivity, schema, and (with --chain) audit chain integrity

Usage:
    uv run python scripts/setup_database.py init
    uv run python scripts/setup_database.py reset --mode data -y
    uv run python scripts/setup_database.py verify --chain

Environment Variables:
- DATABASE_URL_ADMIN: Admin connection with schema creation permissions (primary)
- DATABASE_URL: Fallback
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import psycopg
from psycopg.rows import dict_row

from teller_risk.audit.chain import ChainVerifier
from teller_risk.core.database import SCHEMA
from teller_risk.domain.models.risk import AuditLogEntry

# Drop order respects foreign keys
TABLES = ["alerts", "audit_logs", "member_profiles", "transactions"]

VERIFY_BATCH_SIZE = 1000


@dataclass
class SetupResult:
    """Result of a setup step."""

    success: bool
    message: str
    details: str | None = None


class ResetMode(Enum):
    """Database reset modes."""

    SCHEMA = "schema"
    DATA = "data"


def _normalize_url(url: str) -> str:
    """psycopg wants a plain libpq URL, not a SQLAlchemy one."""
    for driver in ("postgresql+asyncpg://", "postgresql+psycopg://"):
        if url.startswith(driver):
            return "postgresql://" + url.removeprefix(driver)
    return url


class DatabaseSetup:
    """Handles database setup for the Teller Risk Ledger."""

    def __init__(self, admin_url: str):
        self.admin_url = _normalize_url(admin_url)
        self.repo_root = Path(__file__).parent.parent

    def _load_sql_file(self, filename: str) -> str:
        """Load SQL file from db directory."""
        sql_path = self.repo_root / "db" / filename
        if not sql_path.exists():
            raise FileNotFoundError(f"SQL file not found: {sql_path}")
        return sql_path.read_text(encoding="utf-8")

    def _execute_sql(
        self, conn: psycopg.Connection, sql_content: str, description: str
    ) -> SetupResult:
        """Execute a whole SQL script in one round trip."""
        try:
            conn.execute(sql_content)
            conn.commit()
            return SetupResult(success=True, message=description, details="Script applied")
        except psycopg.Error as e:
            conn.rollback()
            return SetupResult(
                success=False,
                message=description,
                details=f"{type(e).__name__}: {e}",
            )

    def init(self) -> int:
        """Initialize database schema."""
        print("Initializing database schema...")
        schema_sql = self._load_sql_file("schema.sql")

        try:
            with psycopg.connect(self.admin_url, autocommit=False) as conn:
                print("  Applying schema...")
                result = self._execute_sql(conn, schema_sql, "Schema creation failed")
                if not result.success:
                    print(f"ERROR: {result.details}")
                    return 1
                print(f"  Schema applied: {result.details}")
        except psycopg.Error as e:
            print(f"ERROR: Database connection failed: {e}")
            return 1

        print("Database initialization complete.")
        return 0

    def reset(self, mode: ResetMode, force: bool = False) -> int:
        """Reset database tables (schema or data mode)."""
        print(f"Resetting database tables ({mode.value})...")

        if not force:
            response = input("This destroys all ledger data, including the audit chain. Continue? [y/N]: ")
            if response.lower() != "y":
                print("Aborted.")
                return 1

        try:
            with psycopg.connect(self.admin_url, autocommit=False) as conn:
                if mode == ResetMode.SCHEMA:
                    print(f"  Dropping tables in {SCHEMA}...")
                    for table in TABLES:
                        conn.execute(f"DROP TABLE IF EXISTS {SCHEMA}.{table} CASCADE")
                    conn.execute(f"DROP FUNCTION IF EXISTS {SCHEMA}.reject_audit_mutation() CASCADE")
                    conn.commit()
                    print("  Tables dropped.")

                    print("  Applying schema...")
                    result = self._execute_sql(
                        conn, self._load_sql_file("schema.sql"), "Schema recreation failed"
                    )
                    if not result.success:
                        print(f"ERROR: {result.details}")
                        return 1
                    print(f"  Schema applied: {result.details}")
                else:
                    print("  Truncating tables...")
                    # TRUNCATE bypasses the row-level append-only trigger
                    conn.execute(
                        f"TRUNCATE TABLE {', '.join(f'{SCHEMA}.{t}' for t in TABLES)} "
                        "RESTART IDENTITY CASCADE"
                    )
                    conn.commit()
                    print("  Tables truncated.")
        except psycopg.Error as e:
            print(f"ERROR: Database reset failed: {e}")
            return 1

        print("Database reset complete.")
        return 0

    def verify_chain(self, conn: psycopg.Connection) -> list[str]:
        """Replay the audit chain with the service's own verifier."""
        verifier = ChainVerifier()
        after_id = 0
        while True:
            rows = conn.execute(
                f"""
                SELECT id, entity_type, entity_id, action, actor_id, actor_role,
                       payload, prev_hash, hash, created_at
                FROM {SCHEMA}.audit_logs
                WHERE id > %s
                ORDER BY id ASC
                LIMIT %s
                """,
                (after_id, VERIFY_BATCH_SIZE),
            ).fetchall()
            if not rows:
                break
            for row in rows:
                verifier.feed(AuditLogEntry.model_validate(row))
            after_id = rows[-1]["id"]

        result = verifier.result()
        if not result.valid:
            return [
                f"Audit chain broken at entry {result.first_divergence_id} "
                f"({len(result.invalid_entries)} invalid of {result.total_entries})"
            ]
        print(f"  [OK] Audit chain intact: {result.total_entries} entries")
        return []

    def verify(self, chain: bool = False) -> int:
        """Verify database setup."""
        print("Verifying database setup...")

        errors: list[str] = []

        try:
            with psycopg.connect(self.admin_url, autocommit=True, row_factory=dict_row) as conn:
                print("  [OK] Database connection")

                result = conn.execute(
                    """
                    SELECT table_name FROM information_schema.tables
                    WHERE table_schema = %s AND table_name = ANY(%s)
                    ORDER BY table_name
                    """,
                    (SCHEMA, TABLES),
                ).fetchall()
                tables = [row["table_name"] for row in result]
                missing = [t for t in TABLES if t not in tables]
                if missing:
                    errors.append(f"Missing tables: {missing}")
                else:
                    print(f"  [OK] Tables exist: {', '.join(tables)}")

                trigger = conn.execute(
                    """
                    SELECT 1 FROM information_schema.triggers
                    WHERE event_object_schema = %s
                    AND event_object_table = 'audit_logs'
                    AND trigger_name = 'audit_logs_append_only'
                    """,
                    (SCHEMA,),
                ).fetchone()
                if trigger is None:
                    errors.append("Append-only trigger missing on audit_logs")
                else:
                    print("  [OK] audit_logs is append-only")

                if chain and not missing:
                    errors.extend(self.verify_chain(conn))
        except psycopg.Error as e:
            errors.append(f"Database check failed: {e}")

        if errors:
            print("\nVerification FAILED:")
            for err in errors:
                print(f"  - {err}")
            return 1

        print("\nVerification PASSED.")
        return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Teller Risk Ledger - Database Setup",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--admin-url",
        help="Admin database URL (overrides env var)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init", help="First-time setup")

    reset_parser = subparsers.add_parser("reset", help="Reset database")
    reset_parser.add_argument(
        "--mode",
        choices=["schema", "data"],
        default="schema",
        help="Reset mode: schema (drop/recreate) or data (truncate only)",
    )
    reset_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Skip confirmation prompt",
    )

    verify_parser = subparsers.add_parser("verify", help="Verify database setup")
    verify_parser.add_argument(
        "--chain", action="store_true", help="Also replay the audit chain"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    admin_url = args.admin_url or os.getenv("DATABASE_URL_ADMIN") or os.getenv("DATABASE_URL")

    if not admin_url:
        print("ERROR: DATABASE_URL_ADMIN is required")
        print("Set it as environment variable or via --admin-url")
        return 2

    setup = DatabaseSetup(admin_url=admin_url)

    if args.command == "init":
        return setup.init()
    elif args.command == "reset":
        return setup.reset(mode=ResetMode(args.mode), force=args.yes)
    elif args.command == "verify":
        return setup.verify(chain=args.chain)

    return 0


if __name__ == "__main__":
    sys.exit(main())
