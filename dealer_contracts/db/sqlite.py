"""SQLite database operations"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from dealer_contracts.utils.config import get_settings

SESSION_COLUMNS = (
    "id", "token", "vehicle_id", "contract_type", "options_json", "vehicle_json",
    "created_at", "expires_at", "status", "signer_name", "signer_email",
    "signature_image", "source_address", "signed_at", "expired_at", "expired_reason",
)

CONTRACT_COLUMNS = (
    "id", "vehicle_id", "file_name", "artifact_path", "artifact_url", "contract_type",
    "options_json", "vehicle_snapshot_json", "metadata_json", "created_at",
)

TEMPLATE_COLUMNS = ("id", "name", "subject", "body", "template_type", "is_active", "updated_at")


def get_db_path() -> Path:
    """Get database path from settings"""
    settings = get_settings()
    return Path(settings.database_path)


@contextmanager
def get_connection():
    """Get a database connection as context manager"""
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), timeout=10)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db():
    """Initialize database with schema"""
    with get_connection() as conn:
        cursor = conn.cursor()

        # Collaborator tables; owned by inventory/CRM, mirrored here for local use
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS contacts (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT,
                address TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS vehicles (
                id TEXT PRIMARY KEY,
                vin TEXT,
                license_number TEXT,
                brand TEXT,
                model TEXT,
                color TEXT,
                year INTEGER,
                mileage INTEGER,
                selling_price INTEGER DEFAULT 0,
                customer_id TEXT REFERENCES contacts(id),
                sales_status TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS signature_sessions (
                id TEXT PRIMARY KEY,
                token TEXT NOT NULL UNIQUE,
                vehicle_id TEXT NOT NULL,
                contract_type TEXT NOT NULL,
                options_json TEXT NOT NULL,
                vehicle_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                signer_name TEXT,
                signer_email TEXT,
                signature_image TEXT,
                source_address TEXT,
                signed_at TEXT,
                expired_at TEXT,
                expired_reason TEXT
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_sessions_vehicle
            ON signature_sessions(vehicle_id)
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS vehicle_contracts (
                id TEXT PRIMARY KEY,
                vehicle_id TEXT NOT NULL,
                file_name TEXT NOT NULL,
                artifact_path TEXT NOT NULL,
                artifact_url TEXT NOT NULL,
                contract_type TEXT NOT NULL,
                options_json TEXT NOT NULL,
                vehicle_snapshot_json TEXT NOT NULL,
                metadata_json TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_contracts_vehicle
            ON vehicle_contracts(vehicle_id, created_at)
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS email_templates (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                subject TEXT NOT NULL,
                body TEXT NOT NULL,
                template_type TEXT NOT NULL DEFAULT 'general',
                is_active INTEGER NOT NULL DEFAULT 1,
                updated_at TEXT
            )
        """)


def _insert(table: str, columns: tuple, row: dict, replace: bool = False) -> None:
    cols = [c for c in columns if c in row]
    placeholders = ", ".join("?" for _ in cols)
    verb = "INSERT OR REPLACE" if replace else "INSERT"
    with get_connection() as conn:
        conn.execute(
            f"{verb} INTO {table} ({', '.join(cols)}) VALUES ({placeholders})",
            [row[c] for c in cols],
        )


def _fetch_one(query: str, params: tuple) -> Optional[dict]:
    with get_connection() as conn:
        row = conn.execute(query, params).fetchone()
        return dict(row) if row else None


def _fetch_all(query: str, params: tuple = ()) -> list[dict]:
    with get_connection() as conn:
        return [dict(r) for r in conn.execute(query, params).fetchall()]


def upsert_contact(contact: dict) -> str:
    """Insert or replace a contact"""
    _insert("contacts", ("id", "name", "email", "address"), contact, replace=True)
    return contact["id"]


def upsert_vehicle(vehicle: dict) -> str:
    """Insert or replace a vehicle"""
    columns = (
        "id", "vin", "license_number", "brand", "model", "color", "year",
        "mileage", "selling_price", "customer_id", "sales_status",
    )
    _insert("vehicles", columns, vehicle, replace=True)
    return vehicle["id"]


def get_vehicle(vehicle_id: str) -> Optional[dict]:
    return _fetch_one("SELECT * FROM vehicles WHERE id = ?", (vehicle_id,))


def get_contact(contact_id: str) -> Optional[dict]:
    return _fetch_one("SELECT * FROM contacts WHERE id = ?", (contact_id,))


def insert_session(session: dict) -> None:
    _insert("signature_sessions", SESSION_COLUMNS, session)


def get_session(token: str) -> Optional[dict]:
    return _fetch_one("SELECT * FROM signature_sessions WHERE token = ?", (token,))


def list_sessions(vehicle_id: str) -> list[dict]:
    return _fetch_all(
        "SELECT * FROM signature_sessions WHERE vehicle_id = ? ORDER BY created_at DESC",
        (vehicle_id,),
    )


def update_session_if_status(token: str, expected_status: str, changes: dict) -> bool:
    """Compare-and-set on status: a single UPDATE guarded by the current status."""
    cols = [c for c in changes if c in SESSION_COLUMNS and c not in ("id", "token")]
    if not cols:
        return False
    assignments = ", ".join(f"{c} = ?" for c in cols)
    with get_connection() as conn:
        cursor = conn.execute(
            f"UPDATE signature_sessions SET {assignments} WHERE token = ? AND status = ?",
            [changes[c] for c in cols] + [token, expected_status],
        )
        return cursor.rowcount == 1


def insert_contract(contract: dict) -> None:
    _insert("vehicle_contracts", CONTRACT_COLUMNS, contract)


def get_contract(contract_id: str) -> Optional[dict]:
    return _fetch_one("SELECT * FROM vehicle_contracts WHERE id = ?", (contract_id,))


def list_contracts(vehicle_id: str, contract_type: Optional[str] = None) -> list[dict]:
    if contract_type:
        return _fetch_all(
            "SELECT * FROM vehicle_contracts WHERE vehicle_id = ? AND contract_type = ? "
            "ORDER BY created_at DESC",
            (vehicle_id, contract_type),
        )
    return _fetch_all(
        "SELECT * FROM vehicle_contracts WHERE vehicle_id = ? ORDER BY created_at DESC",
        (vehicle_id,),
    )


def delete_contract(contract_id: str) -> bool:
    with get_connection() as conn:
        cursor = conn.execute("DELETE FROM vehicle_contracts WHERE id = ?", (contract_id,))
        return cursor.rowcount > 0


def list_templates() -> list[dict]:
    return _fetch_all("SELECT * FROM email_templates ORDER BY name")


def get_template(template_id: str) -> Optional[dict]:
    return _fetch_one("SELECT * FROM email_templates WHERE id = ?", (template_id,))


def upsert_template(template: dict) -> str:
    _insert("email_templates", TEMPLATE_COLUMNS, template, replace=True)
    return template["id"]


def delete_template(template_id: str) -> bool:
    with get_connection() as conn:
        cursor = conn.execute("DELETE FROM email_templates WHERE id = ?", (template_id,))
        return cursor.rowcount > 0
