"""SQLite wrapper implementing DatabaseInterface"""

import logging
from typing import List, Optional

from dealer_contracts.db.base import DatabaseInterface
from dealer_contracts.db import sqlite as sqlite_ops
from dealer_contracts.utils.config import get_settings

logger = logging.getLogger(__name__)


class SQLiteClient(DatabaseInterface):
    """SQLite implementation of DatabaseInterface.
    Wraps the sqlite.py functions; the schema is created on first use."""

    def __init__(self):
        sqlite_ops.init_db()

    def init_db(self) -> None:
        sqlite_ops.init_db()

    def get_vehicle(self, vehicle_id: str) -> Optional[dict]:
        return sqlite_ops.get_vehicle(vehicle_id)

    def get_contact(self, contact_id: str) -> Optional[dict]:
        return sqlite_ops.get_contact(contact_id)

    def insert_session(self, session: dict) -> None:
        sqlite_ops.insert_session(session)

    def get_session(self, token: str) -> Optional[dict]:
        return sqlite_ops.get_session(token)

    def list_sessions(self, vehicle_id: str) -> List[dict]:
        return sqlite_ops.list_sessions(vehicle_id)

    def update_session_if_status(self, token: str, expected_status: str, changes: dict) -> bool:
        return sqlite_ops.update_session_if_status(token, expected_status, changes)

    def insert_contract(self, contract: dict) -> None:
        sqlite_ops.insert_contract(contract)

    def get_contract(self, contract_id: str) -> Optional[dict]:
        return sqlite_ops.get_contract(contract_id)

    def list_contracts(self, vehicle_id: str, contract_type: Optional[str] = None) -> List[dict]:
        return sqlite_ops.list_contracts(vehicle_id, contract_type)

    def delete_contract(self, contract_id: str) -> bool:
        return sqlite_ops.delete_contract(contract_id)

    def list_templates(self) -> List[dict]:
        rows = sqlite_ops.list_templates()
        for row in rows:
            row["is_active"] = bool(row.get("is_active"))
        return rows

    def get_template(self, template_id: str) -> Optional[dict]:
        row = sqlite_ops.get_template(template_id)
        if row:
            row["is_active"] = bool(row.get("is_active"))
        return row

    def upsert_template(self, template: dict) -> str:
        return sqlite_ops.upsert_template(template)

    def delete_template(self, template_id: str) -> bool:
        return sqlite_ops.delete_template(template_id)

    def get_status(self) -> dict:
        settings = get_settings()
        try:
            with sqlite_ops.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) FROM signature_sessions")
                sessions = cursor.fetchone()[0]
                cursor.execute("SELECT COUNT(*) FROM vehicle_contracts")
                contracts = cursor.fetchone()[0]
            return {
                "mode": "sqlite",
                "path": settings.database_path,
                "sessions": sessions,
                "contracts": contracts,
                "status": "connected",
            }
        except Exception as e:
            return {
                "mode": "sqlite",
                "path": settings.database_path,
                "status": f"error: {e}",
            }
