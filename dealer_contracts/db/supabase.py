"""Supabase database and storage clients implementing the db interfaces"""

import logging
from pathlib import Path
from typing import List, Optional

from dealer_contracts.db.base import DatabaseInterface, StorageInterface
from dealer_contracts.utils.config import get_settings

logger = logging.getLogger(__name__)

# Lazy imports to avoid requiring supabase when using sqlite mode
_supabase_client = None
_service_client = None


def _get_supabase_client():
    """Get or create the singleton Supabase client (anon key)."""
    global _supabase_client
    if _supabase_client is None:
        from supabase import ClientOptions, create_client

        settings = get_settings()
        if not settings.supabase_url or not settings.supabase_key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_KEY must be set when DB_MODE=supabase"
            )
        _supabase_client = create_client(
            settings.supabase_url,
            settings.supabase_key,
            options=ClientOptions(
                postgrest_client_timeout=10,
                storage_client_timeout=30,
            ),
        )
    return _supabase_client


def _get_service_client():
    """Get or create the singleton Supabase service-role client (bypasses RLS).

    The public signing page is unauthenticated, so session reads and writes
    go through the service role.
    """
    global _service_client
    if _service_client is None:
        from supabase import ClientOptions, create_client

        settings = get_settings()
        key = settings.supabase_service_key or settings.supabase_key
        if not settings.supabase_url or not key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set for write operations"
            )
        _service_client = create_client(
            settings.supabase_url,
            key,
            options=ClientOptions(
                postgrest_client_timeout=10,
                storage_client_timeout=30,
            ),
        )
    return _service_client


class SupabaseClient(DatabaseInterface):
    """Supabase implementation of DatabaseInterface."""

    def __init__(self):
        self._read = _get_supabase_client
        self._write = _get_service_client

    def init_db(self) -> None:
        """Verify the schema exists.
        Tables are created by running the migration SQL in the Supabase SQL Editor."""
        client = self._write()
        try:
            client.table("signature_sessions").select("id").limit(1).execute()
            client.table("vehicle_contracts").select("id").limit(1).execute()
            logger.info("Supabase schema verified: tables accessible")
        except Exception as e:
            migration_path = Path(__file__).parent / "migrations" / "001_contracts.sql"
            logger.error(
                f"Schema not found. Run migration SQL in Supabase SQL Editor: {migration_path}"
            )
            raise RuntimeError(
                f"Supabase schema not initialized. Run 001_contracts.sql in SQL Editor. Error: {e}"
            ) from e

    def get_vehicle(self, vehicle_id: str) -> Optional[dict]:
        client = self._read()
        result = client.table("vehicles").select("*").eq("id", vehicle_id).limit(1).execute()
        return result.data[0] if result.data else None

    def get_contact(self, contact_id: str) -> Optional[dict]:
        client = self._read()
        result = (
            client.table("contacts")
            .select("id, name, email, address")
            .eq("id", contact_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    # Signature sessions

    def insert_session(self, session: dict) -> None:
        client = self._write()
        client.table("signature_sessions").insert(session).execute()

    def get_session(self, token: str) -> Optional[dict]:
        client = self._write()
        result = client.table("signature_sessions").select("*").eq("token", token).limit(1).execute()
        return result.data[0] if result.data else None

    def list_sessions(self, vehicle_id: str) -> List[dict]:
        client = self._write()
        result = (
            client.table("signature_sessions")
            .select("*")
            .eq("vehicle_id", vehicle_id)
            .order("created_at", desc=True)
            .execute()
        )
        return result.data

    def update_session_if_status(self, token: str, expected_status: str, changes: dict) -> bool:
        """PostgREST applies the filter and the update in one statement."""
        client = self._write()
        data = {k: v for k, v in changes.items() if k not in ("id", "token")}
        result = (
            client.table("signature_sessions")
            .update(data)
            .eq("token", token)
            .eq("status", expected_status)
            .execute()
        )
        return len(result.data) == 1

    # Archived contracts

    def insert_contract(self, contract: dict) -> None:
        client = self._write()
        client.table("vehicle_contracts").insert(contract).execute()

    def get_contract(self, contract_id: str) -> Optional[dict]:
        client = self._read()
        result = client.table("vehicle_contracts").select("*").eq("id", contract_id).limit(1).execute()
        return result.data[0] if result.data else None

    def list_contracts(self, vehicle_id: str, contract_type: Optional[str] = None) -> List[dict]:
        client = self._read()
        query = client.table("vehicle_contracts").select("*").eq("vehicle_id", vehicle_id)
        if contract_type:
            query = query.eq("contract_type", contract_type)
        result = query.order("created_at", desc=True).execute()
        return result.data

    def delete_contract(self, contract_id: str) -> bool:
        client = self._write()
        result = client.table("vehicle_contracts").delete().eq("id", contract_id).execute()
        return bool(result.data)

    # Email templates

    def list_templates(self) -> List[dict]:
        client = self._read()
        return client.table("email_templates").select("*").order("name").execute().data

    def get_template(self, template_id: str) -> Optional[dict]:
        client = self._read()
        result = client.table("email_templates").select("*").eq("id", template_id).limit(1).execute()
        return result.data[0] if result.data else None

    def upsert_template(self, template: dict) -> str:
        client = self._write()
        result = client.table("email_templates").upsert(template).execute()
        return result.data[0]["id"]

    def delete_template(self, template_id: str) -> bool:
        client = self._write()
        result = client.table("email_templates").delete().eq("id", template_id).execute()
        return bool(result.data)

    def get_status(self) -> dict:
        """Get database status info."""
        client = self._write()
        settings = get_settings()
        try:
            sessions = client.table("signature_sessions").select("id", count="exact").execute()
            contracts = client.table("vehicle_contracts").select("id", count="exact").execute()
            return {
                "mode": "supabase",
                "url": settings.supabase_url,
                "sessions": sessions.count or 0,
                "contracts": contracts.count or 0,
                "status": "connected",
            }
        except Exception as e:
            return {
                "mode": "supabase",
                "url": settings.supabase_url,
                "status": f"error: {e}",
            }


class SupabaseStorage(StorageInterface):
    """Contract PDFs in a Supabase Storage bucket"""

    def __init__(self, bucket: Optional[str] = None):
        settings = get_settings()
        self.bucket = bucket or settings.contracts_bucket
        self.default_ttl = settings.signed_url_ttl

    def _bucket(self):
        return _get_service_client().storage.from_(self.bucket)

    def put(self, path: str, data: bytes, content_type: str = "application/pdf") -> str:
        self._bucket().upload(
            path=path,
            file=data,
            file_options={"content-type": content_type, "upsert": "false"},
        )
        return self.get_url(path)

    def get_url(self, path: str, ttl: Optional[int] = None) -> str:
        result = self._bucket().create_signed_url(path, ttl or self.default_ttl)
        return result.get("signedURL") or result.get("signedUrl")

    def get(self, path: str) -> bytes:
        return self._bucket().download(path)

    def remove(self, path: str) -> None:
        removed = self._bucket().remove([path])
        if not removed:
            raise RuntimeError(f"Storage object not removed: {path}")


def get_database(mode: str = None) -> DatabaseInterface:
    """Factory: returns appropriate database implementation.

    mode: 'supabase' or 'sqlite'. Defaults to DB_MODE env var.
    """
    if mode is None:
        mode = get_settings().db_mode

    if mode == "supabase":
        return SupabaseClient()
    else:
        # Import here to avoid circular imports
        from dealer_contracts.db.sqlite_client import SQLiteClient

        return SQLiteClient()


def get_storage(mode: str = None) -> StorageInterface:
    """Factory: Supabase Storage or the local filesystem, following DB_MODE."""
    if mode is None:
        mode = get_settings().db_mode

    if mode == "supabase":
        return SupabaseStorage()
    else:
        from dealer_contracts.db.storage import LocalStorage

        return LocalStorage()
