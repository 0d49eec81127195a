"""Abstract database and storage interfaces. Strategy pattern for SQLite/Supabase switching"""

from abc import ABC, abstractmethod
from typing import List, Optional


class DatabaseInterface(ABC):
    """Abstract interface for database operations.
    Implemented by both SQLite and Supabase backends.

    JSON payloads (options, snapshots) travel as serialized strings so every
    backend can store them in a plain text column.
    """

    @abstractmethod
    def init_db(self) -> None:
        """Initialize database schema (create tables, indexes)."""

    # Collaborator lookups (inventory / CRM)

    @abstractmethod
    def get_vehicle(self, vehicle_id: str) -> Optional[dict]:
        """Get vehicle row by ID."""

    @abstractmethod
    def get_contact(self, contact_id: str) -> Optional[dict]:
        """Get contact row (name, email, address) by ID."""

    # Signature sessions

    @abstractmethod
    def insert_session(self, session: dict) -> None:
        """Insert a new signature session row."""

    @abstractmethod
    def get_session(self, token: str) -> Optional[dict]:
        """Get a session row by its token."""

    @abstractmethod
    def list_sessions(self, vehicle_id: str) -> List[dict]:
        """All sessions for a vehicle, newest first."""

    @abstractmethod
    def update_session_if_status(self, token: str, expected_status: str, changes: dict) -> bool:
        """Conditionally update a session.

        Applies `changes` only while the stored status equals
        `expected_status`, as one atomic write. Returns True when a row changed.
        """

    # Archived contracts

    @abstractmethod
    def insert_contract(self, contract: dict) -> None:
        """Insert archive metadata for a stored contract."""

    @abstractmethod
    def get_contract(self, contract_id: str) -> Optional[dict]:
        """Get archive metadata by ID."""

    @abstractmethod
    def list_contracts(self, vehicle_id: str, contract_type: Optional[str] = None) -> List[dict]:
        """Archive metadata for a vehicle, newest first."""

    @abstractmethod
    def delete_contract(self, contract_id: str) -> bool:
        """Delete archive metadata. Returns False if nothing was deleted."""

    # Email templates

    @abstractmethod
    def list_templates(self) -> List[dict]:
        """All email templates ordered by name."""

    @abstractmethod
    def get_template(self, template_id: str) -> Optional[dict]:
        """Get an email template by ID."""

    @abstractmethod
    def upsert_template(self, template: dict) -> str:
        """Insert or update an email template. Returns template ID."""

    @abstractmethod
    def delete_template(self, template_id: str) -> bool:
        """Delete an email template. Returns False if nothing was deleted."""

    @abstractmethod
    def get_status(self) -> dict:
        """Get database status info (table counts, connection status)."""


class StorageInterface(ABC):
    """Blob storage for contract PDFs"""

    @abstractmethod
    def put(self, path: str, data: bytes, content_type: str = "application/pdf") -> str:
        """Store bytes at path. Returns a URL for the stored object."""

    @abstractmethod
    def get_url(self, path: str, ttl: Optional[int] = None) -> str:
        """Public URL, or a signed URL valid for `ttl` seconds."""

    @abstractmethod
    def get(self, path: str) -> bytes:
        """Read the stored bytes."""

    @abstractmethod
    def remove(self, path: str) -> None:
        """Remove the object at path. Raises on failure."""
