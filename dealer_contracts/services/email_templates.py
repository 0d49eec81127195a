"""Email templates stored in the database backend"""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from dealer_contracts.db.base import DatabaseInterface
from dealer_contracts.exceptions import NotFoundError, StorageError, ValidationError
from dealer_contracts.models.email import EmailTemplate, TemplateType
from dealer_contracts.models.vehicle import VehicleSnapshot

logger = logging.getLogger(__name__)

PLACEHOLDERS = ("klant_naam", "merk", "model", "kenteken", "handtekening_link")
_PLACEHOLDER_RE = re.compile(r"\{\{\s*([a-z_]+)\s*\}\}")


def template_context(vehicle: VehicleSnapshot, customer_name: str = "", signature_url: str = "") -> dict:
    """Values for the standard placeholders of one vehicle"""
    return {
        "klant_naam": customer_name or vehicle.customer_name or "",
        "merk": vehicle.brand,
        "model": vehicle.model,
        "kenteken": vehicle.license_number,
        "handtekening_link": signature_url,
    }


def render_template(text: str, context: dict) -> str:
    """Fill {{placeholders}}. Unknown placeholders are left as they are."""
    def _sub(match: re.Match) -> str:
        key = match.group(1)
        if key in context and context[key] is not None:
            return str(context[key])
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_sub, text)


class TemplateStore:
    """CRUD over the email_templates table."""

    def __init__(self, db: Optional[DatabaseInterface] = None):
        self._db = db

    @property
    def db(self) -> DatabaseInterface:
        """Lazy-load database client."""
        if self._db is None:
            from dealer_contracts.db.supabase import get_database
            self._db = get_database()
        return self._db

    def list(self, template_type: Optional[TemplateType | str] = None, active_only: bool = False) -> List[EmailTemplate]:
        try:
            rows = self.db.list_templates()
        except Exception as e:
            raise StorageError(f"Failed to list email templates: {e}") from e
        templates = [EmailTemplate.model_validate(row) for row in rows]
        if template_type:
            templates = [t for t in templates if t.template_type == TemplateType(template_type)]
        if active_only:
            templates = [t for t in templates if t.is_active]
        return templates

    def get(self, template_id: str) -> EmailTemplate:
        try:
            row = self.db.get_template(template_id)
        except Exception as e:
            raise StorageError(f"Failed to read email template {template_id}: {e}") from e
        if row is None:
            raise NotFoundError(f"Email template not found: {template_id}")
        return EmailTemplate.model_validate(row)

    def upsert(self, template: EmailTemplate) -> EmailTemplate:
        """Insert a new template (empty id) or replace an existing one."""
        if not template.name.strip():
            raise ValidationError("Template name is required")
        if not template.subject.strip() or not template.body.strip():
            raise ValidationError("Template subject and body are required")

        template = template.model_copy(update={
            "id": template.id or str(uuid.uuid4()),
            "updated_at": datetime.now(timezone.utc),
        })
        row = template.model_dump(mode="json")
        try:
            self.db.upsert_template(row)
        except Exception as e:
            raise StorageError(f"Failed to save email template {template.name}: {e}") from e

        logger.info(f"Saved email template {template.id} ({template.name})")
        return template

    def delete(self, template_id: str) -> None:
        try:
            deleted = self.db.delete_template(template_id)
        except Exception as e:
            raise StorageError(f"Failed to delete email template {template_id}: {e}") from e
        if not deleted:
            raise NotFoundError(f"Email template not found: {template_id}")
        logger.info(f"Deleted email template {template_id}")

    def default_for(self, template_type: TemplateType | str) -> Optional[EmailTemplate]:
        """First active template of a type, by name"""
        templates = self.list(template_type=template_type, active_only=True)
        return templates[0] if templates else None
