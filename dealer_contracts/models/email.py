"""Email template and recipient models"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class TemplateType(str, Enum):
    """What an email template is used for"""
    CONTRACT_SEND = "contract_send"
    SIGNATURE_REQUEST = "signature_request"
    SIGNATURE_CONFIRMATION = "signature_confirmation"
    GENERAL = "general"


class EmailTemplate(BaseModel):
    """A stored email template.

    Subject and body may contain placeholders such as {{klant_naam}},
    {{merk}}, {{model}}, {{kenteken}} and {{handtekening_link}}.
    """
    id: str = ""
    name: str
    subject: str
    body: str
    template_type: TemplateType = TemplateType.GENERAL
    is_active: bool = True
    updated_at: Optional[datetime] = None


class ByVehicleId(BaseModel):
    """Send to the customer linked to a vehicle"""
    kind: Literal["vehicle"] = "vehicle"
    vehicle_id: str


class Explicit(BaseModel):
    """Send to an address chosen by the caller"""
    kind: Literal["explicit"] = "explicit"
    email: str = Field(min_length=3)
    name: str = ""


RecipientResolution = Annotated[
    Union[ByVehicleId, Explicit],
    Field(discriminator="kind"),
]


class OutgoingEmail(BaseModel):
    """A fully composed message ready for delivery"""
    to_email: str
    to_name: str = ""
    subject: str
    text_body: str
    html_body: Optional[str] = None
    attachment_name: Optional[str] = None
    attachment: Optional[bytes] = None
