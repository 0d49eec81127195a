"""Composition and delivery of contract emails"""

import html
import logging
import smtplib
import time
from contextlib import contextmanager
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol

from pydantic import TypeAdapter

from dealer_contracts.exceptions import DeliveryError, ValidationError
from dealer_contracts.models.contract import GeneratedContract
from dealer_contracts.models.email import (
    ByVehicleId,
    EmailTemplate,
    Explicit,
    OutgoingEmail,
    RecipientResolution,
)
from dealer_contracts.services.email_templates import render_template, template_context
from dealer_contracts.services.vehicles import VehicleLookup
from dealer_contracts.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

_resolution_adapter = TypeAdapter(RecipientResolution)


def parse_resolution(data: dict) -> ByVehicleId | Explicit:
    """Build a RecipientResolution from untrusted input."""
    try:
        return _resolution_adapter.validate_python(data)
    except Exception as e:
        raise ValidationError(f"Invalid recipient: {e}") from e


class EmailSender(Protocol):
    def send(self, message: OutgoingEmail) -> None:
        ...


class SmtpEmailSender:
    """SMTP delivery with STARTTLS or implicit TLS and a few retries."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        username: Optional[str],
        password: Optional[str],
        sender: str,
        use_ssl: bool = False,
        max_retries: int = 3,
        retry_delay: float = 3,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_ssl = use_ssl
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SmtpEmailSender":
        settings = settings or get_settings()
        if not settings.smtp_host or not settings.company_email:
            raise DeliveryError("SMTP_HOST and COMPANY_EMAIL must be set to send email")
        return cls(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            sender=settings.company_email,
            use_ssl=settings.smtp_use_ssl,
        )

    @contextmanager
    def _connection(self):
        server = None
        try:
            if self.use_ssl:
                server = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port)
            else:
                server = smtplib.SMTP(self.smtp_host, self.smtp_port)
                server.starttls()
            if self.username:
                server.login(self.username, self.password or "")
            yield server
        finally:
            if server:
                try:
                    server.quit()
                except Exception as e:
                    logger.warning(f"Error closing SMTP connection: {e}")

    def build_message(self, message: OutgoingEmail) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["From"] = self.sender
        msg["To"] = f"{message.to_name} <{message.to_email}>" if message.to_name else message.to_email
        msg["Subject"] = message.subject

        body = MIMEMultipart("alternative")
        body.attach(MIMEText(message.text_body, "plain", "utf-8"))
        if message.html_body:
            body.attach(MIMEText(message.html_body, "html", "utf-8"))
        msg.attach(body)

        if message.attachment and message.attachment_name:
            part = MIMEBase("application", "pdf")
            part.set_payload(message.attachment)
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", f'attachment; filename="{message.attachment_name}"')
            msg.attach(part)
        return msg

    def send(self, message: OutgoingEmail) -> None:
        msg = self.build_message(message)
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                with self._connection() as server:
                    server.sendmail(self.sender, [message.to_email], msg.as_string())
                logger.info(f"Email sent to {message.to_email}")
                return
            except smtplib.SMTPAuthenticationError as e:
                raise DeliveryError(f"SMTP authentication failed: {e}") from e
            except Exception as e:
                last_error = e
                logger.error(f"Attempt {attempt} to send email to {message.to_email} failed: {e}")
                if attempt < self.max_retries:
                    time.sleep(self.retry_delay)
        raise DeliveryError(f"Failed to send email to {message.to_email}: {last_error}") from last_error


class ContractMailer:
    """Turns a contract, a template and a recipient into an email."""

    def __init__(self, vehicles: Optional[VehicleLookup] = None, sender: Optional[EmailSender] = None):
        self._vehicles = vehicles
        self._sender = sender

    @property
    def vehicles(self) -> VehicleLookup:
        if self._vehicles is None:
            self._vehicles = VehicleLookup()
        return self._vehicles

    @property
    def sender(self) -> EmailSender:
        if self._sender is None:
            self._sender = SmtpEmailSender.from_settings()
        return self._sender

    def resolve(self, resolution: ByVehicleId | Explicit) -> tuple[str, str, Optional[str]]:
        """(email, name, vehicle_id); only ByVehicleId touches the lookup"""
        if isinstance(resolution, Explicit):
            return resolution.email, resolution.name, None
        vehicle = self.vehicles.get_vehicle(resolution.vehicle_id)
        if vehicle.customer is None or not vehicle.customer.email:
            raise ValidationError(f"Vehicle {vehicle.id} has no customer email address")
        return vehicle.customer.email, vehicle.customer.name, vehicle.id

    def compose(
        self,
        resolution: ByVehicleId | Explicit,
        contract: GeneratedContract,
        template: EmailTemplate,
        vehicle=None,
        pdf: Optional[bytes] = None,
    ) -> OutgoingEmail:
        email, name, vehicle_id = self.resolve(resolution)
        if vehicle is None and vehicle_id:
            vehicle = self.vehicles.get_vehicle(vehicle_id)

        context = {
            "klant_naam": name,
            "handtekening_link": contract.signature_url or "",
        }
        if vehicle is not None:
            context = template_context(vehicle, name, contract.signature_url or "")

        subject = render_template(template.subject, context)
        text_body = render_template(template.body, context)
        html_body = "<br>".join(html.escape(line) for line in text_body.splitlines())

        return OutgoingEmail(
            to_email=email,
            to_name=name,
            subject=subject,
            text_body=text_body,
            html_body=f"<html><body>{html_body}</body></html>",
            attachment_name=contract.file_name if pdf else None,
            attachment=pdf,
        )

    def send(self, message: OutgoingEmail) -> None:
        """Hand a composed message to the sender; failures raise DeliveryError."""
        try:
            self.sender.send(message)
        except DeliveryError:
            raise
        except Exception as e:
            raise DeliveryError(f"Failed to send email to {message.to_email}: {e}") from e
