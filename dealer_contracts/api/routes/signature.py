"""Signature API routes.

The GET and sign endpoints are public: the token in the URL is the only
credential the customer has.
"""

import logging

from fastapi import APIRouter, Depends, Request

from dealer_contracts.api.dependencies import ContractServices, get_services
from dealer_contracts.api.schemas import (
    ContractRequest,
    SessionCreateResponse,
    SessionView,
    SignRequest,
    SignResponse,
    VehicleSummary,
)
from dealer_contracts.api.routes.contract import resolve_request
from dealer_contracts.services.renderer import render_html

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/signatures", response_model=SessionCreateResponse, status_code=201)
def create_signature_session(request: ContractRequest, services: ContractServices = Depends(get_services)):
    """Open a signing session and return the link to send to the customer."""
    vehicle, options = resolve_request(request, services)
    session = services.signatures.create_session(vehicle, options.contract_type, options)
    return SessionCreateResponse(
        token=session.token,
        signature_url=services.signatures.signature_url(session.token),
        status=session.status,
        created_at=session.created_at,
        expires_at=session.expires_at,
    )


@router.get("/api/signatures/{token}", response_model=SessionView)
def view_signature_session(token: str, services: ContractServices = Depends(get_services)):
    """Contract to review on the signing page. 404/409/410 when it cannot be signed."""
    session = services.signatures.validate_session(token)
    contract = services.signatures.render_for_signer(token)
    return SessionView(
        token=session.token,
        status=session.status,
        expires_at=session.expires_at,
        vehicle=VehicleSummary(
            brand=session.vehicle.brand,
            model=session.vehicle.model,
            license_number=session.vehicle.license_number,
            year=session.vehicle.year,
        ),
        contract_number=contract.contract_number,
        text=contract.text,
        html=render_html(contract),
    )


@router.post("/api/signatures/{token}/sign", response_model=SignResponse)
def sign(
    token: str,
    body: SignRequest,
    request: Request,
    services: ContractServices = Depends(get_services),
):
    source_address = request.client.host if request.client else "unknown"
    result = services.signatures.sign_session(
        token,
        signer_name=body.signer_name,
        signer_email=body.signer_email,
        signature_image=body.signature_image,
        source_address=source_address,
    )
    return SignResponse(
        status=result.session.status,
        signed_at=result.session.state.signed_at,
        archived=result.archived,
        contract_id=result.contract_id,
        artifact_url=result.artifact_url,
        archive_error=result.archive_error,
    )


@router.post("/api/signatures/{token}/invalidate", response_model=SessionCreateResponse)
def invalidate(token: str, services: ContractServices = Depends(get_services)):
    """Staff action: close a pending link so it can no longer be used."""
    session = services.signatures.invalidate_session(token)
    return SessionCreateResponse(
        token=session.token,
        signature_url=services.signatures.signature_url(session.token),
        status=session.status,
        created_at=session.created_at,
        expires_at=session.expires_at,
    )
