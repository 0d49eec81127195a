"""Contract API routes: pricing, preview and the per-vehicle archive."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from dealer_contracts.api.dependencies import ContractServices, get_services
from dealer_contracts.api.schemas import (
    ArchiveRequest,
    ContractListResponse,
    ContractRequest,
    DeleteResponse,
    PreviewResponse,
    PricingResponse,
)
from dealer_contracts.models import ArchivedContract, ContractOptions, VehicleSnapshot, coerce_contract_type, parse_options
from dealer_contracts.services.pricing import compute_pricing, preview_summary
from dealer_contracts.services.renderer import render_contract, render_html

logger = logging.getLogger(__name__)

router = APIRouter()


def resolve_request(request: ContractRequest, services: ContractServices) -> tuple[VehicleSnapshot, ContractOptions]:
    """Load the vehicle and build options with the requested contract type."""
    contract_type = coerce_contract_type(request.contract_type)
    options = parse_options({**request.options, "contract_type": contract_type})
    vehicle = services.vehicles.get_vehicle(request.vehicle_id)
    return vehicle, options


@router.post("/api/contracts/pricing", response_model=PricingResponse)
def price_contract(request: ContractRequest, services: ContractServices = Depends(get_services)):
    """Derived monetary figures for a vehicle and options."""
    vehicle, options = resolve_request(request, services)
    pricing = compute_pricing(vehicle, options)
    return PricingResponse(
        pricing=pricing,
        remaining_amount=pricing.remaining_amount,
        summary=preview_summary(vehicle, options),
    )


@router.post("/api/contracts/preview", response_model=PreviewResponse)
def preview_contract(request: ContractRequest, services: ContractServices = Depends(get_services)):
    """Render the contract without storing anything."""
    vehicle, options = resolve_request(request, services)
    pricing = compute_pricing(vehicle, options)
    contract = render_contract(vehicle, options, pricing, services.archive.company)
    return PreviewResponse(
        contract_number=contract.contract_number,
        file_name=contract.file_name,
        contract_type=contract.contract_type.value,
        text=contract.text,
        html=render_html(contract),
        markup=contract.markup,
        pricing=pricing,
    )


@router.post("/api/contracts/archive", response_model=ArchivedContract, status_code=201)
def archive_contract(request: ArchiveRequest, services: ContractServices = Depends(get_services)):
    """Materialize and store a contract directly, without a signature."""
    vehicle, options = resolve_request(request, services)
    return services.archive.save(
        vehicle, options.contract_type, options, signature_url=request.signature_url,
    )


@router.get("/api/contracts/archive/{contract_id}/pdf")
def download_contract(contract_id: str, services: ContractServices = Depends(get_services)):
    handle = services.archive.get(contract_id)
    data = services.archive.download(contract_id)
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{handle.file_name}"'},
    )


@router.delete("/api/contracts/archive/{contract_id}", response_model=DeleteResponse)
def delete_contract(contract_id: str, services: ContractServices = Depends(get_services)):
    result = services.archive.delete(contract_id)
    return DeleteResponse(
        contract_id=result.contract_id,
        artifact_removed=result.artifact_removed,
        artifact_error=result.artifact_error,
    )


@router.get("/api/contracts/{vehicle_id}/latest", response_model=ArchivedContract)
def latest_contract(
    vehicle_id: str,
    contract_type: Optional[str] = None,
    services: ContractServices = Depends(get_services),
):
    handle = services.archive.get_latest(vehicle_id, contract_type)
    if handle is None:
        raise HTTPException(status_code=404, detail="Geen contract gevonden voor dit voertuig")
    return handle


@router.get("/api/contracts/{vehicle_id}", response_model=ContractListResponse)
def list_contracts(vehicle_id: str, services: ContractServices = Depends(get_services)):
    return ContractListResponse(contracts=services.archive.list_all(vehicle_id))
