from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from solservice.agreement import lifecycle
from solservice.agreement.models import (
    AddonCategory,
    AddonProduct,
    AgreementStatus,
    AgreementType,
    ServiceAgreement,
)
from solservice.agreement.pricing import suggest_base_price
from solservice.agreement.schemas import (
    AddonInput,
    AddonProductResponse,
    AgreementCreate,
    AgreementResponse,
    AgreementUpdate,
    CancelRequest,
    PriceBreakdownResponse,
    PriceRequest,
    PriceSuggestionRequest,
    PriceSuggestionResponse,
)
from solservice.auth import Caller, require_permission
from solservice.base.dependencies import get_session
from solservice.base.schemas import Page

router = APIRouter(prefix="/agreements")
addons_router = APIRouter(prefix="/addons")

can_read = require_permission("agreements:read")
can_write = require_permission("agreements:write")


class InvoiceInputResponse(BaseModel):
    agreement_number: str
    customer_id: str
    customer_name: str
    price: PriceBreakdownResponse


@addons_router.get("", response_model=list[AddonProductResponse])
async def list_addon_products(
    category: AddonCategory | None = None,
    is_active: bool = True,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> list[AddonProduct]:
    return await lifecycle.list_addon_products(session, category, is_active)


@router.get("", response_model=Page[AgreementResponse])
async def list_agreements(
    status: AgreementStatus | None = None,
    agreement_type: AgreementType | None = None,
    installation_id: UUID | None = None,
    customer_id: str | None = None,
    search: str | None = None,
    page: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> Page[AgreementResponse]:
    agreements, total = await lifecycle.list_agreements(
        session,
        status=status,
        agreement_type=agreement_type,
        installation_id=installation_id,
        customer_id=customer_id,
        search=search,
        page=page,
        limit=limit,
    )
    return Page[AgreementResponse](
        items=[AgreementResponse.model_validate(a) for a in agreements],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/expiring", response_model=list[AgreementResponse])
async def list_expiring(
    days: int = Query(default=30, ge=1, le=365),
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> list[ServiceAgreement]:
    return await lifecycle.list_expiring(session, days)


@router.post("/price", response_model=PriceBreakdownResponse)
async def calculate_price(
    body: PriceRequest,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> PriceBreakdownResponse:
    price = await lifecycle.preview_price(
        session, body.base_price, body.discount_percent, body.addons
    )
    return PriceBreakdownResponse.present(price)


@router.post("/price/suggest", response_model=PriceSuggestionResponse)
async def suggest_price(
    body: PriceSuggestionRequest,
    caller: Caller = Depends(can_read),
) -> PriceSuggestionResponse:
    suggestion = suggest_base_price(
        body.agreement_type, body.sla_level, body.capacity_kw, body.system_type
    )
    return PriceSuggestionResponse.present(suggestion)


@router.post("", response_model=AgreementResponse, status_code=201)
async def create_agreement(
    body: AgreementCreate,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceAgreement:
    return await lifecycle.create_agreement(session, body)


@router.get("/{agreement_id}", response_model=AgreementResponse)
async def get_agreement(
    agreement_id: UUID,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> ServiceAgreement:
    return await lifecycle.get_agreement(session, agreement_id)


@router.patch("/{agreement_id}", response_model=AgreementResponse)
async def update_agreement(
    agreement_id: UUID,
    body: AgreementUpdate,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceAgreement:
    return await lifecycle.update_agreement(session, agreement_id, body)


@router.get("/{agreement_id}/price", response_model=PriceBreakdownResponse)
async def get_agreement_price(
    agreement_id: UUID,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> PriceBreakdownResponse:
    agreement = await lifecycle.get_agreement(session, agreement_id)
    return PriceBreakdownResponse.present(lifecycle.price_agreement(agreement))


@router.get("/{agreement_id}/invoice-input", response_model=InvoiceInputResponse)
async def get_invoice_input(
    agreement_id: UUID,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> InvoiceInputResponse:
    invoice = lifecycle.invoice_input(
        await lifecycle.get_agreement(session, agreement_id)
    )
    return InvoiceInputResponse(
        agreement_number=invoice.agreement_number,
        customer_id=invoice.customer_id,
        customer_name=invoice.customer_name,
        price=PriceBreakdownResponse.present(invoice.price),
    )


@router.post(
    "/{agreement_id}/addons", response_model=AgreementResponse, status_code=201
)
async def add_addon(
    agreement_id: UUID,
    body: AddonInput,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceAgreement:
    await lifecycle.add_addon(session, agreement_id, body)
    return await lifecycle.get_agreement(session, agreement_id)


@router.delete(
    "/{agreement_id}/addons/{agreement_addon_id}", response_model=AgreementResponse
)
async def remove_addon(
    agreement_id: UUID,
    agreement_addon_id: UUID,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceAgreement:
    return await lifecycle.remove_addon(session, agreement_id, agreement_addon_id)


@router.post("/{agreement_id}/submit", response_model=AgreementResponse)
async def submit_for_approval(
    agreement_id: UUID,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceAgreement:
    return await lifecycle.submit_for_approval(session, agreement_id)


@router.post("/{agreement_id}/activate", response_model=AgreementResponse)
async def activate(
    agreement_id: UUID,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceAgreement:
    return await lifecycle.activate(session, agreement_id, signed_by=caller.user.email)


@router.post("/{agreement_id}/suspend", response_model=AgreementResponse)
async def suspend(
    agreement_id: UUID,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceAgreement:
    return await lifecycle.suspend(session, agreement_id)


@router.post("/{agreement_id}/resume", response_model=AgreementResponse)
async def resume(
    agreement_id: UUID,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceAgreement:
    return await lifecycle.resume(session, agreement_id)


@router.post("/{agreement_id}/cancel", response_model=AgreementResponse)
async def cancel(
    agreement_id: UUID,
    body: CancelRequest,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceAgreement:
    return await lifecycle.cancel(session, agreement_id, body.reason)
