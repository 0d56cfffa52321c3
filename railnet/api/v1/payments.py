"""Payment API endpoints and gateway callbacks."""

from fastapi import APIRouter, HTTPException, status

from railnet.api.v1.dependencies import CurrentUser, PaymentServiceDep
from railnet.exceptions import RailnetError
from railnet.schemas.payment import (
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    IPNRequest,
    IPNResponse,
    PaymentCallbackResponse,
    PaymentTransactionResponse,
)

router = APIRouter()


@router.post(
    "/initiate",
    response_model=InitiatePaymentResponse,
    summary="Initiate payment",
)
async def initiate_payment(
    request: InitiatePaymentRequest,
    current_user: CurrentUser,
    payment_service: PaymentServiceDep,
) -> InitiatePaymentResponse:
    """
    Start a gateway payment for a pending ticket.

    Returns the gateway page URL to redirect the passenger to. An open
    session for the same ticket is reused.
    """
    try:
        return await payment_service.initiate_payment(
            current_user.user_id, request.ticket_id
        )
    except RailnetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get(
    "/success",
    response_model=PaymentCallbackResponse,
    summary="Gateway success callback",
)
async def payment_success(
    payment_service: PaymentServiceDep,
    tran_id: str | None = None,
    val_id: str | None = None,
) -> PaymentCallbackResponse:
    """Validate the payment with the gateway and confirm the ticket."""
    if not tran_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing transaction ID",
        )

    if not val_id:
        # Fall back to a validation id recorded by an earlier callback
        transaction = await payment_service.get_transaction(tran_id)
        val_id = transaction.val_id if transaction else None
    if not val_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing validation ID",
        )

    try:
        return await payment_service.handle_success(tran_id, val_id)
    except RailnetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get(
    "/fail",
    response_model=PaymentCallbackResponse,
    summary="Gateway failure callback",
)
async def payment_fail(
    payment_service: PaymentServiceDep,
    tran_id: str | None = None,
    error: str | None = None,
) -> PaymentCallbackResponse:
    """Mark the payment attempt failed. The ticket stays payable."""
    if not tran_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing transaction ID",
        )

    try:
        return await payment_service.handle_failure(tran_id, error)
    except RailnetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get(
    "/cancel",
    response_model=PaymentCallbackResponse,
    summary="Gateway cancel callback",
)
async def payment_cancel(
    payment_service: PaymentServiceDep,
    tran_id: str | None = None,
) -> PaymentCallbackResponse:
    """Mark the payment attempt cancelled. The ticket stays payable."""
    if not tran_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing transaction ID",
        )

    try:
        return await payment_service.handle_cancel(tran_id)
    except RailnetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post(
    "/ipn",
    response_model=IPNResponse,
    summary="Instant payment notification",
)
async def payment_ipn(
    request: IPNRequest,
    payment_service: PaymentServiceDep,
) -> IPNResponse:
    """Server-to-server notification; only val_id is used."""
    try:
        result = await payment_service.process_ipn(request.val_id)
    except RailnetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return IPNResponse(status="SUCCESS", message=result.outcome.value)


@router.get(
    "/transactions/{transaction_id}",
    response_model=PaymentTransactionResponse,
    summary="Get payment transaction",
)
async def get_transaction(
    transaction_id: str,
    current_user: CurrentUser,
    payment_service: PaymentServiceDep,
) -> PaymentTransactionResponse:
    """Get a payment attempt on one of the user's tickets."""
    transaction = await payment_service.get_transaction(transaction_id)
    if not transaction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found",
        )

    ticket = await payment_service.get_transaction_ticket(transaction)
    if ticket.user_id != current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot access another user's transaction",
        )

    return PaymentTransactionResponse.model_validate(transaction)
