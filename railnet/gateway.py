"""SSLCommerz payment gateway client."""

import logging
from decimal import Decimal

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from railnet.config import Settings, get_settings
from railnet.exceptions import GatewayError

logger = logging.getLogger(__name__)

VALID_STATUSES = ("VALID", "VALIDATED")


class GatewayModel(BaseModel):
    """Base for gateway payloads, which use the gateway's own field names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PaymentSessionRequest(GatewayModel):
    """Payment session creation request."""

    total_amount: Decimal
    currency: str
    tran_id: str
    success_url: str
    fail_url: str
    cancel_url: str
    ipn_url: str
    cus_name: str
    cus_email: str
    cus_phone: str
    cus_add1: str = "Not provided"
    cus_city: str = "Dhaka"
    cus_country: str = "Bangladesh"
    shipping_method: str = "NO"
    num_of_item: int = 1
    product_name: str
    product_category: str = "Transport"
    product_profile: str = "general"
    value_a: str | None = None


class PaymentSession(GatewayModel):
    """Gateway answer to a session creation request."""

    status: str
    session_key: str | None = Field(None, alias="sessionkey")
    gateway_url: str | None = Field(None, alias="GatewayPageURL")
    failed_reason: str | None = Field(None, alias="failedreason")
    error: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == "SUCCESS" and bool(self.gateway_url)

    @property
    def reason(self) -> str:
        return self.failed_reason or self.error or f"Gateway status {self.status}"


class PaymentValidation(GatewayModel):
    """Gateway answer to a validation request."""

    status: str
    tran_id: str | None = None
    val_id: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    bank_tran_id: str | None = None
    card_type: str | None = None
    card_brand: str | None = None
    risk_level: str | None = None
    risk_title: str | None = None
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.status in VALID_STATUSES

    @property
    def is_risky(self) -> bool:
        # risk_level "1" means the gateway holds the payment for review
        return self.risk_level == "1"


class SSLCommerzGateway:
    """
    Async client for the SSLCommerz session and validation APIs.

    The gateway is untrusted: callbacks are never acted on without a
    separate `validate` round-trip.
    """

    SESSION_PATH = "/gwprocess/v4/api.php"
    VALIDATION_PATH = "/validator/api/validationserverAPI.php"

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.SSLCOMMERZ_API_URL,
            timeout=self.settings.GATEWAY_TIMEOUT_SECONDS,
        )

    async def create_session(self, request: PaymentSessionRequest) -> PaymentSession:
        """
        Create a payment session.

        Raises:
            GatewayError: If the gateway cannot be reached or answers garbage
        """
        form = {
            "store_id": self.settings.SSLCOMMERZ_STORE_ID,
            "store_passwd": self.settings.SSLCOMMERZ_STORE_PASSWORD,
            **{
                k: str(v)
                for k, v in request.model_dump(exclude_none=True).items()
            },
        }
        try:
            response = await self.client.post(self.SESSION_PATH, data=form)
            response.raise_for_status()
            return PaymentSession.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error(f"SSLCommerz payment initiation error: {e}")
            raise GatewayError("Failed to initiate payment") from e

    async def validate(self, val_id: str) -> PaymentValidation:
        """
        Validate a payment by its validation id.

        Raises:
            GatewayError: If the gateway cannot be reached or answers garbage
        """
        params = {
            "val_id": val_id,
            "store_id": self.settings.SSLCOMMERZ_STORE_ID,
            "store_passwd": self.settings.SSLCOMMERZ_STORE_PASSWORD,
            "v": 1,
            "format": "json",
        }
        try:
            response = await self.client.get(self.VALIDATION_PATH, params=params)
            response.raise_for_status()
            return PaymentValidation.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error(f"SSLCommerz payment validation error: {e}")
            raise GatewayError("Failed to validate payment") from e

    async def close(self) -> None:
        await self.client.aclose()


# Global gateway client
_gateway: SSLCommerzGateway | None = None


async def get_gateway() -> SSLCommerzGateway:
    """Get gateway client instance."""
    global _gateway
    if _gateway is None:
        _gateway = SSLCommerzGateway()
    return _gateway


async def close_gateway() -> None:
    """Close gateway client."""
    global _gateway
    if _gateway is not None:
        await _gateway.close()
        _gateway = None
