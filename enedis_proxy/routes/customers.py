"""Customer information endpoints."""

from fastapi import APIRouter, Request

from enedis_proxy.models import CustomersResponse, UsagePointsRequest
from enedis_proxy.rate_limit import limiter, per_second_limit
from enedis_proxy.services.metering_service import get_metering_service

router = APIRouter(tags=["customers"])


@router.post("/get-user-info", response_model=CustomersResponse)
@limiter.limit(per_second_limit)
async def get_user_info(
    request: Request, body: UsagePointsRequest
) -> CustomersResponse:
    """Get address, contract, identity and contact data per usage point.

    Lookups that fail upstream leave their fields empty instead of failing
    the request.
    """
    service = get_metering_service()
    customers = await service.get_customers(body.usage_point_ids, body.access_token)
    return CustomersResponse(customers=customers)
