"""Aggregated metering endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from enedis_proxy.models import GlobalData, MeteringRequest, MeteringResponse, Period
from enedis_proxy.rate_limit import limiter, per_hour_limit, per_second_limit
from enedis_proxy.services.metering_service import get_metering_service

router = APIRouter(tags=["metering"])


@router.post("/get-all", response_model=MeteringResponse)
@limiter.limit(per_second_limit)
@limiter.limit(per_hour_limit)
async def get_all(
    request: Request, body: MeteringRequest
) -> MeteringResponse | JSONResponse:
    """Get monthly peak/off-peak consumption and production for usage points.

    Values are in kWh. The lists always hold 12 values, January first. The
    period defaults to one year ago through today.
    """
    service = get_metering_service()

    try:
        report = await service.get_all(
            body.usage_point_ids,
            provided_token=body.access_token,
            start=body.start,
            end=body.end,
            calibrate=body.calibrate,
            include_customers=body.include_customers,
        )
    except ValueError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})

    return MeteringResponse(
        period=Period(start=report.start, end=report.end),
        customers_list=report.customers,
        global_data=GlobalData(
            totals_kwh=report.result.totals_kwh,
            lists_kwh=report.result.lists_kwh,
            offpeak_hours_detected=report.result.offpeak_hours_detected,
        ),
        meters=report.meters,
    )
