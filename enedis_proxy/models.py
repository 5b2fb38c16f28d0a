"""Pydantic models for API requests and responses."""

from datetime import date, datetime
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints

from enedis_proxy.metering.accumulator import MeterResult, MonthlyLists, Totals

# Usage point (PDL/PRM) identifiers are 14 digits
UsagePointId = Annotated[str, StringConstraints(pattern=r"^\d{14}$")]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    timestamp: datetime = Field(default_factory=datetime.now)
    credentials_configured: bool = Field(
        default=False,
        description="Whether app credentials are set, so requests may omit a token",
    )


class Address(BaseModel):
    """Postal address of a usage point."""

    street: str | None = None
    postal_code: str | None = None
    city: str | None = None
    country: str | None = None


class ContractDetails(BaseModel):
    """Supply contract details relevant to aggregation."""

    offpeak_hours: str | None = Field(
        default=None, description="Off-peak schedule as free text"
    )
    subscribed_power: str | None = None


class Identity(BaseModel):
    """Name of the customer holding the usage point."""

    firstname: str | None = None
    lastname: str | None = None


class Contact(BaseModel):
    """Customer contact data."""

    email: str | None = None
    phone: str | None = None


class CustomerInfo(BaseModel):
    """Everything known about the customer behind a usage point."""

    usage_point_id: str
    address: Address = Field(default_factory=Address)
    contract: ContractDetails = Field(default_factory=ContractDetails)
    identity: Identity = Field(default_factory=Identity)
    contact: Contact = Field(default_factory=Contact)


class UsagePointsRequest(BaseModel):
    """Body shared by the usage point endpoints."""

    usage_point_ids: list[UsagePointId] = Field(
        min_length=1, description="14 digit usage point identifiers"
    )
    access_token: str | None = Field(
        default=None,
        description="Enedis bearer token; the app token is used when empty",
    )


class MeteringRequest(UsagePointsRequest):
    """Body of the aggregated metering endpoint."""

    start: date | None = Field(
        default=None, description="First day (inclusive), defaults to a year ago"
    )
    end: date | None = Field(
        default=None, description="Last day (inclusive), defaults to today"
    )
    calibrate: bool | None = Field(
        default=None,
        description="Rescale against official daily totals; server default if unset",
    )
    include_customers: bool = Field(
        default=True, description="Also return customer information per meter"
    )


class CustomersResponse(BaseModel):
    """Response for the customer information endpoint."""

    success: bool = True
    customers: list[CustomerInfo] = Field(default_factory=list)


class Period(BaseModel):
    """Inclusive date range covered by a response."""

    start: date
    end: date


class GlobalData(BaseModel):
    """Totals across all requested usage points."""

    totals_kwh: Totals
    lists_kwh: MonthlyLists
    offpeak_hours_detected: list[str] = Field(default_factory=list)


class MeteringResponse(BaseModel):
    """Response for the aggregated metering endpoint."""

    success: bool = True
    period: Period
    customers_list: list[CustomerInfo] = Field(default_factory=list)
    global_data: GlobalData
    meters: list[MeterResult] = Field(default_factory=list)
