"""Booking calendar endpoints."""

from fastapi import APIRouter, Query, status

from app.schemas.scheduling import EligibleDatesResponse, MonthRef
from app.services.calendar_service import (
    eligible_dates,
    month_label,
    next_month,
    previous_month,
)

router = APIRouter()


@router.get(
    "/eligible-dates",
    response_model=EligibleDatesResponse,
    status_code=status.HTTP_200_OK,
    summary="Bookable dates in a month",
)
async def get_eligible_dates(
    year: int = Query(..., ge=1, le=9998),
    month: int = Query(..., ge=1, le=12),
) -> EligibleDatesResponse:
    """
    Weekdays from today onward in the requested month.

    Args:
        year: Calendar year
        month: Month number, January = 1 (clients that count January as 0 must add one)

    Returns:
        Dates plus the previous and next month to navigate to
    """
    prev_year, prev_month = previous_month(year, month)
    next_year, following_month = next_month(year, month)

    return EligibleDatesResponse(
        year=year,
        month=month,
        label=month_label(year, month),
        dates=eligible_dates(year, month),
        previous=MonthRef(year=prev_year, month=prev_month),
        next=MonthRef(year=next_year, month=following_month),
    )
