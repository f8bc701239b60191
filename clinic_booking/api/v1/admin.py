from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.security import TokenPayload
from ...api.deps import get_staff_session
from ...models.appointment import AppointmentStatus
from ...services.appointment_service import AppointmentService
from ...schemas.appointment import (
    AppointmentResponse, AppointmentSearchResponse, ChartData, DashboardSummary
)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/appointments", response_model=AppointmentSearchResponse)
async def search_appointments(
    search: Optional[str] = None,
    status: Optional[AppointmentStatus] = None,
    doctor: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    sort_field: str = Query("schedule", alias="sortField"),
    sort_order: str = Query("desc", alias="sortOrder"),
    limit: int = Query(50, ge=1, le=200),
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_staff_session)
):
    """Filtered, paginated appointment list for the admin table."""
    result = AppointmentService(db).search_appointments(
        search=search,
        status=status,
        doctor=doctor,
        start_date=start_date,
        end_date=end_date,
        sort_field=sort_field,
        sort_order=sort_order,
        limit=limit,
        page=page,
    )
    return AppointmentSearchResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in result["appointments"]],
        total_count=result["total_count"],
        total_pages=result["total_pages"],
        current_page=result["current_page"],
    )


@router.get("/summary", response_model=DashboardSummary)
async def dashboard_summary(
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_staff_session)
):
    return AppointmentService(db).dashboard_summary()


@router.get("/chart", response_model=ChartData)
async def chart_data(
    days: int = Query(7, ge=1, le=366),
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_staff_session)
):
    return AppointmentService(db).chart_data(days)
