from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlmodel import Session

from app.core.database import get_db, get_sql_backend
from app.modules.billing_tags.dialects import SqlBackend
from app.modules.billing_tags.schemas import BillingTagStatisticsResponse
from app.modules.billing_tags.service import (
    get_billing_tag_report,
    prepare_statistics_export,
)

router = APIRouter(tags=["Billing Tags"], prefix="/v1/billing-tags")


@router.get("/statistics", response_model=BillingTagStatisticsResponse)
def get_statistics_endpoint(
    start_time: str | None = None,
    end_time: str | None = None,
    session: Session = Depends(get_db),
    backend: SqlBackend = Depends(get_sql_backend),
):
    return get_billing_tag_report(session, backend, start_time, end_time)


@router.get("/statistics/export")
def export_statistics_endpoint(
    start_time: str | None = None,
    end_time: str | None = None,
    session: Session = Depends(get_db),
    backend: SqlBackend = Depends(get_sql_backend),
):
    filename, body = prepare_statistics_export(session, backend, start_time, end_time)
    return StreamingResponse(
        body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
