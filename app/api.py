"""Lightweight FastAPI wrapper around the porter staffing engine.

Routes validate path/query input, call the engine and encode the typed
results. Nothing here decides staffing; see ``shift_cycle``, ``availability``,
``staffing`` and ``overview`` for that.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import datetime
import re
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

# Ensure flat absolute imports (e.g., "import database") still resolve.
APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from config import configure_logging, load_env, load_settings  # noqa: E402
from errors import DataFetchFailure, NotFoundError  # noqa: E402
from services import StaffingServices, build_services_from_settings  # noqa: E402

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MAX_LOOKAHEAD_DAYS = 366


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_env()
    settings = load_settings()
    configure_logging(settings.log_level)
    app.state.services = build_services_from_settings(settings)
    yield


app = FastAPI(title="Porter Staffing API", version="0.1", lifespan=lifespan)


def get_services(request: Request) -> StaffingServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Staffing services are not initialised")
    return services


@app.exception_handler(NotFoundError)
async def not_found_handler(_: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DataFetchFailure)
async def data_fetch_handler(_: Request, exc: DataFetchFailure) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def _parse_date(value: Optional[str], field: str = "date") -> datetime.date:
    if not value or not DATE_PATTERN.match(value):
        raise HTTPException(status_code=400, detail=f"{field} must be YYYY-MM-DD")
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field} must be YYYY-MM-DD") from None


def _porter_or_404(services: StaffingServices, porter_id: int):
    porter = services.porters.get_porter(porter_id)
    if porter is None:
        raise NotFoundError("Porter", porter_id)
    return porter


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/v1/shift-calculations/porter/{porter_id}/working-on/{date}")
def porter_working_on(porter_id: int, date: str, services=Depends(get_services)) -> JSONResponse:
    target = _parse_date(date)
    porter = _porter_or_404(services, porter_id)
    payload: Dict[str, Any] = {
        "porter": porter.to_dict(),
        "date": target.isoformat(),
        "isWorking": services.evaluator.is_porter_working_on_date(porter, target),
        "cycle": services.evaluator.get_cycle_details(porter, target).to_dict(),
    }
    return JSONResponse(content=jsonable_encoder(payload))


@app.get("/api/v1/shift-calculations/porters-working-on/{date}")
def porters_working_on(date: str, services=Depends(get_services)) -> JSONResponse:
    target = _parse_date(date)
    porters = services.evaluator.get_porters_working_on_date(target)
    return JSONResponse(
        content=jsonable_encoder(
            {"date": target.isoformat(), "count": len(porters), "porters": [porter.to_dict() for porter in porters]}
        )
    )


@app.get("/api/v1/shift-calculations/availability/{date}")
def all_availability(date: str, services=Depends(get_services)) -> JSONResponse:
    target = _parse_date(date)
    availabilities = services.resolver.get_all_porter_availabilities(target)
    payload = {
        "date": target.isoformat(),
        "total": len(availabilities),
        "working": sum(1 for item in availabilities if item.is_working),
        "available": sum(1 for item in availabilities if item.is_available),
        "availabilities": [item.to_dict() for item in availabilities],
    }
    return JSONResponse(content=jsonable_encoder(payload))


@app.get("/api/v1/shift-calculations/porter/{porter_id}/availability/{date}")
def porter_availability(porter_id: int, date: str, services=Depends(get_services)) -> JSONResponse:
    target = _parse_date(date)
    availability = services.resolver.get_porter_availability(porter_id, target)
    return JSONResponse(content=jsonable_encoder(availability.to_dict()))


@app.get("/api/v1/shift-calculations/porter/{porter_id}/next-working-day")
def next_working_day(
    porter_id: int,
    from_date: Optional[str] = Query(None, alias="fromDate"),
    max_days: int = Query(30, alias="maxDays", ge=1, le=MAX_LOOKAHEAD_DAYS),
    services=Depends(get_services),
) -> JSONResponse:
    start = _parse_date(from_date, "fromDate") if from_date else datetime.date.today()
    porter = _porter_or_404(services, porter_id)
    found = services.evaluator.get_next_working_day(porter, start, max_days)
    return JSONResponse(
        content=jsonable_encoder(
            {
                "porter": porter.to_dict(),
                "fromDate": start.isoformat(),
                "nextWorkingDay": found.isoformat() if found else None,
            }
        )
    )


@app.get("/api/v1/shift-calculations/porter/{porter_id}/working-days")
def working_days(
    porter_id: int,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    services=Depends(get_services),
) -> JSONResponse:
    start = _parse_date(start_date, "startDate")
    end = _parse_date(end_date, "endDate")
    if end < start:
        raise HTTPException(status_code=400, detail="endDate must not precede startDate")
    if (end - start).days > MAX_LOOKAHEAD_DAYS:
        raise HTTPException(status_code=400, detail=f"Range is limited to {MAX_LOOKAHEAD_DAYS} days")
    porter = _porter_or_404(services, porter_id)
    days = services.evaluator.get_working_days_in_range(porter, start, end)
    return JSONResponse(
        content=jsonable_encoder(
            {
                "porter": porter.to_dict(),
                "startDate": start.isoformat(),
                "endDate": end.isoformat(),
                "count": len(days),
                "workingDays": [day.isoformat() for day in days],
            }
        )
    )


@app.get("/api/v1/staffing-alerts/department/{department_id}/date/{date}")
def department_staffing(department_id: int, date: str, services=Depends(get_services)) -> JSONResponse:
    target = _parse_date(date)
    staffing = services.aggregator.calculate_department_staffing(department_id, target)
    return JSONResponse(content=jsonable_encoder(staffing.to_dict()))


@app.get("/api/v1/staffing-alerts/daily-overview/{date}")
def daily_overview(date: str, services=Depends(get_services)) -> JSONResponse:
    target = _parse_date(date)
    overview = services.overview.get_daily_staffing_overview(target)
    return JSONResponse(content=jsonable_encoder(overview.to_dict()))


@app.post("/api/v1/staffing-alerts/generate/{date}")
def generate_alerts(date: str, services=Depends(get_services)) -> JSONResponse:
    target = _parse_date(date)
    alerts = services.aggregator.generate_staffing_alerts(target)
    return JSONResponse(
        content=jsonable_encoder(
            {
                "date": target.isoformat(),
                "alerts_generated": len(alerts),
                "alerts": [alert.to_dict() for alert in alerts],
            }
        )
    )


@app.get("/api/v1/staffing-alerts/alerts/{date}")
def alerts_for_date(date: str, services=Depends(get_services)) -> JSONResponse:
    target = _parse_date(date)
    alerts = services.aggregator.get_alerts_for_date(target)
    return JSONResponse(
        content=jsonable_encoder({"date": target.isoformat(), "alerts": [alert.to_dict() for alert in alerts]})
    )


@app.delete("/api/v1/staffing-alerts/alerts/{alert_id}")
def delete_alert(alert_id: int, services=Depends(get_services)) -> JSONResponse:
    services.aggregator.delete_alert(alert_id)
    return JSONResponse(content={"deleted": alert_id})


@app.get("/api/v1/staffing-alerts/summary/{date}")
def staffing_summary(date: str, services=Depends(get_services)) -> JSONResponse:
    target = _parse_date(date)
    return JSONResponse(content=jsonable_encoder(services.aggregator.get_staffing_summary(target)))
