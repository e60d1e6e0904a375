"""Schedule router: attach and list a staff member's schedules."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from staffdb import ScheduleLedger
from staffdb.errors import NotFoundError, ValidationError
from .. import config
from ..dependencies import _sanitize_500, get_ledger, limiter

router = APIRouter()


class ScheduleCreate(BaseModel):
    start: datetime
    end: datetime
    notes: Optional[str] = None


@router.post("/staff/{staff_id}/schedule", status_code=201, tags=["Schedule"], summary="Attach schedule",
             description="Attach a time interval to an existing staff member. 404 if the staff id is unknown.")
@limiter.limit(config.WRITE_RATE_LIMIT)
def attach_schedule(request: Request, staff_id: str, body: ScheduleCreate,
                    ledger: ScheduleLedger = Depends(get_ledger)):
    try:
        return ledger.attach(staff_id, body.model_dump(exclude_none=True))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise _sanitize_500(e, 'schedule create failed')


@router.get("/staff/{staff_id}/schedule", tags=["Schedule"], summary="List schedules",
            description="All schedules for a staff id, earliest start first. Unknown ids return [].")
def list_schedules(staff_id: str, ledger: ScheduleLedger = Depends(get_ledger)):
    try:
        return ledger.list_by_staff(staff_id)
    except Exception as e:
        raise _sanitize_500(e, 'schedule list failed')
