"""Staff router: create, list, update and deactivate staff records."""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from staffdb import StaffDirectory
from staffdb.errors import ConflictError, NotFoundError, ValidationError
from .. import config
from ..dependencies import _sanitize_500, get_directory, limiter

router = APIRouter()


class StaffCreate(BaseModel):
    businessId: str = Field(..., min_length=1)
    franchiseId: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    role: Literal['manager', 'staff'] = 'staff'
    active: bool = True


class StaffUpdate(BaseModel):
    # Tenant identifiers are not part of the patch; sending them is a 422
    model_config = ConfigDict(extra='forbid')

    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    role: Optional[Literal['manager', 'staff']] = None
    active: Optional[bool] = None


@router.post("/staff", status_code=201, tags=["Staff"], summary="Create staff",
             description="Create a staff record. 409 if the email is already used within the franchise.")
@limiter.limit(config.WRITE_RATE_LIMIT)
def create_staff(request: Request, body: StaffCreate, directory: StaffDirectory = Depends(get_directory)):
    try:
        return directory.create(body.model_dump(exclude_none=True))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise _sanitize_500(e, 'staff create failed')


@router.get("/staff", tags=["Staff"], summary="List staff",
            description="Page through staff records, newest first. limit is capped at 100.")
def list_staff(
    business_id: Optional[str] = Query(None, alias="businessId"),
    franchise_id: Optional[str] = Query(None, alias="franchiseId"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    directory: StaffDirectory = Depends(get_directory),
):
    try:
        return directory.list(business_id=business_id, franchise_id=franchise_id, page=page, limit=limit)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise _sanitize_500(e, 'staff list failed')


@router.patch("/staff/{staff_id}", tags=["Staff"], summary="Update staff")
def update_staff(staff_id: str, body: StaffUpdate, directory: StaffDirectory = Depends(get_directory)):
    try:
        return directory.update(staff_id, body.model_dump(exclude_unset=True))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise _sanitize_500(e, 'staff update failed')


@router.delete("/staff/{staff_id}", tags=["Staff"], summary="Deactivate staff",
               description="Soft-delete: sets active=false. The record stays queryable.")
def delete_staff(staff_id: str, directory: StaffDirectory = Depends(get_directory)):
    try:
        directory.deactivate(staff_id)
        return {"ok": True}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise _sanitize_500(e, 'staff delete failed')
