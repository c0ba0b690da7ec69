"""Agency directory router."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mandate_engine.core.response import DataResponse
from mandate_engine.db.base import get_db
from mandate_engine.routers.deps import get_client_id
from mandate_engine.schemas.agency import AgencyOut
from mandate_engine.services.agency import AgencyDirectoryService

router = APIRouter(prefix="/agencies", tags=["Agencies"])


@router.get("", response_model=DataResponse[list[AgencyOut]])
async def list_agencies(
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
):
    """Active agencies an owner can invite, by name."""
    agencies = await AgencyDirectoryService(session, client_id).list_active_agencies()
    return {"data": [AgencyOut.model_validate(a) for a in agencies]}
