from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from matura.db.session import get_db
from matura.inference.naming import generate_app_name
from matura.schemas.apps import AppCreateRequest, AppListResponse, AppResponse, AppUpdateRequest
from matura.services import apps as apps_service

router = APIRouter(prefix="/apps")


@router.get("", response_model=AppListResponse, response_model_by_alias=True)
def list_apps(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    status: Optional[str] = None,
    owner_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    apps = apps_service.list_apps(db, limit=limit, offset=offset, status=status, owner_id=owner_id)
    return AppListResponse(
        apps=[AppResponse(**apps_service.app_to_dict(a, include_code=False)) for a in apps],
        count=len(apps),
    )


@router.get("/{app_id}", response_model=AppResponse, response_model_by_alias=True)
def get_app(app_id: str, db: Session = Depends(get_db)):
    app = apps_service.get_app(db, app_id)
    return AppResponse(**apps_service.app_to_dict(app))


@router.post("", response_model=AppResponse, response_model_by_alias=True, status_code=201)
def create_app(req: AppCreateRequest, db: Session = Depends(get_db)):
    app = apps_service.save_generated_app(
        db,
        name=req.name or generate_app_name(req.user_idea),
        user_idea=req.user_idea,
        generated_code=req.generated_code,
        schema=req.schema_,
        description=req.description,
        table_name=req.table_name,
        preview_url=req.preview_url,
        owner_id=req.owner_id,
        status=req.status,
    )
    return AppResponse(**apps_service.app_to_dict(app))


@router.patch("/{app_id}", response_model=AppResponse, response_model_by_alias=True)
def update_app(app_id: str, req: AppUpdateRequest, db: Session = Depends(get_db)):
    app = apps_service.update_app_metadata(db, app_id, req.model_dump(exclude_unset=True))
    return AppResponse(**apps_service.app_to_dict(app))


@router.delete("/{app_id}")
def delete_app(app_id: str, db: Session = Depends(get_db)):
    apps_service.delete_app(db, app_id)
    return {"success": True}
