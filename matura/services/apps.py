"""Persistence of generated apps.

Synchronous like the rest of the SQLAlchemy layer; async callers go through
``run_in_threadpool``. Database failures surface as ``PersistenceError``.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from matura.core.errors import PersistenceError, RecordNotFoundError, ValidationError
from matura.db.models import APP_STATUSES, GeneratedApp

log = logging.getLogger(__name__)

MUTABLE_FIELDS = ("name", "description", "status", "preview_url")


def app_to_dict(app: GeneratedApp, include_code: bool = True) -> Dict[str, Any]:
    data = {
        "id": app.id,
        "name": app.name,
        "description": app.description,
        "user_idea": app.user_idea,
        "table_name": app.table_name,
        "schema": app.schema or {},
        "metadata": app.metadata_json or {},
        "preview_url": app.preview_url,
        "status": app.status,
        "owner_id": app.owner_id,
        "created_at": app.created_at.isoformat() if app.created_at else None,
        "updated_at": app.updated_at.isoformat() if app.updated_at else None,
    }
    if include_code:
        data["generated_code"] = app.generated_code
    return data


def save_generated_app(
    db: Session,
    *,
    name: str,
    user_idea: str,
    generated_code: str,
    schema: Dict[str, Any],
    description: Optional[str] = None,
    table_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    preview_url: Optional[str] = None,
    owner_id: Optional[str] = None,
    status: str = "active",
) -> GeneratedApp:
    if status not in APP_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(APP_STATUSES)}")
    app = GeneratedApp(
        name=name,
        description=description,
        user_idea=user_idea,
        table_name=table_name,
        schema=schema,
        generated_code=generated_code,
        metadata_json=metadata or {},
        preview_url=preview_url,
        owner_id=owner_id,
        status=status,
    )
    try:
        db.add(app)
        db.commit()
        db.refresh(app)
    except SQLAlchemyError as e:
        db.rollback()
        log.error("Failed to save generated app: %s", e)
        raise PersistenceError("failed to save generated app", details=str(e)) from e
    return app


def get_app(db: Session, app_id: str) -> GeneratedApp:
    try:
        app = db.get(GeneratedApp, app_id)
    except SQLAlchemyError as e:
        raise PersistenceError("failed to load generated app", details=str(e)) from e
    if not app:
        raise RecordNotFoundError("generated_apps", app_id)
    return app


def list_apps(
    db: Session,
    limit: int = 50,
    offset: int = 0,
    status: Optional[str] = None,
    owner_id: Optional[str] = None,
) -> List[GeneratedApp]:
    stmt = select(GeneratedApp).order_by(GeneratedApp.created_at.desc()).limit(limit).offset(offset)
    if status:
        stmt = stmt.where(GeneratedApp.status == status)
    if owner_id:
        stmt = stmt.where(GeneratedApp.owner_id == owner_id)
    try:
        return list(db.scalars(stmt))
    except SQLAlchemyError as e:
        raise PersistenceError("failed to list generated apps", details=str(e)) from e


def update_app_metadata(db: Session, app_id: str, changes: Dict[str, Any]) -> GeneratedApp:
    """Update name/description/status/preview_url. Code and schema are immutable."""
    rejected = sorted(set(changes) - set(MUTABLE_FIELDS))
    if rejected:
        raise ValidationError(f"fields cannot be changed: {', '.join(rejected)}")
    if "status" in changes and changes["status"] not in APP_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(APP_STATUSES)}")
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationError("name must not be empty")

    app = get_app(db, app_id)
    for key, value in changes.items():
        setattr(app, key, value)
    try:
        db.commit()
        db.refresh(app)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("failed to update generated app", details=str(e)) from e
    return app


def delete_app(db: Session, app_id: str) -> None:
    app = get_app(db, app_id)
    try:
        db.delete(app)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("failed to delete generated app", details=str(e)) from e
