"""Health check: database connectivity and whether an Admin account exists."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import check_db_connected, get_db
from app.models import Role
from app.schemas.health import HealthResponse
from app.services.user_store import UserStore

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(db: Annotated[Session, Depends(get_db)]) -> HealthResponse:
    """
    Return service health for load balancers and monitoring.

    admin_present is False until the bootstrap admin (or any Admin) exists;
    it is omitted when the database is unreachable.
    """
    if not check_db_connected(db):
        return HealthResponse(environment=settings.APP_ENV, database="disconnected")
    try:
        admin_present = UserStore(db).has_role(Role.ADMIN)
    except SQLAlchemyError:
        admin_present = None
    return HealthResponse(
        environment=settings.APP_ENV,
        database="connected",
        admin_present=admin_present,
    )
