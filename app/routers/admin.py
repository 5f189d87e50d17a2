"""Internal operator endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.schemas.broadcast import ReleaseStaleResponse
from app.services.alert_service import alert_warning
from app.services.broadcast_service import release_stale_processing

router = APIRouter(prefix="/admin", tags=["admin"])


def require_internal_token(x_internal_token: Optional[str] = Header(default=None, alias="X-Internal-Token")) -> None:
    expected = settings.internal_api_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="INTERNAL_API_TOKEN not configured",
        )
    if not x_internal_token or x_internal_token != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid internal token")


@router.post(
    "/broadcasts/release-stale",
    response_model=ReleaseStaleResponse,
    dependencies=[Depends(require_internal_token)],
)
def release_stale_broadcasts(older_than_minutes: Optional[int] = None, db: Session = Depends(get_db)):
    """Return queue items stuck in `processing` to the pending pool."""
    released = release_stale_processing(db, older_than_minutes=older_than_minutes)
    if released:
        alert_warning("Released stale broadcast items", {"released": released})
    return ReleaseStaleResponse(released=released)
