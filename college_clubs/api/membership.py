from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import membership
from ..deps import get_db, get_user
from ..models import User
from ..schemas import DecisionRequest
from ..services import ok, serialize_request

router = APIRouter()


@router.put("/api/membership-requests/{request_id}")
def update_membership_request(
    request_id: int,
    payload: DecisionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    request = membership.decide(db, request_id, payload.status, user, payload.admin_response)
    db.refresh(request)
    return ok(f"Membership request {request.status}", serialize_request(request))
