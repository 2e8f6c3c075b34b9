"""
Dinner and member administration endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...config import get_settings
from ...models.database import Member, get_db
from ...models.schemas import DinnerCreate, DinnerUpdate
from ...services.dinner_service import DinnerService
from ...services.member_service import MemberService
from ..dependencies import require_admin

router = APIRouter(prefix="/admin", tags=["dinners"], dependencies=[Depends(require_admin)])


def _dinner_service(db: Session) -> DinnerService:
    return DinnerService(db, default_seats=get_settings().default_dinner_seats)


@router.get("/dinners")
def list_dinners(db: Session = Depends(get_db)):
    return {"dinners": _dinner_service(db).list_dinners()}


@router.get("/dinners/{dinner_id}")
def get_dinner(dinner_id: int, db: Session = Depends(get_db)):
    return {"dinner": _dinner_service(db).get_dinner(dinner_id)}


@router.post("/dinners")
def create_dinner(
    payload: DinnerCreate,
    admin: Member = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = _dinner_service(db)
    dinner = service.create_dinner(payload, created_by=admin.id)
    return {"success": True, "id": dinner.id, "dinner": service.get_dinner(dinner.id)}


@router.patch("/dinners/{dinner_id}")
def update_dinner(dinner_id: int, payload: DinnerUpdate, db: Session = Depends(get_db)):
    service = _dinner_service(db)
    service.update_dinner(dinner_id, payload)
    return {"dinner": service.get_dinner(dinner_id)}


@router.get("/members")
def list_members(db: Session = Depends(get_db)):
    return {"members": MemberService(db).list_members()}
