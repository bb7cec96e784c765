import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..deps import get_db, get_super_admin
from ..errors import Conflict
from ..models import Category, User
from ..schemas import CategoryOut, CategoryCreate
from ..services import ok

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/categories")
def list_categories(db: Session = Depends(get_db)):
    categories = db.execute(
        select(Category).where(Category.is_active.is_(True)).order_by(Category.name.asc())
    ).scalars().all()
    return ok(data=[CategoryOut.model_validate(category) for category in categories])


@router.post("/api/categories", status_code=201)
def create_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    taken = db.execute(
        select(Category.id).where(func.lower(Category.name) == payload.name.lower())
    ).first()
    if taken:
        raise Conflict("Category with this name already exists")
    category = Category(**payload.model_dump())
    db.add(category)
    db.flush()
    db.refresh(category)
    logger.info("Category created: %s by %s", category.name, admin.email)
    return ok("Category created successfully", CategoryOut.model_validate(category))
