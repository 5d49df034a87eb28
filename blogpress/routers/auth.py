from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from blogpress.database import get_db
from blogpress.dependencies import get_current_user
from blogpress.models import User
from blogpress.schemas import LoginRequest, ProfileUpdate, RegisterRequest, TokenResponse
from blogpress.services import auth_service

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", status_code=201, response_model=TokenResponse)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.register(db, data)

@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.login(db, data)

@router.get("/profile")
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.get_profile(db, current_user)

@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.update_profile(db, current_user, data)
