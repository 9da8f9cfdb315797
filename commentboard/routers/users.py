from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from commentboard.config import Settings
from commentboard.database import get_db
from commentboard.dependencies import get_identity_provider, get_settings
from commentboard.errors import NotFound
from commentboard.identity import RandomUserClient
from commentboard.schemas import PopulateResponse, UserCreate, UserId, UserSafe, UserSummary
from commentboard.services import user_service

router = APIRouter(tags=["users"])

@router.get("/users", response_model=list[UserId])
async def list_users(db: AsyncSession = Depends(get_db)):
    return await user_service.list_user_ids(db)

@router.get("/user/{user_id}", response_model=list[UserSummary])
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await user_service.get_user(db, user_id)
    if user is None:
        raise NotFound("User not found")
    # Single-element array, the shape the client expects.
    return [user]

@router.post("/user", status_code=201, response_model=UserSafe)
async def create_user(data: UserCreate, db: AsyncSession = Depends(get_db)):
    return await user_service.create_user(db, data)

@router.get("/populate", response_model=PopulateResponse)
async def populate_users(
    db: AsyncSession = Depends(get_db),
    provider: RandomUserClient = Depends(get_identity_provider),
    settings: Settings = Depends(get_settings),
):
    users = await user_service.populate_random_users(db, provider, settings.POPULATE_COUNT)
    return PopulateResponse(message=f"{len(users)} users inserted successfully", users=users)
