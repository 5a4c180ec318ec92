from fastapi import APIRouter, Depends

from officeshare.core.security import get_current_user
from officeshare.models.user import User
from officeshare.schemas.user import UserResponse

router = APIRouter(
    prefix="/users",
    tags=["Users"]
)

@router.get("/me", response_model=UserResponse)
async def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user
