# storefront/users/controller.py
from fastapi import APIRouter, HTTPException, status

from ..auth.service import CurrentUser
from ..core.exceptions import HANDLED_ERRORS
from ..database.core import DbSession
from ..logging import logger
from .models import CompleteProfile, CompleteProfileUpdate, ProfileUpdate, UserResponse
from .service import UserService

# Profile routes live next to the auth routes
router = APIRouter(prefix="/auth", tags=["users"])


@router.get("/get-profile-complete", response_model=CompleteProfile)
async def get_profile_complete(current_user: CurrentUser, db: DbSession):
    """Get the signed-in user's profile, addresses and preferences"""
    return UserService.get_complete_profile(db, current_user.get_uuid())


@router.post("/update-profile-complete")
async def update_profile_complete(
    profile_data: CompleteProfileUpdate,
    current_user: CurrentUser,
    db: DbSession
):
    try:
        profile = UserService.update_complete_profile(db, current_user.get_uuid(), profile_data)
        return {"message": "Profile updated successfully", "user": profile}
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Profile update failed: {e}")
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile"
        )


@router.post("/update-profile", response_model=UserResponse)
async def update_profile(profile_data: ProfileUpdate, current_user: CurrentUser, db: DbSession):
    return UserService.update_profile(db, current_user.get_uuid(), profile_data)
