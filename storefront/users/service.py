from uuid import UUID
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import DuplicateResourceError, UserNotFoundError
from ..database.models import User
from ..logging import logger
from .models import Address, CompleteProfile, CompleteProfileUpdate, Preferences, ProfileUpdate


class UserService:

    @staticmethod
    def get_user(db: Session, user_id: UUID) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            logger.warning(f"User not found with ID: {user_id}")
            raise UserNotFoundError()
        return user

    @staticmethod
    def shipping_address(user: User) -> Address:
        return Address(
            street=user.shipping_street,
            city=user.shipping_city,
            postal_code=user.shipping_postal_code,
            country=user.shipping_country or settings.DEFAULT_COUNTRY
        )

    @staticmethod
    def billing_address(user: User) -> Address:
        if user.use_same_address:
            return UserService.shipping_address(user)
        return Address(
            street=user.billing_street,
            city=user.billing_city,
            postal_code=user.billing_postal_code,
            country=user.billing_country or settings.DEFAULT_COUNTRY
        )

    @staticmethod
    def get_complete_profile(db: Session, user_id: UUID) -> CompleteProfile:
        user = UserService.get_user(db, user_id)
        return CompleteProfile(
            id=user.id,
            name=user.name,
            email=user.email,
            email_verified=user.email_verified,
            phone=user.phone,
            image=user.image,
            role=user.role,
            shipping_address=UserService.shipping_address(user),
            billing_address=UserService.billing_address(user),
            use_same_address=user.use_same_address,
            preferences=Preferences(newsletter=user.newsletter, promotions=user.promotions),
            created_at=user.created_at
        )

    @staticmethod
    def update_complete_profile(db: Session, user_id: UUID, data: CompleteProfileUpdate) -> CompleteProfile:
        """Update identity, addresses and preferences in one go."""
        user = UserService.get_user(db, user_id)

        if data.email and data.email.lower() != user.email:
            email = data.email.lower()
            if db.query(User).filter(User.email == email, User.id != user.id).first():
                raise DuplicateResourceError("user", "email", email)
            user.email = email

        if data.name is not None:
            user.name = data.name.strip()
        if data.phone is not None:
            user.phone = data.phone

        if data.shipping_address is not None:
            user.shipping_street = data.shipping_address.street
            user.shipping_city = data.shipping_address.city
            user.shipping_postal_code = data.shipping_address.postal_code
            user.shipping_country = data.shipping_address.country

        if data.use_same_address is not None:
            user.use_same_address = data.use_same_address

        billing = data.billing_address
        if user.use_same_address:
            billing = Address(
                street=user.shipping_street,
                city=user.shipping_city,
                postal_code=user.shipping_postal_code,
                country=user.shipping_country
            )
        if billing is not None:
            user.billing_street = billing.street
            user.billing_city = billing.city
            user.billing_postal_code = billing.postal_code
            user.billing_country = billing.country

        if data.preferences is not None:
            user.newsletter = data.preferences.newsletter
            user.promotions = data.preferences.promotions

        db.commit()
        db.refresh(user)
        logger.info(f"Profile updated for user {user.id}")
        return UserService.get_complete_profile(db, user.id)

    @staticmethod
    def update_profile(db: Session, user_id: UUID, data: ProfileUpdate) -> User:
        user = UserService.get_user(db, user_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(user, field, value)
        db.commit()
        db.refresh(user)
        return user
