# storefront/utils/password_utils.py

import re
import secrets
from passlib.context import CryptContext
import logging

from ..core.config import settings

logger = logging.getLogger(__name__)

# Create the context once and reuse it
bcrypt_context = CryptContext(schemes=['bcrypt'], deprecated='auto')

PASSWORD_REQUIREMENTS = (
    f"Password must be {settings.PASSWORD_MIN_LENGTH} to {settings.PASSWORD_MAX_LENGTH} characters long "
    "and include an uppercase letter, a lowercase letter and a number."
)

def is_password_length_valid(password: str) -> bool:
    return settings.PASSWORD_MIN_LENGTH <= len(password) <= settings.PASSWORD_MAX_LENGTH

def is_password_strong(password: str) -> bool:
    """
    Checks if a password meets the sign-up strength requirements.
    """
    if not is_password_length_valid(password):
        return False
    if not re.search(r"[A-Z]", password):
        return False
    if not re.search(r"[a-z]", password):
        return False
    if not re.search(r"[0-9]", password):
        return False
    return True

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifies a plain-text password against a hashed password.
    """
    return bcrypt_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """
    Hashes a plain-text password.
    """
    try:
        return bcrypt_context.hash(password)
    except Exception:
        logger.exception("Error occurred while hashing password.")
        raise

def generate_otp(length: int = settings.OTP_LENGTH) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))
