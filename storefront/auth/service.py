# storefront/auth/service.py

from datetime import timedelta, datetime, timezone
from typing import Annotated, List, Optional, Tuple
from uuid import UUID, uuid4
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
import jwt
from jwt import PyJWTError
from authlib.integrations.starlette_client import OAuth

from ..core.config import settings
from ..core.exceptions import (
    AuthenticationError, DuplicateResourceError, InvalidPasswordError,
    PermissionDeniedError, UserNotFoundError,
)
from ..database.core import DbSession, utcnow
from ..database.models import Account, User, UserRole, UserSession, Verification
from ..logging import logger
from .. import email_service
from ..utils.password_utils import (
    PASSWORD_REQUIREMENTS, generate_otp, get_password_hash, is_password_length_valid,
    is_password_strong, verify_password,
)
from . import models

# --- Configuration ---
SECRET_KEY = settings.ENCODING_SECRET_KEY
ALGORITHM = settings.ENCODING_ALGORITHM
SESSION_EXPIRE_DAYS = settings.SESSION_EXPIRE_DAYS
PASSWORD_RESET_TOKEN_EXPIRE_HOURS = settings.PASSWORD_RESET_TOKEN_EXPIRE_HOURS

CREDENTIAL_PROVIDER = "credential"
GOOGLE_PROVIDER = "google"
EMAIL_VERIFICATION_PREFIX = "email-verification:"
PASSWORD_RESET_PREFIX = "password-reset:"

oauth2_bearer = OAuth2PasswordBearer(tokenUrl='/api/auth/token')
optional_oauth2_bearer = OAuth2PasswordBearer(tokenUrl='/api/auth/token', auto_error=False)

# --- OAuth Configuration ---
def get_google_oauth():
    """Get configured Google OAuth client."""
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        logger.error("Missing GOOGLE_CLIENT_ID or GOOGLE_CLIENT_SECRET in environment")
        raise HTTPException(status_code=500, detail="Google OAuth is not configured properly (missing client id/secret)")

    oauth_instance = OAuth()
    oauth_instance.register(
        name='google',
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
        client_kwargs={'scope': 'openid email profile'}
    )
    return oauth_instance.google


def _role_for_email(email: str) -> str:
    return UserRole.ADMIN.value if email.lower() in settings.ADMIN_EMAILS else UserRole.USER.value


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def get_user(db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFoundError()
    return user


def get_credential_account(db: Session, user_id: UUID) -> Optional[Account]:
    return db.query(Account).filter(
        Account.user_id == user_id,
        Account.provider_id == CREDENTIAL_PROVIDER
    ).first()


def get_or_create_google_user(db: Session, user_info: dict) -> User:
    """Get existing user or create new one from Google OAuth, linking the google account."""
    try:
        email = user_info['email'].lower()
        google_id = str(user_info.get('sub') or email)
        user = get_user_by_email(db, email)
        if not user:
            user = User(
                id=uuid4(),
                name=user_info.get('name') or f"{user_info.get('given_name', '')} {user_info.get('family_name', '')}".strip() or email,
                email=email,
                email_verified=True,
                image=user_info.get('picture'),
                role=_role_for_email(email)
            )
            db.add(user)
            db.flush()
            logger.info(f"Created new user via Google login: {email}")

        linked = db.query(Account).filter(
            Account.provider_id == GOOGLE_PROVIDER,
            Account.account_id == google_id
        ).first()
        if not linked:
            db.add(Account(user_id=user.id, provider_id=GOOGLE_PROVIDER, account_id=google_id))
            # Google has verified the address
            user.email_verified = True
        db.commit()
        db.refresh(user)
        return user
    except Exception as e:
        logger.error(f"Error in get_or_create_google_user: {e}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to create Google user")


# --- Bans ---

def check_ban(db: Session, user: User) -> None:
    """Raise if the user is banned; bans whose expiry has passed are lifted."""
    if not user.banned:
        return
    if user.ban_expires and user.ban_expires <= utcnow():
        user.banned = False
        user.ban_reason = None
        user.ban_expires = None
        db.commit()
        logger.info(f"Ban expired and lifted for user {user.id}")
        return
    message = "You have been banned from this application."
    if user.ban_reason:
        message += f" Reason: {user.ban_reason}"
    raise PermissionDeniedError(message)


# --- Password login ---

def authenticate_user(email: str, password: str, db: Session) -> Optional[User]:
    """Authenticates a user with email and password."""
    user = get_user_by_email(db, email)
    if not user:
        return None
    account = get_credential_account(db, user.id)
    if not account or not account.password_hash:
        return None
    if not verify_password(password, account.password_hash):
        return None

    if not user.email_verified:
        logger.warning(f"Login attempt from unverified user: {email}")
        raise PermissionDeniedError("Please verify your email address before logging in.")
    check_ban(db, user)
    return user


# --- Sessions ---

def create_session(db: Session, user: User, ip_address: Optional[str] = None,
                   user_agent: Optional[str] = None) -> UserSession:
    now = utcnow()
    session = UserSession(
        token=secrets.token_urlsafe(32),
        user_id=user.id,
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=now,
        expires_at=now + timedelta(days=SESSION_EXPIRE_DAYS)
    )
    db.add(session)
    user.last_login = now
    db.commit()
    db.refresh(session)
    logger.info(f"Session created for user {user.id}")
    return session


def create_access_token(user: User, session: UserSession) -> str:
    """Creates a JWT access token bound to a stored session (jti is the session token)."""
    try:
        encode = {
            'sub': user.email,
            'id': str(user.id),
            'role': user.role,
            'exp': session.expires_at.replace(tzinfo=timezone.utc),
            'scope': 'access_token',
            'jti': session.token,
            'type': 'access'
        }
        return jwt.encode(encode, SECRET_KEY, algorithm=ALGORITHM)
    except Exception as e:
        logger.error(f"Error creating access token: {e}")
        raise HTTPException(status_code=500, detail="Failed to create access token")


def login(db: Session, user: User, ip_address: Optional[str] = None,
          user_agent: Optional[str] = None) -> models.Token:
    session = create_session(db, user, ip_address, user_agent)
    return models.Token(
        access_token=create_access_token(user, session),
        token_type='bearer',
        expires_at=session.expires_at
    )


def verify_token(token: str) -> models.TokenData:
    """Decodes an access token and returns its claims."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except PyJWTError as e:
        logger.warning(f"JWT decode error: {e}")
        raise AuthenticationError(message="Invalid token")

    if payload.get('scope') != 'access_token':
        raise AuthenticationError(message="Invalid token scope")
    jti = payload.get('jti')
    if not jti:
        raise AuthenticationError(message="Token is missing JTI.")
    user_id = payload.get('id')
    if not user_id:
        raise AuthenticationError(message="User ID not found in token.")

    return models.TokenData(user_id=user_id, session_token=jti, role=payload.get('role', 'user'))


def get_active_session(db: Session, session_token: str) -> Optional[UserSession]:
    session = db.query(UserSession).filter(UserSession.token == session_token).first()
    if not session:
        return None
    if session.expires_at <= utcnow():
        db.delete(session)
        db.commit()
        return None
    return session


def resolve_token(db: Session, token: str) -> models.TokenData:
    """Checks a bearer token against the session store and the user's ban status."""
    token_data = verify_token(token)
    session = get_active_session(db, token_data.session_token)
    if not session or str(session.user_id) != token_data.user_id:
        raise AuthenticationError(message="Session has expired or been revoked.")

    user = session.user
    check_ban(db, user)
    # Role changes apply immediately, not at next login
    token_data.role = user.role
    return token_data


def get_current_user(token: Annotated[str, Depends(oauth2_bearer)], db: DbSession) -> models.TokenData:
    """FastAPI dependency to get the current user from a token."""
    return resolve_token(db, token)


def get_optional_user(
    token: Annotated[Optional[str], Depends(optional_oauth2_bearer)],
    db: DbSession
) -> Optional[models.TokenData]:
    """Like get_current_user, but anonymous callers (or stale tokens) yield None."""
    if not token:
        return None
    try:
        return resolve_token(db, token)
    except (AuthenticationError, PermissionDeniedError):
        return None


def require_admin(current_user: Annotated[models.TokenData, Depends(get_current_user)]) -> models.TokenData:
    if not current_user.is_admin:
        raise PermissionDeniedError("Administrator access required")
    return current_user


CurrentUser = Annotated[models.TokenData, Depends(get_current_user)]
OptionalUser = Annotated[Optional[models.TokenData], Depends(get_optional_user)]
AdminUser = Annotated[models.TokenData, Depends(require_admin)]


def logout(db: Session, token_data: models.TokenData) -> None:
    deleted = db.query(UserSession).filter(UserSession.token == token_data.session_token).delete()
    db.commit()
    logger.info(f"User {token_data.user_id} logged out ({deleted} session removed)")


def list_sessions(db: Session, token_data: models.TokenData) -> List[models.SessionInfo]:
    sessions = db.query(UserSession).filter(
        UserSession.user_id == token_data.get_uuid(),
        UserSession.expires_at > utcnow()
    ).order_by(UserSession.created_at.desc()).all()

    result = []
    for session in sessions:
        info = models.SessionInfo.model_validate(session)
        info.is_current = session.token == token_data.session_token
        result.append(info)
    return result


def revoke_session(db: Session, token_data: models.TokenData, session_id: UUID) -> None:
    session = db.query(UserSession).filter(
        UserSession.id == session_id,
        UserSession.user_id == token_data.get_uuid()
    ).first()
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    if session.token == token_data.session_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot revoke the current session; use logout instead"
        )
    db.delete(session)
    db.commit()
    logger.info(f"User {token_data.user_id} revoked session {session_id}")


def revoke_other_sessions(db: Session, user_id: UUID, keep_token: Optional[str] = None) -> int:
    query = db.query(UserSession).filter(UserSession.user_id == user_id)
    if keep_token:
        query = query.filter(UserSession.token != keep_token)
    count = query.delete(synchronize_session=False)
    db.commit()
    return count


# --- Registration and email verification ---

def issue_otp(db: Session, email: str) -> str:
    """Replace any pending code for this address with a fresh one."""
    identifier = f"{EMAIL_VERIFICATION_PREFIX}{email.lower()}"
    db.query(Verification).filter(Verification.identifier == identifier).delete()
    otp = generate_otp()
    db.add(Verification(
        identifier=identifier,
        value=otp,
        expires_at=utcnow() + timedelta(seconds=settings.OTP_EXPIRE_SECONDS)
    ))
    db.commit()
    return otp


async def send_verification_otp(db: Session, user: User) -> None:
    otp = issue_otp(db, user.email)
    await email_service.send_verification_otp_email(
        recipient_email=user.email,
        otp=otp,
        name=user.name
    )


def verify_email_otp(db: Session, email: str, otp: str) -> User:
    """Checks a verification code and marks the address as verified."""
    identifier = f"{EMAIL_VERIFICATION_PREFIX}{email.lower()}"
    verification = db.query(Verification).filter(Verification.identifier == identifier).first()
    if not verification:
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")

    if verification.expires_at <= utcnow():
        db.delete(verification)
        db.commit()
        raise HTTPException(status_code=400, detail="Verification code has expired")

    if not secrets.compare_digest(verification.value, otp.strip()):
        verification.attempts += 1
        if verification.attempts >= settings.OTP_MAX_ATTEMPTS:
            db.delete(verification)
            db.commit()
            raise HTTPException(status_code=400, detail="Too many attempts. Request a new code.")
        db.commit()
        raise HTTPException(status_code=400, detail="Invalid verification code")

    user = get_user_by_email(db, email)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")

    user.email_verified = True
    db.delete(verification)
    db.commit()
    db.refresh(user)
    logger.info(f"Email verified for user: {user.email}")
    return user


async def register_user(db: Session, register_user_request: models.RegisterUserRequest) -> User:
    """Registers a new user with a password and sends the verification code."""
    if not is_password_strong(register_user_request.password):
        raise HTTPException(status_code=400, detail=PASSWORD_REQUIREMENTS)

    email = register_user_request.email.lower()
    if get_user_by_email(db, email):
        raise DuplicateResourceError("user", "email", email)

    try:
        user = User(
            id=uuid4(),
            name=register_user_request.name.strip(),
            email=email,
            role=_role_for_email(email)
        )
        db.add(user)
        db.add(Account(
            user_id=user.id,
            provider_id=CREDENTIAL_PROVIDER,
            account_id=str(user.id),
            password_hash=get_password_hash(register_user_request.password)
        ))
        db.commit()
        db.refresh(user)
    except Exception as e:
        logger.exception(f"Registration failed: {e}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Registration failed")

    logger.info(f"Successfully registered user: {email}. Sending verification code.")
    await send_verification_otp(db, user)
    return user


async def resend_verification_otp(db: Session, email: str) -> None:
    user = get_user_by_email(db, email)
    if not user:
        logger.info(f"Verification code requested for unknown email: {email}")
        return
    if user.email_verified:
        logger.info(f"Verification code requested for already verified email: {email}")
        return
    await send_verification_otp(db, user)


# --- Passwords ---

def _validate_new_password(password: str) -> None:
    if not is_password_length_valid(password):
        raise HTTPException(
            status_code=400,
            detail=f"Password must be between {settings.PASSWORD_MIN_LENGTH} and {settings.PASSWORD_MAX_LENGTH} characters"
        )


def change_password(db: Session, token_data: models.TokenData, request: models.ChangePasswordRequest) -> None:
    account = get_credential_account(db, token_data.get_uuid())
    if not account or not account.password_hash:
        raise HTTPException(status_code=400, detail="No password is set for this account")
    if not verify_password(request.current_password, account.password_hash):
        raise InvalidPasswordError("Current password is incorrect")
    _validate_new_password(request.new_password)

    account.password_hash = get_password_hash(request.new_password)
    db.commit()
    if request.revoke_other_sessions:
        revoke_other_sessions(db, token_data.get_uuid(), keep_token=token_data.session_token)
    logger.info(f"Password changed for user {token_data.user_id}")


def add_password(db: Session, token_data: models.TokenData, new_password: str) -> None:
    """Adds a password to an account that only signs in through a social provider."""
    if get_credential_account(db, token_data.get_uuid()):
        raise HTTPException(status_code=400, detail="This account already has a password")
    _validate_new_password(new_password)

    db.add(Account(
        user_id=token_data.get_uuid(),
        provider_id=CREDENTIAL_PROVIDER,
        account_id=token_data.user_id,
        password_hash=get_password_hash(new_password)
    ))
    db.commit()
    logger.info(f"Password added for user {token_data.user_id}")


def list_accounts(db: Session, token_data: models.TokenData) -> List[Account]:
    return db.query(Account).filter(Account.user_id == token_data.get_uuid()).order_by(Account.created_at).all()


def create_password_reset_token(db: Session, email: str) -> str:
    """Creates a single-use token for password reset; its jti is recorded until used."""
    expire = utcnow() + timedelta(hours=PASSWORD_RESET_TOKEN_EXPIRE_HOURS)
    jti = str(uuid4())
    db.add(Verification(
        identifier=f"{PASSWORD_RESET_PREFIX}{email.lower()}",
        value=jti,
        expires_at=expire
    ))
    db.commit()
    encode = {
        'sub': email,
        'exp': expire.replace(tzinfo=timezone.utc),
        'scope': 'password_reset',
        'jti': jti
    }
    return jwt.encode(encode, SECRET_KEY, algorithm=ALGORITHM)


async def handle_password_reset_request(db: Session, email: str) -> None:
    """Sends a reset link when the address belongs to an account. Silent otherwise."""
    user = get_user_by_email(db, email)
    if not user:
        # Don't reveal if user exists or not
        logger.info(f"Password reset requested for non-existent email: {email}")
        return

    reset_token = create_password_reset_token(db, user.email)
    reset_link = f"{settings.FRONTEND_BASE_URL}/reset-password?token={reset_token}"
    await email_service.send_password_reset_email(
        recipient_email=user.email,
        reset_link=reset_link,
        name=user.name
    )
    logger.info(f"Password reset email sent to: {email}")


def reset_password(db: Session, token: str, new_password: str) -> Tuple[User, int]:
    """Resets the password from a reset token and signs the user out everywhere."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except PyJWTError:
        raise AuthenticationError("Invalid or expired reset token")

    if payload.get('scope') != 'password_reset':
        raise AuthenticationError("Invalid token scope for password reset")
    email = payload.get('sub')
    user = get_user_by_email(db, email) if email else None
    if not user:
        raise AuthenticationError("Invalid or expired reset token")

    identifier = f"{PASSWORD_RESET_PREFIX}{user.email.lower()}"
    issued = db.query(Verification).filter(
        Verification.identifier == identifier,
        Verification.value == payload.get('jti')
    ).first()
    if not issued:
        raise AuthenticationError("Reset link has already been used")

    _validate_new_password(new_password)

    account = get_credential_account(db, user.id)
    if account:
        account.password_hash = get_password_hash(new_password)
    else:
        db.add(Account(
            user_id=user.id,
            provider_id=CREDENTIAL_PROVIDER,
            account_id=str(user.id),
            password_hash=get_password_hash(new_password)
        ))
    # Every outstanding link for this address is spent
    db.query(Verification).filter(Verification.identifier == identifier).delete()
    # Following the link proves ownership of the address
    user.email_verified = True
    db.commit()

    revoked = revoke_other_sessions(db, user.id)
    logger.info(f"Password reset successful for user: {email} ({revoked} sessions revoked)")
    return user, revoked
