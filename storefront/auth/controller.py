# storefront/auth/controller.py
from typing import Annotated, List
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, HTTPException
from fastapi.responses import RedirectResponse
from fastapi.security import OAuth2PasswordRequestForm
from starlette import status

from ..core.config import settings
from ..core.exceptions import HANDLED_ERRORS
from ..core.rate_limiter import limiter
from ..database.core import DbSession
from ..database.models import UserSession
from ..logging import logger
from . import models
from . import service
from .service import CurrentUser

router = APIRouter(prefix='/auth', tags=['auth'])


def _client_info(request: Request):
    return (
        request.client.host if request.client else None,
        request.headers.get("user-agent")
    )


@router.post("/register", status_code=status.HTTP_202_ACCEPTED)
@limiter.limit("30/hour")
async def register_user(
    request: Request,
    db: DbSession,
    register_user_request: models.RegisterUserRequest
):
    """Register a new account; a verification code is emailed to the address."""
    try:
        await service.register_user(db, register_user_request)
        return {
            "message": "Registration successful. Please check your email for the verification code.",
            "email": register_user_request.email.lower()
        }
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.exception(f"Registration failed: {e}")
        raise HTTPException(status_code=500, detail="Registration failed")


@router.post("/verify-email", response_model=models.MessageResponse)
async def verify_email_endpoint(verification: models.EmailVerification, db: DbSession):
    """Verify an email address with the one-time code."""
    service.verify_email_otp(db, verification.email, verification.otp)
    return {"message": "Email verified successfully. You can now log in."}


@router.post("/resend-otp", response_model=models.MessageResponse)
@limiter.limit("5/minute")
async def resend_otp(request: Request, resend_request: models.ResendOtpRequest, db: DbSession):
    if not resend_request.email:
        raise HTTPException(status_code=400, detail="Email is required")
    try:
        await service.resend_verification_otp(db, resend_request.email)
    except Exception as e:
        logger.error(f"Resend OTP error: {e}")
    return {"message": "If this address is awaiting verification, a new code has been sent."}


@router.post("/token", response_model=models.Token, status_code=status.HTTP_200_OK)
@limiter.limit("50/hour")
async def login_for_access_token(
    request: Request,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: DbSession
):
    """Password login. Opens a session and returns its bearer token."""
    try:
        user = service.authenticate_user(form_data.username, form_data.password, db)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect email or password"
            )
        ip_address, user_agent = _client_info(request)
        return service.login(db, user, ip_address, user_agent)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise HTTPException(status_code=500, detail="Login failed")


@router.post("/logout", response_model=models.MessageResponse)
async def logout_endpoint(request: Request, current_user: CurrentUser, db: DbSession):
    service.logout(db, current_user)
    return {"message": "User logged out successfully"}


@router.get("/get-session", response_model=models.SessionResponse)
async def get_session(current_user: CurrentUser, db: DbSession):
    session = db.query(UserSession).filter(UserSession.token == current_user.session_token).first()
    info = models.SessionInfo.model_validate(session)
    info.is_current = True
    return models.SessionResponse(
        user=models.SessionUser.model_validate(session.user),
        session=info
    )


@router.get("/list-sessions", response_model=models.SessionListResponse)
async def list_sessions(current_user: CurrentUser, db: DbSession):
    return {"sessions": service.list_sessions(db, current_user)}


@router.post("/revoke-session", response_model=models.MessageResponse)
async def revoke_session(revoke_request: models.RevokeSessionRequest, current_user: CurrentUser, db: DbSession):
    service.revoke_session(db, current_user, revoke_request.session_id)
    return {"message": "Session revoked"}


@router.post("/revoke-all-sessions")
async def revoke_all_sessions(current_user: CurrentUser, db: DbSession):
    """Sign out every other device, keeping the current session."""
    count = service.revoke_other_sessions(db, current_user.get_uuid(), keep_token=current_user.session_token)
    logger.info(f"User {current_user.user_id} revoked {count} other sessions")
    return {"message": f"{count} session(s) revoked", "revoked": count}


@router.post("/change-password", response_model=models.MessageResponse)
async def change_password(request_data: models.ChangePasswordRequest, current_user: CurrentUser, db: DbSession):
    service.change_password(db, current_user, request_data)
    return {"message": "Password changed successfully"}


@router.post("/add-password", response_model=models.MessageResponse)
async def add_password(request_data: models.AddPasswordRequest, current_user: CurrentUser, db: DbSession):
    service.add_password(db, current_user, request_data.new_password)
    return {"message": "Password added successfully"}


@router.get("/list-accounts", response_model=List[models.LinkedAccount])
async def list_accounts(current_user: CurrentUser, db: DbSession):
    return service.list_accounts(db, current_user)


@router.post("/forgot-password", status_code=status.HTTP_202_ACCEPTED, response_model=models.MessageResponse)
@limiter.limit("10/hour")
async def request_password_reset(
    request: Request,
    reset_request: models.PasswordResetRequest,
    db: DbSession
):
    """Request password reset via email."""
    try:
        await service.handle_password_reset_request(db, reset_request.email)
    except Exception as e:
        # Always return success to prevent email enumeration
        logger.error(f"Password reset request error: {e}")
    return {"message": "If an account with that email exists, a password reset link has been sent."}


@router.post("/reset-password", response_model=models.MessageResponse)
async def reset_password_endpoint(reset_data: models.PasswordReset, db: DbSession):
    """Reset password using reset token."""
    service.reset_password(db, reset_data.token, reset_data.new_password)
    return {"message": "Password reset successful. You can now login with your new password."}


@router.get("/google/login")
async def google_login(request: Request):
    """Redirect the user to Google's consent screen."""
    try:
        redirect_uri = settings.GOOGLE_REDIRECT_URI or str(request.url_for('google_callback'))
        google_oauth = service.get_google_oauth()

        next_target = request.query_params.get("next")
        if next_target:
            request.session['post_auth_next'] = next_target

        return await google_oauth.authorize_redirect(request, redirect_uri, prompt='select_account')
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Google OAuth login error: {repr(e)}")
        raise HTTPException(status_code=500, detail="Google OAuth login failed")


@router.get("/google/callback")
async def google_callback(request: Request, db: DbSession):
    """Handle the callback from Google after user authorization."""
    try:
        google_oauth = service.get_google_oauth()
        token = await google_oauth.authorize_access_token(request)
        user_info = token.get('userinfo')
        if not user_info or not user_info.get('email'):
            raise HTTPException(status_code=400, detail="Could not fetch user info from Google.")

        user = service.get_or_create_google_user(db, dict(user_info))
        service.check_ban(db, user)
        ip_address, user_agent = _client_info(request)
        access = service.login(db, user, ip_address, user_agent)

        next_target = request.session.pop('post_auth_next', None)
        redirect_url = f"{settings.FRONTEND_BASE_URL}/oauth-callback?token={access.access_token}&type=google"
        if next_target:
            redirect_url += f"&next={quote(str(next_target))}"
        return RedirectResponse(url=redirect_url)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Google OAuth callback error: {repr(e)}")
        raise HTTPException(status_code=500, detail="Google authentication failed")
