from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.dependencies import TokenClaims, get_current_user, get_optional_user
from backend.core import config
from backend.database import get_db
from backend.models.user import ADMIN_ROLE
from backend.services import credential_store, recovery
from backend.services.notifier import Notifier, get_notifier

router = APIRouter(tags=['auth'])

ADMIN_LANDING_URL = '/admin/dashboard'
STUDENT_LANDING_URL = '/student/profile'
LOGIN_URL = '/login'


class LoginRequest(BaseModel):
    username: str
    password: str

    @field_validator('username')
    @classmethod
    def validate_username(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Username or email is required.')
        return normalized


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Email is required.')
        return normalized


class VerifyOtpRequest(BaseModel):
    email: str | None = None
    otp: str

    @field_validator('otp')
    @classmethod
    def validate_otp(cls, value: str) -> str:
        return value.strip()


class ResetPasswordRequest(BaseModel):
    email: str | None = None
    password: str
    confirm_password: str = Field(alias='confirmPassword')

    class Config:
        populate_by_name = True


class RecoveryStatusResponse(BaseModel):
    message: str
    stage: recovery.RecoveryStage


def landing_url_for(role: str) -> str:
    return ADMIN_LANDING_URL if role == ADMIN_ROLE else STUDENT_LANDING_URL


def set_token_cookie(response, token: str) -> None:
    response.set_cookie(
        config.TOKEN_COOKIE_NAME,
        token,
        max_age=config.JWT_EXPIRES_MINUTES * 60,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite='lax',
    )


def recovery_response(context: recovery.RecoveryContext, message: str) -> JSONResponse:
    body = RecoveryStatusResponse(message=message, stage=context.stage)
    response = JSONResponse(content=body.model_dump(mode='json'))
    if context.is_idle:
        response.delete_cookie(config.RECOVERY_COOKIE_NAME)
    else:
        response.set_cookie(
            config.RECOVERY_COOKIE_NAME,
            context.session_id,
            max_age=config.RECOVERY_SESSION_TTL_MINUTES * 60,
            httponly=True,
            secure=config.COOKIE_SECURE,
            samesite='lax',
        )
    return response


def get_recovery_context(request: Request, db: Session = Depends(get_db)) -> recovery.RecoveryContext:
    return recovery.load_context(db, request.cookies.get(config.RECOVERY_COOKIE_NAME))


@router.get('/')
def home(current_user: TokenClaims | None = Depends(get_optional_user)):
    if current_user is None:
        return RedirectResponse(url=LOGIN_URL, status_code=status.HTTP_303_SEE_OTHER)
    return RedirectResponse(url=landing_url_for(current_user.role), status_code=status.HTTP_303_SEE_OTHER)


@router.post('/login')
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = credential_store.authenticate(db, data.username, data.password)
    token = jwt_handler.create_access_token(user)

    response = RedirectResponse(url=landing_url_for(user.role), status_code=status.HTTP_303_SEE_OTHER)
    set_token_cookie(response, token)
    return response


@router.get('/logout')
def logout():
    response = RedirectResponse(url=LOGIN_URL, status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(config.TOKEN_COOKIE_NAME)
    return response


@router.get('/me')
def me(current_user: TokenClaims = Depends(get_current_user)):
    return {
        'id': current_user.id,
        'username': current_user.username,
        'email': current_user.email,
        'role': current_user.role,
    }


@router.post('/forgot-password', response_model=RecoveryStatusResponse)
def forgot_password(
    data: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    context: recovery.RecoveryContext = Depends(get_recovery_context),
    notifier: Notifier = Depends(get_notifier),
):
    recovery.request_reset(db, context, data.email, notifier)
    return recovery_response(context, 'OTP sent to your email!')


@router.post('/verify-otp', response_model=RecoveryStatusResponse)
def verify_otp(
    data: VerifyOtpRequest,
    db: Session = Depends(get_db),
    context: recovery.RecoveryContext = Depends(get_recovery_context),
):
    recovery.submit_code(db, context, data.otp, email=data.email)
    return recovery_response(context, 'OTP verified. Choose a new password.')


@router.post('/reset-password', response_model=RecoveryStatusResponse)
def reset_password(
    data: ResetPasswordRequest,
    db: Session = Depends(get_db),
    context: recovery.RecoveryContext = Depends(get_recovery_context),
):
    recovery.submit_new_password(db, context, data.password, data.confirm_password, email=data.email)
    return recovery_response(context, 'Password reset successfully. Please log in.')
