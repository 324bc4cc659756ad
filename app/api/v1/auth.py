from fastapi import APIRouter, BackgroundTasks, Depends

from app.api.deps import (
    get_current_user, get_user_store, get_two_factor_service, get_password_reset_service,
)
from app.core.errors import AuthenticationError, ValidationError
from app.core.security import hash_password, verify_password, create_access_token
from app.models.user import User, RoleEnum
from app.schemas.auth import (
    RegisterIn, LoginIn, TokenOut, UserOut,
    CheckTwoFAIn, CheckTwoFAOut, VerifyTwoFAIn, VerifyTwoFAOut,
    TwoFASetupOut, TwoFAEnableIn, TwoFAEnableOut, TwoFADisableIn, TwoFAStatusOut,
    ForgotPasswordIn, ResetPasswordIn, MessageOut,
)
from app.services.password_reset import PasswordResetService
from app.services.two_factor import TwoFactorService, is_locked
from app.services.user_store import SqlUserStore, utcnow

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=UserOut, status_code=201)
async def register(payload: RegisterIn, store: SqlUserStore = Depends(get_user_store)):
    if await store.find_user_by_email(payload.email):
        raise ValidationError("Email already registered")

    user = User(
        email=payload.email.lower(),
        full_name=payload.full_name,
        role=RoleEnum(payload.role.value),
        hashed_password=hash_password(payload.password),
    )
    return await store.add_user(user)

@router.post("/login", response_model=TokenOut)
async def login(
    payload: LoginIn,
    store: SqlUserStore = Depends(get_user_store),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
):
    user = await store.find_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user.hashed_password):
        raise AuthenticationError()
    if not user.is_active or is_locked(user):
        raise AuthenticationError()

    # si 2FA está activo, el OTP (o un código de respaldo) es obligatorio;
    # el cliente ya lo sabe por /check-2fa, así que el error sigue siendo genérico
    if user.two_factor_enabled:
        if not payload.otp:
            raise AuthenticationError()
        try:
            await two_factor.verify_for_user(user, payload.otp, record_login=True)
        except AuthenticationError:
            raise AuthenticationError() from None
    else:
        await store.update_user(user.id, last_login=utcnow())

    token = create_access_token(subject=user.id, extra={"role": user.role.value})
    return TokenOut(access_token=token)

@router.post("/check-2fa", response_model=CheckTwoFAOut)
async def check_2fa(body: CheckTwoFAIn, two_factor: TwoFactorService = Depends(get_two_factor_service)):
    status = await two_factor.check_has_2fa(body.email)
    return CheckTwoFAOut(has_2fa=status.has_2fa, is_locked=status.is_locked)

@router.post("/verify-2fa", response_model=VerifyTwoFAOut, response_model_exclude_none=True)
async def verify_2fa(body: VerifyTwoFAIn, two_factor: TwoFactorService = Depends(get_two_factor_service)):
    result = await two_factor.verify_2fa(body.email, body.token)
    return VerifyTwoFAOut(
        success=result.success,
        message=result.message,
        remaining_backup_codes=result.remaining_backup_codes,
    )

# ---------- 2FA FLOW ----------
@router.get("/2fa/setup", response_model=TwoFASetupOut)
async def twofa_setup(
    current_user: User = Depends(get_current_user),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
):
    setup = await two_factor.begin_enrollment(current_user)
    return TwoFASetupOut(
        secret=setup.secret,
        manual_entry_key=setup.manual_entry_key,
        otpauth_url=setup.provisioning_uri,
        qr_code=setup.qr_code,
    )

@router.post("/2fa/enable", response_model=TwoFAEnableOut)
async def twofa_enable(
    body: TwoFAEnableIn,
    current_user: User = Depends(get_current_user),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
):
    codes = await two_factor.enable(current_user, body.token)
    # los códigos solo se muestran esta vez
    return TwoFAEnableOut(message="2FA enabled successfully", backup_codes=codes)

@router.post("/2fa/disable", response_model=MessageOut)
async def twofa_disable(
    body: TwoFADisableIn,
    current_user: User = Depends(get_current_user),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
):
    await two_factor.disable(current_user, body.password, body.token)
    return MessageOut(message="2FA disabled successfully")

@router.get("/2fa/status", response_model=TwoFAStatusOut)
async def twofa_status(
    current_user: User = Depends(get_current_user),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
):
    status = two_factor.status(current_user)
    return TwoFAStatusOut(enabled=status.enabled, remaining_backup_codes=status.remaining_backup_codes)

# ---------- password reset ----------
@router.post("/forgot-password", response_model=MessageOut)
async def forgot_password(
    body: ForgotPasswordIn,
    background_tasks: BackgroundTasks,
    resets: PasswordResetService = Depends(get_password_reset_service),
):
    # búsqueda, token y envío van después de la respuesta
    message = await resets.request_reset(body.email, schedule=background_tasks.add_task)
    return MessageOut(message=message)

@router.put("/reset-password", response_model=MessageOut)
async def reset_password(
    body: ResetPasswordIn,
    resets: PasswordResetService = Depends(get_password_reset_service),
):
    message = await resets.confirm_reset(body.token, body.email, body.new_password)
    return MessageOut(message=message)


@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
