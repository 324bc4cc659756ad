from pydantic import BaseModel, ConfigDict, EmailStr, Field
from enum import Enum

class Role(str, Enum):
    user = "user"
    manager = "manager"
    admin = "admin"

class RegisterIn(BaseModel):
    full_name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Role = Role.user

class LoginIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(..., min_length=1)
    otp: str | None = None   # requerido si 2FA activo (TOTP o código de respaldo)

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    email: EmailStr
    role: Role
    is_active: bool

# --- 2FA ---
class CheckTwoFAIn(BaseModel):
    email: str = Field(..., min_length=1)

class CheckTwoFAOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_2fa: bool = Field(alias="has2FA")
    is_locked: bool = Field(alias="isLocked")

class VerifyTwoFAIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1, max_length=16)

class VerifyTwoFAOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    remaining_backup_codes: int | None = Field(default=None, alias="remainingBackupCodes")

class TwoFASetupOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    secret: str
    manual_entry_key: str = Field(alias="manualEntryKey")
    otpauth_url: str = Field(alias="otpauthUrl")
    qr_code: str = Field(alias="qrCode")   # data:image/png;base64,...

class TwoFAEnableIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    token: str = Field(..., min_length=1, max_length=16)

class TwoFAEnableOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    backup_codes: list[str] = Field(alias="backupCodes")

class TwoFADisableIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    password: str = Field(..., min_length=1)
    token: str | None = None

class TwoFAStatusOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool
    remaining_backup_codes: int = Field(alias="remainingBackupCodes")

# --- password reset ---
class ForgotPasswordIn(BaseModel):
    email: str = Field(..., min_length=1)

class ResetPasswordIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    new_password: str = Field(..., alias="newPassword")

class MessageOut(BaseModel):
    message: str
    success: bool = True
