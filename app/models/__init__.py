from app.models.user import User
from app.models.two_factor import TwoFactorEnrollment, BackupCode
from app.models.system_settings import SystemSettings
from app.models.auth_session import AuthSession
from app.models.verification_token import VerificationToken
