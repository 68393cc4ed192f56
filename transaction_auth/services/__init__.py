"""Business logic services."""

from transaction_auth.services.audit_service import AuditService
from transaction_auth.services.auth_service import AuthService
from transaction_auth.services.credential_service import CredentialVerifier
from transaction_auth.services.rate_limiter import RateLimiter
from transaction_auth.services.risk_engine import RiskEngine
from transaction_auth.services.step_up_service import StepUpAuthenticator
from transaction_auth.services.token_service import TokenIssuer
from transaction_auth.services.transaction_service import TransactionService

__all__ = [
    "AuditService",
    "AuthService",
    "CredentialVerifier",
    "RateLimiter",
    "RiskEngine",
    "StepUpAuthenticator",
    "TokenIssuer",
    "TransactionService",
]
