"""
HTTP Error Mapping

Translates WARDEN exceptions and denied authorization results into HTTP
responses. The body is always {"detail": {"code", "message", "details"}}.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from shared.warden_core.evaluator import AuthorizationResult, DecisionCode
from shared.warden_core.exceptions import (
    AccessDeniedError,
    AlreadyBootstrappedError,
    BootstrapError,
    CredentialChangeRequiredError,
    InvalidCategoryError,
    InvalidConfigError,
    InvalidCredentialError,
    InvalidModuleError,
    InvalidRoleError,
    PasswordPolicyError,
    PersistenceError,
    PrincipalNotFoundError,
    TenantIsolationError,
    TenantNotFoundError,
    WardenError,
    WriteConflictError,
    is_security_relevant,
)
from warden.api.config import settings


logger = logging.getLogger(__name__)


# Most specific first; the first isinstance match wins
_STATUS_BY_ERROR = (
    (TenantIsolationError, status.HTTP_403_FORBIDDEN),
    (CredentialChangeRequiredError, status.HTTP_403_FORBIDDEN),
    (PasswordPolicyError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidConfigError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidRoleError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidModuleError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidCategoryError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidCredentialError, status.HTTP_400_BAD_REQUEST),
    (PrincipalNotFoundError, status.HTTP_404_NOT_FOUND),
    (TenantNotFoundError, status.HTTP_404_NOT_FOUND),
    (AccessDeniedError, status.HTTP_403_FORBIDDEN),
    (AlreadyBootstrappedError, status.HTTP_409_CONFLICT),
    (WriteConflictError, status.HTTP_409_CONFLICT),
    (BootstrapError, status.HTTP_409_CONFLICT),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for_error(error: WardenError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def error_body(error: WardenError) -> dict:
    body = error.to_dict()
    if isinstance(error, CredentialChangeRequiredError):
        body["details"] = {**body["details"], "redirect": settings.CREDENTIAL_CHANGE_PATH}
    return body


async def warden_error_handler(request: Request, exc: WardenError) -> JSONResponse:
    """Exception handler registered for every WardenError."""
    status_code = status_for_error(exc)
    if is_security_relevant(exc):
        logger.warning("Tenant isolation violation on %s %s: %s", request.method, request.url.path, exc)
    elif status_code >= 500:
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": error_body(exc)})


# Status codes for denied decisions surfaced by route guards
_STATUS_BY_DECISION = {
    DecisionCode.PRINCIPAL_NOT_FOUND: status.HTTP_401_UNAUTHORIZED,
    DecisionCode.TENANT_MISMATCH: status.HTTP_403_FORBIDDEN,
    DecisionCode.PRINCIPAL_INACTIVE: status.HTTP_403_FORBIDDEN,
    DecisionCode.CREDENTIAL_CHANGE_REQUIRED: status.HTTP_403_FORBIDDEN,
    DecisionCode.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    DecisionCode.CATEGORY_DENIED: status.HTTP_403_FORBIDDEN,
    DecisionCode.LOOKUP_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
}

_DECISION_MESSAGES = {
    DecisionCode.PRINCIPAL_NOT_FOUND: "Principal not found",
    DecisionCode.TENANT_MISMATCH: "Principal does not belong to the claimed tenant",
    DecisionCode.PRINCIPAL_INACTIVE: "Principal is not active",
    DecisionCode.CREDENTIAL_CHANGE_REQUIRED: "Credential must be changed before continuing",
    DecisionCode.PERMISSION_DENIED: "Permission denied",
    DecisionCode.CATEGORY_DENIED: "Configuration category not accessible for this role",
    DecisionCode.LOOKUP_FAILED: "Authorization lookup failed",
}


def decision_http_error(result: AuthorizationResult) -> HTTPException:
    """HTTPException for a denied AuthorizationResult."""
    details = dict(result.details)
    if result.code == DecisionCode.CREDENTIAL_CHANGE_REQUIRED:
        details["redirect"] = settings.CREDENTIAL_CHANGE_PATH
    for key, value in (
        ("module", result.module),
        ("action", result.action),
        ("category", result.category),
    ):
        if value is not None:
            details[key] = value.value

    headers: Optional[dict] = None
    if result.code == DecisionCode.PRINCIPAL_NOT_FOUND:
        headers = {"WWW-Authenticate": "Principal"}

    return HTTPException(
        status_code=_STATUS_BY_DECISION.get(result.code, status.HTTP_403_FORBIDDEN),
        detail={
            "code": result.code.value,
            "message": _DECISION_MESSAGES.get(result.code, "Access denied"),
            "details": details,
        },
        headers=headers,
    )
