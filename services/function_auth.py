"""
Caller checks for the function endpoints.

Function calls carry the shared webhook secret as a bearer token. The
replace-all imports additionally require an admin end user, checked by the
admin_mutation_guard RPC run with that user's JWT.
"""

import hmac
from typing import Optional

import structlog

from config import get_user_client
from config.settings import settings
from exceptions import AdminRequiredError, WebhookAuthError

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "
ADMIN_GUARD_RPC = "admin_mutation_guard"


def _bearer_token(header: Optional[str]) -> Optional[str]:
    raw = (header or "").strip()
    if not raw.startswith(BEARER_PREFIX):
        return None
    return raw[len(BEARER_PREFIX):].strip()


def verify_webhook_secret(authorization: Optional[str]) -> None:
    """
    Check the shared secret of a function call.

    Raises:
        WebhookAuthError: If the secret is not configured, the header is
            missing or malformed, the token is empty or does not match
    """
    if not settings.webhook_configured:
        logger.error("webhook_secret_not_configured")
        raise WebhookAuthError("EDGE_WEBHOOK_SECRET is not configured")

    raw = authorization or ""
    if not raw.startswith(BEARER_PREFIX):
        raise WebhookAuthError("Missing or malformed Authorization header")

    token = _bearer_token(raw)
    if not token:
        raise WebhookAuthError("Authorization header contains empty token")

    if not hmac.compare_digest(token.encode(), settings.edge_webhook_secret.encode()):
        logger.warning("webhook_secret_mismatch")
        raise WebhookAuthError("Invalid webhook secret")


def ensure_admin(user_authorization: Optional[str]) -> None:
    """
    Check that the end user behind a call is an admin.

    Args:
        user_authorization: "Bearer <user JWT>" header value

    Raises:
        AdminRequiredError: If the header is missing or the guard RPC refuses
    """
    token = _bearer_token(user_authorization)
    if not token:
        raise AdminRequiredError("Missing user Authorization header")

    try:
        get_user_client(token).rpc(ADMIN_GUARD_RPC, {}).execute()
    except Exception as e:
        logger.warning("admin_guard_rejected", error=str(e))
        raise AdminRequiredError()
