"""
JWT Parser - Read the authenticated user from a ToolLink access token

The backend issues access tokens whose payload carries the user's role and
identity. The client only reads these claims to decide what to show; the
backend verifies the signature on every request, so verification here is
optional.
"""

from typing import Any, Dict, Iterable, Optional

import jwt

from toollink.utils.logging import get_logger

logger = get_logger(__name__)

ID_CLAIMS = ('id', 'userId', 'user_id', 'sub')


class TokenDecodeError(Exception):
    """Raised when an access token cannot be decoded."""
    pass


def decode_token(
    token: str,
    secret: Optional[str] = None,
    algorithms: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """
    Decode a JWT into its claims.

    Args:
        token: Encoded JWT
        secret: Signing key. When omitted the signature is not verified.
        algorithms: Accepted algorithms when verifying (default HS256)

    Returns:
        Claims dictionary

    Raises:
        TokenDecodeError: If the token is malformed, expired or badly signed
    """
    try:
        if secret is None:
            return jwt.decode(token, options={"verify_signature": False})
        return jwt.decode(token, secret, algorithms=list(algorithms or ['HS256']))
    except jwt.PyJWTError as e:
        raise TokenDecodeError(f"Could not decode access token: {e}") from e


def extract_user_claims(claims: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Pull the user fields out of token claims.

    Claims may be flat (``{"role": ..., "id": ...}``) or nest the user
    under a ``user`` key, as the login response does.

    Returns:
        ``{'role', 'id', 'email', 'name'}`` or None when no role is present
    """
    source = claims.get('user') if isinstance(claims.get('user'), dict) else claims

    role = source.get('role')
    if not role:
        logger.debug("Token carries no role claim")
        return None

    user_id = None
    for claim in ID_CLAIMS:
        if source.get(claim) is not None:
            user_id = source[claim]
            break

    return {
        'role': role,
        'id': user_id,
        'email': source.get('email'),
        'name': source.get('name'),
    }
