from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.models.account import AccountRole
from app.services.tokens import AccessClaims, TokenExpiredError, TokenError, TokenIssuer

http_bearer = HTTPBearer(auto_error=False)


def get_token_issuer() -> TokenIssuer:
    return TokenIssuer()


def get_access_claims(
    credentials: HTTPAuthorizationCredentials = Depends(http_bearer),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> AccessClaims:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided"
        )
    try:
        return tokens.decode_access_token(credentials.credentials)
    except TokenExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired"
        )
    except TokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )


def require_face_challenge(claims: AccessClaims = Depends(get_access_claims)) -> AccessClaims:
    """Only a token minted after the password step may be exchanged for a session."""
    if not claims.requires_face_verification:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Face verification token required",
        )
    return claims


def require_pending_profile(claims: AccessClaims = Depends(get_access_claims)) -> AccessClaims:
    if claims.requires_face_verification or claims.profile_completed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Profile already completed"
        )
    return claims


def require_session(claims: AccessClaims = Depends(get_access_claims)) -> AccessClaims:
    """A full-session token: password and face both cleared."""
    if claims.requires_face_verification:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Face verification required"
        )
    if not claims.profile_completed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Profile not completed"
        )
    return claims


def require_admin(claims: AccessClaims = Depends(require_session)) -> AccessClaims:
    if claims.role != AccountRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    return claims
