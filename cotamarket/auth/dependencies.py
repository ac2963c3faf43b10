from fastapi import Request, HTTPException, Depends, status
from sqlalchemy.orm import Session
from cotamarket.core.database import get_db
from cotamarket.core.security import decode_access_token
from cotamarket.auth.models import User


def _extract_token(request: Request) -> str:
    """Reads the bearer token from the access_token cookie or the Authorization header."""
    token = request.cookies.get("access_token") or request.headers.get("Authorization")
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    # Token format: "Bearer <token>"
    scheme, _, param = token.partition(" ")
    return param or scheme


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Resolves the acting user for this request.
    The returned user is threaded explicitly into every engine call as the actor.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = decode_access_token(_extract_token(request))
    if not user_id:
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise credentials_exception

    return user


def require_staff(user: User = Depends(get_current_user)) -> User:
    """Blocks access to review and override endpoints for non-staff accounts."""
    if not user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can perform this action"
        )

    return user
