import requests
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Dict

from . import config
from .database import get_db
from .models import User

# Security scheme for Bearer token
security = HTTPBearer()


def fetch_identity(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Dict:
    """Resolve the bearer token to an identity through the user-service."""
    token = credentials.credentials

    try:
        response = requests.get(
            f"{config.USER_SERVICE_URL}/users/me",
            headers={"Authorization": f"Bearer {token}"},
            timeout=config.AUTH_TIMEOUT_SECONDS,
        )
    except requests.exceptions.RequestException as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"User service is unavailable: {str(e)}"
        )

    if response.status_code == 200:
        user_data = response.json()
        return {
            "id": int(user_data["id"]),
            "username": user_data["username"],
            "full_name": user_data.get("full_name"),
            "is_admin": bool(user_data.get("is_admin", False)),
            "is_verified_seller": bool(user_data.get("is_verified_seller", False)),
        }
    if response.status_code == 401:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    raise HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Failed to get user from user service: {response.text}"
    )


def sync_user(db: Session, identity: Dict) -> User:
    """Upsert the local user row so roles are visible to the dispatcher."""
    user = db.query(User).filter(User.id == identity["id"]).first()
    if user is None:
        user = User(id=identity["id"])
        db.add(user)
    user.username = identity["username"]
    if identity.get("full_name"):
        user.full_name = identity["full_name"]
    user.is_admin = bool(identity.get("is_admin", False))
    user.is_verified_seller = bool(identity.get("is_verified_seller", False))
    db.commit()
    db.refresh(user)
    return user


def get_current_user(
    identity: Dict = Depends(fetch_identity),
    db: Session = Depends(get_db),
) -> Dict:
    sync_user(db, identity)
    return identity


def get_current_admin(current_user: Dict = Depends(get_current_user)) -> Dict:
    if not current_user.get("is_admin", False):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions. Admin access required."
        )
    return current_user


def get_current_seller(current_user: Dict = Depends(get_current_user)) -> Dict:
    if not (current_user.get("is_verified_seller") or current_user.get("is_admin")):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Verified seller access required."
        )
    return current_user
