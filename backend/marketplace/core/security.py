"""
marketplace/core/security.py - Role checks layered on top of `get_principal`.

Use with `Depends(...)`: checkout requires a signed-in (non-guest) user, the
request log requires an admin. Order ownership (buyer / seller) is checked in
the order services, not here.
"""
from fastapi import Depends, HTTPException, status

from marketplace.core.auth import get_principal
from marketplace.schemas.principal import Principal


def require_non_guest(principal: Principal = Depends(get_principal)) -> Principal:
    """
    Misafir kullanıcıları (role='guest') 403 ile engeller.
    Checkout gibi aksiyon endpoint'lerinde kullan.
    """
    if principal.role == "guest":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Guest users are not allowed for this action."
        )
    return principal


def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    """
    Sadece admin kullanıcıları kabul eder.
    """
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privilege required."
        )
    return principal
