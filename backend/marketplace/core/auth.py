# marketplace/core/auth.py
from typing import Optional
from fastapi import Request, HTTPException, status
from firebase_admin import auth as fb_auth

from marketplace.config import settings, get_firebase_app
from marketplace.schemas.principal import Principal

MOCK_TOKEN_PREFIX = "mock_jwt_token_"


def _extract_bearer_token(request: Request) -> Optional[str]:
    """
    Authorization: Bearer <id_token> başlığından token'ı alır.
    Yoksa None döner.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _decode_id_token(id_token: str) -> dict:
    """
    Firebase ID token doğrulaması (revocation kontrolü ile).
    Mock token'lar yalnızca ALLOW_MOCK_TOKENS açıkken kabul edilir.
    Geçersiz/iptal/expired durumda 401 döndürür.
    """
    if id_token.startswith(MOCK_TOKEN_PREFIX) and settings.allow_mock_tokens:
        return _decode_mock_token(id_token)

    try:
        app = get_firebase_app()
        return fb_auth.verify_id_token(id_token, app=app, check_revoked=True)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid Firebase ID token: {exc}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def _decode_mock_token(mock_token: str) -> dict:
    """
    Format: mock_jwt_token_<uid>   (ör. mock_jwt_token_anonymous_1234567890)
    """
    uid = mock_token[len(MOCK_TOKEN_PREFIX):]
    if not uid:
        raise HTTPException(status_code=401, detail="Invalid mock token format")
    return {
        "uid": uid,
        "email": None,
        "name": None,
        "firebase": {
            "sign_in_provider": "anonymous" if "anonymous" in uid else "password"
        },
        "admin": False,  # Mock token'lar admin değil
    }


def _token_to_principal(decoded: dict) -> Principal:
    """
    Token'dan Principal üretir.
    - anonymous provider → role='guest'
    - custom claim admin=True → role='admin'
    - diğerleri → role='user'
    """
    uid = decoded.get("uid") or decoded.get("user_id")
    if not uid:
        raise HTTPException(status_code=401, detail="Token missing uid.")

    provider = (decoded.get("firebase") or {}).get("sign_in_provider")
    if provider == "anonymous":
        role = "guest"
    elif decoded.get("admin") is True:
        role = "admin"
    else:
        role = "user"

    return Principal(
        uid=uid,
        role=role,
        email=decoded.get("email"),
        display_name=decoded.get("name"),
    )


# --------- FastAPI Dependencies --------- #

async def get_principal(request: Request) -> Principal:
    """
    Token zorunlu: doğrular ve Principal döner.
    (guest/user/admin hepsi olabilir)
    """
    token = _extract_bearer_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _token_to_principal(_decode_id_token(token))
