"""
Dependencias de FastAPI para autenticación y autorización.

Este módulo proporciona dependencias reutilizables para:
- Obtener el usuario actual desde el token JWT (HS256, `JWT_SECRET`)
- Verificar permisos por rol (ver `portal_core.db.permissions`)
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import jwt  # pyjwt
from fastapi import Depends, Header, HTTPException

from portal_core.config import get_settings
from portal_core.db.database import get_db_session
from portal_core.db.helpers import get_user_by_id
from portal_core.db.models import USER_ROLES
from portal_core.db.permissions import role_has_permission

logger = logging.getLogger(__name__)


@dataclass
class CurrentUser:
    """Usuario autenticado de la request."""

    id: str
    email: str
    role: str


def decode_token(token: str) -> dict:
    """
    Decodifica y verifica un JWT emitido para el portal.

    Raises:
        HTTPException: 401 si el token es inválido, vencido o no tiene `sub`
    """
    settings = get_settings()
    try:
        decoded = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.warning("Token vencido")
        raise HTTPException(status_code=401, detail="Token vencido")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Token inválido: {e}")
        raise HTTPException(status_code=401, detail=f"Token inválido: {e}")

    if not decoded.get("sub"):
        logger.warning(f"Token sin 'sub'. Campos disponibles: {list(decoded.keys())}")
        raise HTTPException(status_code=401, detail="Token inválido: no contiene id de usuario")
    return decoded


def _user_from_token(token: str) -> CurrentUser:
    decoded = decode_token(token)
    user_id = decoded["sub"]
    email = decoded.get("email") or ""
    role = decoded.get("role") or "ciudadano"

    # el rol guardado en la base prevalece sobre el del token
    with get_db_session() as session:
        local_user = get_user_by_id(session, user_id)
        if local_user:
            if not local_user.activo:
                raise HTTPException(status_code=403, detail="Usuario inactivo")
            email = local_user.email
            role = local_user.rol

    if role not in USER_ROLES:
        logger.warning(f"Rol desconocido en token: {role}")
        role = "ciudadano"
    return CurrentUser(id=user_id, email=email, role=role)


def _bearer_token(authorization: str) -> str:
    if not authorization.startswith("Bearer "):
        logger.warning(f"Authorization header no tiene formato Bearer: {authorization[:20]}...")
        raise HTTPException(
            status_code=401,
            detail="Invalid Authorization header format. Expected 'Bearer <token>'",
        )
    return authorization.replace("Bearer ", "", 1).strip()


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> CurrentUser:
    """
    Obtiene el usuario actual desde el header `Authorization: Bearer <jwt>`.

    Raises:
        HTTPException: 401 si falta el header o el token es inválido
    """
    if not authorization:
        logger.warning("Authorization header no presente")
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    return _user_from_token(_bearer_token(authorization))


async def get_optional_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Optional[CurrentUser]:
    """Como `get_current_user`, pero devuelve None si la request es anónima."""
    if not authorization:
        return None
    return _user_from_token(_bearer_token(authorization))


def require_permission(permission_name: str) -> Callable:
    """
    Crea una dependencia que exige un permiso del rol del usuario actual.

    >>> @router.post("", dependencies=[Depends(require_permission("catalog.write"))])
    """

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not role_has_permission(user.role, permission_name):
            logger.info(f"Permiso '{permission_name}' denegado a {user.email or user.id} ({user.role})")
            raise HTTPException(status_code=403, detail=f"Permission '{permission_name}' required")
        return user

    return _check
