"""
Permisos por rol.

Los roles son fijos (ciudadano, funcionario, admin) y cada uno tiene un
conjunto de permisos con nombre `<recurso>.<acción>`. Las rutas HTTP piden
permisos, no roles.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from .models import USER_ROLES, User

# Permisos de lectura pública (catálogo, búsqueda, chat, radicar PQRS) no se listan:
# no requieren autenticación.
ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "ciudadano": frozenset(),
    "funcionario": frozenset({
        "catalog.write",
        "faqs.write",
        "pqrs.read",
        "pqrs.update",
        "import.run",
        "knowledge.reindex",
    }),
    "admin": frozenset({
        "catalog.write",
        "faqs.write",
        "organization.delete",
        "pqrs.read",
        "pqrs.update",
        "pqrs.delete",
        "import.run",
        "knowledge.reindex",
    }),
}


def get_role_permissions(role: str) -> list[str]:
    """Permisos de un rol, ordenados. Rol desconocido -> lista vacía."""
    return sorted(ROLE_PERMISSIONS.get(role, frozenset()))


def role_has_permission(role: str, permission_name: str) -> bool:
    return permission_name in ROLE_PERMISSIONS.get(role, frozenset())


def set_user_role(session: Session, user_id: str, role: str) -> User:
    """
    Cambia el rol de un usuario.

    Raises:
        ValueError: Si el usuario no existe o el rol es inválido
    """
    if role not in USER_ROLES:
        raise ValueError(f"Rol inválido: {role}. Opciones: {', '.join(USER_ROLES)}")
    user = session.query(User).filter_by(id=user_id).first()
    if not user:
        raise ValueError(f"Usuario {user_id} no encontrado")
    user.rol = role
    return user
