#!/usr/bin/env python3
"""
Script para crear un usuario administrador (o funcionario) y emitir un token
JWT de prueba firmado con `JWT_SECRET`.

Ejecutar:
    python tools/create_admin.py admin@chia.gov.co "Nombre Apellido" [admin|funcionario]
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import jwt

from portal_core.config import get_settings
from portal_core.db.database import get_db_session, init_db
from portal_core.db.helpers import create_user, get_user_by_email
from portal_core.db.permissions import get_role_permissions, set_user_role


def create_admin(email: str, nombre: str, rol: str = "admin") -> str:
    """Crea (o promueve) el usuario y devuelve un token válido por 12 horas."""
    settings = get_settings()
    init_db()
    with get_db_session() as session:
        user = get_user_by_email(session, email)
        if user:
            print(f"⚠️  El usuario {email} ya existe, se actualiza el rol a '{rol}'")
            user = set_user_role(session, user.id, rol)
        else:
            user = create_user(session, email=email, nombre=nombre, rol=rol)
            print(f"✅ Usuario creado: {user.email} ({user.rol})")
        user_id = user.id

    payload = {
        "sub": user_id,
        "email": email,
        "role": rol,
        "exp": datetime.utcnow() + timedelta(hours=12),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def main():
    if len(sys.argv) < 3:
        print("Uso: python tools/create_admin.py <email> <nombre> [admin|funcionario]")
        sys.exit(1)
    email, nombre = sys.argv[1], sys.argv[2]
    rol = sys.argv[3] if len(sys.argv) > 3 else "admin"

    try:
        token = create_admin(email, nombre, rol)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    print()
    print(f"🔑 Permisos: {', '.join(get_role_permissions(rol))}")
    print("🔑 Token (Authorization: Bearer ...):")
    print(token)


if __name__ == "__main__":
    main()
