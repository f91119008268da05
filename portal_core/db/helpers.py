"""
Helpers de acceso a datos: paginación, usuarios y jerarquía organizacional.

Convenciones de todos los módulos `portal_core.db.*`:
- Los getters devuelven `None` si la entidad no existe.
- Las operaciones de escritura levantan `ValueError` (mensaje en español)
  ante validaciones fallidas o entidades inexistentes.
- El commit lo hace quien abrió la sesión (`get_db_session`); acá solo
  se hace `flush()` cuando hace falta el id generado.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..text_normalization import matches_all_terms, normalize_text
from .models import FAQ, OPA, PQRS, USER_ROLES, Dependencia, Subdependencia, Tramite, User


# ============================================================
# Paginación
# ============================================================

@dataclass
class Page:
    """Resultado paginado genérico."""

    items: List[Any] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)


def paginate(items: Sequence[Any], page: int = 1, limit: int = 10) -> Page:
    """
    Pagina una lista ya filtrada y ordenada.

    Raises:
        ValueError: Si page o limit son menores a 1
    """
    if page < 1:
        raise ValueError("page debe ser mayor o igual a 1")
    if limit < 1:
        raise ValueError("limit debe ser mayor o igual a 1")
    start = (page - 1) * limit
    return Page(items=list(items[start:start + limit]), total=len(items), page=page, limit=limit)


def apply_updates(obj: Any, data: Dict[str, Any], allowed: Iterable[str]) -> None:
    """Copia en `obj` las claves de `data` permitidas (actualización parcial)."""
    for key in allowed:
        if key in data:
            setattr(obj, key, data[key])


def clean_text_list(values: Iterable[str] | None) -> list[str]:
    """Recorta y descarta elementos vacíos de una lista de textos."""
    return [v.strip() for v in (values or []) if v and v.strip()]


# ============================================================
# Usuarios
# ============================================================

def create_user(session: Session, email: str, nombre: str = "", rol: str = "ciudadano") -> User:
    """
    Crea un usuario local.

    Raises:
        ValueError: Si el rol no es válido o el email ya existe
    """
    if rol not in USER_ROLES:
        raise ValueError(f"Rol inválido: {rol}. Opciones: {', '.join(USER_ROLES)}")
    if get_user_by_email(session, email):
        raise ValueError(f"Ya existe un usuario con email {email}")
    user = User(email=email, nombre=nombre, rol=rol)
    session.add(user)
    session.flush()
    return user


def get_user_by_id(session: Session, user_id: str) -> User | None:
    return session.query(User).filter_by(id=user_id).first()


def get_user_by_email(session: Session, email: str) -> User | None:
    return session.query(User).filter_by(email=email).first()


# ============================================================
# Dependencias
# ============================================================

def _dependencia_counts(session: Session) -> Dict[str, Dict[str, int]]:
    """Conteos de subdependencias, trámites y OPAs por dependencia."""
    counts: Dict[str, Dict[str, int]] = {}

    def bucket(dep_id: str) -> Dict[str, int]:
        return counts.setdefault(dep_id, {"subdependencias_count": 0, "tramites_count": 0, "opas_count": 0})

    for dep_id, total in (
        session.query(Subdependencia.dependencia_id, func.count(Subdependencia.id))
        .group_by(Subdependencia.dependencia_id)
    ):
        bucket(dep_id)["subdependencias_count"] = total

    for model, key in ((Tramite, "tramites_count"), (OPA, "opas_count")):
        rows = (
            session.query(Subdependencia.dependencia_id, func.count(model.id))
            .join(model, model.subdependencia_id == Subdependencia.id)
            .group_by(Subdependencia.dependencia_id)
        )
        for dep_id, total in rows:
            bucket(dep_id)[key] = total

    return counts


def list_dependencias(
    session: Session,
    query: str | None = None,
    activo: bool | None = None,
    page: int = 1,
    limit: int = 50,
) -> Page:
    """
    Lista dependencias ordenadas por código, con conteos asociados.

    Args:
        session: Sesión de base de datos
        query: Texto a buscar en nombre, código o descripción (sin tildes)
        activo: Filtra por estado si se indica
        page: Página (desde 1)
        limit: Tamaño de página

    Returns:
        Page cuyos items son dicts `{"dependencia", "subdependencias_count",
        "tramites_count", "opas_count"}`
    """
    q = session.query(Dependencia)
    if activo is not None:
        q = q.filter(Dependencia.activo == activo)
    dependencias = [
        d for d in q.order_by(Dependencia.codigo).all()
        if matches_all_terms(query, [d.codigo, d.nombre, d.descripcion])
    ]

    result = paginate(dependencias, page, limit)
    counts = _dependencia_counts(session)
    empty = {"subdependencias_count": 0, "tramites_count": 0, "opas_count": 0}
    result.items = [{"dependencia": d, **counts.get(d.id, empty)} for d in result.items]
    return result


def list_active_dependencias(session: Session) -> list[Dependencia]:
    """Dependencias activas ordenadas por nombre (para selects y filtros)."""
    dependencias = session.query(Dependencia).filter(Dependencia.activo.is_(True)).all()
    return sorted(dependencias, key=lambda d: normalize_text(d.nombre))


def get_dependencia(session: Session, dependencia_id: str) -> Dependencia | None:
    return session.query(Dependencia).filter_by(id=dependencia_id).first()


def get_dependencia_by_codigo(session: Session, codigo: str) -> Dependencia | None:
    return session.query(Dependencia).filter_by(codigo=codigo).first()


def get_dependencia_by_nombre(session: Session, nombre: str) -> Dependencia | None:
    """Busca por nombre ignorando tildes y mayúsculas."""
    target = normalize_text(nombre).strip()
    for dep in session.query(Dependencia).all():
        if normalize_text(dep.nombre).strip() == target:
            return dep
    return None


def create_dependencia(
    session: Session,
    codigo: str,
    nombre: str,
    descripcion: str | None = None,
    activo: bool = True,
) -> Dependencia:
    """
    Crea una dependencia.

    Raises:
        ValueError: Si faltan código/nombre o el código ya existe
    """
    codigo = (codigo or "").strip()
    nombre = (nombre or "").strip()
    if not codigo:
        raise ValueError("El código de la dependencia es requerido")
    if not nombre:
        raise ValueError("El nombre de la dependencia es requerido")
    if get_dependencia_by_codigo(session, codigo):
        raise ValueError(f"Ya existe una dependencia con código {codigo}")

    dependencia = Dependencia(codigo=codigo, nombre=nombre, descripcion=descripcion, activo=activo)
    session.add(dependencia)
    session.flush()
    return dependencia


def update_dependencia(session: Session, dependencia_id: str, data: Dict[str, Any]) -> Dependencia:
    """
    Actualiza parcialmente una dependencia.

    Raises:
        ValueError: Si no existe, o si el nuevo código ya está en uso
    """
    dependencia = get_dependencia(session, dependencia_id)
    if not dependencia:
        raise ValueError(f"Dependencia {dependencia_id} no encontrada")

    codigo = data.get("codigo")
    if codigo is not None and codigo != dependencia.codigo:
        other = get_dependencia_by_codigo(session, codigo)
        if other and other.id != dependencia.id:
            raise ValueError(f"Ya existe una dependencia con código {codigo}")
    if "nombre" in data and not (data["nombre"] or "").strip():
        raise ValueError("El nombre de la dependencia es requerido")

    apply_updates(dependencia, data, ("codigo", "nombre", "descripcion", "activo"))
    dependencia.updated_at = datetime.utcnow()
    return dependencia


def delete_dependencia(session: Session, dependencia_id: str) -> bool:
    """
    Elimina una dependencia sin elementos asociados.

    Raises:
        ValueError: Si no existe o tiene subdependencias, FAQs o PQRS
    """
    dependencia = get_dependencia(session, dependencia_id)
    if not dependencia:
        raise ValueError(f"Dependencia {dependencia_id} no encontrada")

    if session.query(Subdependencia).filter_by(dependencia_id=dependencia_id).count():
        raise ValueError("No se puede eliminar la dependencia: tiene subdependencias asociadas")
    if session.query(FAQ).filter_by(dependencia_id=dependencia_id).count():
        raise ValueError("No se puede eliminar la dependencia: tiene FAQs asociadas")
    if session.query(PQRS).filter_by(dependencia_id=dependencia_id).count():
        raise ValueError("No se puede eliminar la dependencia: tiene PQRS asociadas")

    session.delete(dependencia)
    return True


# ============================================================
# Subdependencias
# ============================================================

def list_subdependencias(
    session: Session,
    query: str | None = None,
    dependencia_id: str | None = None,
    activo: bool | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    """
    Lista subdependencias ordenadas por nombre.

    Returns:
        Page cuyos items son dicts `{"subdependencia", "tramites_count", "opas_count"}`
    """
    q = session.query(Subdependencia)
    if dependencia_id:
        q = q.filter(Subdependencia.dependencia_id == dependencia_id)
    if activo is not None:
        q = q.filter(Subdependencia.activo == activo)

    subdependencias = [
        s for s in q.all()
        if matches_all_terms(query, [s.codigo, s.nombre, s.descripcion])
    ]
    subdependencias.sort(key=lambda s: normalize_text(s.nombre))

    result = paginate(subdependencias, page, limit)
    ids = [s.id for s in result.items]
    tramites = dict(
        session.query(Tramite.subdependencia_id, func.count(Tramite.id))
        .filter(Tramite.subdependencia_id.in_(ids))
        .group_by(Tramite.subdependencia_id)
        .all()
    )
    opas = dict(
        session.query(OPA.subdependencia_id, func.count(OPA.id))
        .filter(OPA.subdependencia_id.in_(ids))
        .group_by(OPA.subdependencia_id)
        .all()
    )
    result.items = [
        {"subdependencia": s, "tramites_count": tramites.get(s.id, 0), "opas_count": opas.get(s.id, 0)}
        for s in result.items
    ]
    return result


def get_subdependencia(session: Session, subdependencia_id: str) -> Subdependencia | None:
    return session.query(Subdependencia).filter_by(id=subdependencia_id).first()


def create_subdependencia(
    session: Session,
    dependencia_id: str,
    codigo: str,
    nombre: str,
    descripcion: str | None = None,
    activo: bool = True,
) -> Subdependencia:
    """
    Crea una subdependencia dentro de una dependencia existente.

    Raises:
        ValueError: Si la dependencia no existe, faltan datos o el código se repite
    """
    if not get_dependencia(session, dependencia_id):
        raise ValueError(f"Dependencia {dependencia_id} no encontrada")
    codigo = (codigo or "").strip()
    nombre = (nombre or "").strip()
    if not codigo:
        raise ValueError("El código de la subdependencia es requerido")
    if not nombre:
        raise ValueError("El nombre de la subdependencia es requerido")
    exists = session.query(Subdependencia).filter_by(dependencia_id=dependencia_id, codigo=codigo).first()
    if exists:
        raise ValueError(f"Ya existe una subdependencia con código {codigo} en esta dependencia")

    subdependencia = Subdependencia(
        dependencia_id=dependencia_id,
        codigo=codigo,
        nombre=nombre,
        descripcion=descripcion,
        activo=activo,
    )
    session.add(subdependencia)
    session.flush()
    return subdependencia


def update_subdependencia(session: Session, subdependencia_id: str, data: Dict[str, Any]) -> Subdependencia:
    """
    Actualiza parcialmente una subdependencia.

    Raises:
        ValueError: Si no existe, la nueva dependencia no existe o el código
            se repite dentro de la dependencia destino
    """
    subdependencia = get_subdependencia(session, subdependencia_id)
    if not subdependencia:
        raise ValueError(f"Subdependencia {subdependencia_id} no encontrada")

    dependencia_id = data.get("dependencia_id")
    if dependencia_id and not get_dependencia(session, dependencia_id):
        raise ValueError(f"Dependencia {dependencia_id} no encontrada")
    if "nombre" in data and not (data["nombre"] or "").strip():
        raise ValueError("El nombre de la subdependencia es requerido")
    if "codigo" in data and not (data["codigo"] or "").strip():
        raise ValueError("El código de la subdependencia es requerido")

    target_dependencia = dependencia_id or subdependencia.dependencia_id
    target_codigo = (data.get("codigo") or subdependencia.codigo).strip()
    other = (
        session.query(Subdependencia)
        .filter_by(dependencia_id=target_dependencia, codigo=target_codigo)
        .first()
    )
    if other and other.id != subdependencia.id:
        raise ValueError(f"Ya existe una subdependencia con código {target_codigo} en esta dependencia")
    if "codigo" in data:
        data = {**data, "codigo": target_codigo}

    apply_updates(subdependencia, data, ("codigo", "nombre", "descripcion", "dependencia_id", "activo"))
    subdependencia.updated_at = datetime.utcnow()
    return subdependencia


def delete_subdependencia(session: Session, subdependencia_id: str) -> bool:
    """
    Elimina una subdependencia sin servicios ni FAQs asociados.

    Raises:
        ValueError: Si no existe o tiene trámites, OPAs o FAQs
    """
    subdependencia = get_subdependencia(session, subdependencia_id)
    if not subdependencia:
        raise ValueError(f"Subdependencia {subdependencia_id} no encontrada")

    if session.query(Tramite).filter_by(subdependencia_id=subdependencia_id).count():
        raise ValueError("No se puede eliminar la subdependencia: tiene trámites asociados")
    if session.query(OPA).filter_by(subdependencia_id=subdependencia_id).count():
        raise ValueError("No se puede eliminar la subdependencia: tiene OPAs asociadas")
    if session.query(FAQ).filter_by(subdependencia_id=subdependencia_id).count():
        raise ValueError("No se puede eliminar la subdependencia: tiene FAQs asociadas")

    session.delete(subdependencia)
    return True
