"""Permission catalog: the global, append-only set of named capabilities."""

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from worklane.models.enums import PermissionCategory
from worklane.models.permission import Permission
from worklane.rbac.errors import DuplicateNameError, InvalidCategoryError, NotFoundError, UnknownPermissionError
from worklane.rbac.perms import PERMISSION_DEFINITIONS, permission_name

logger = logging.getLogger(__name__)

def _category(category: PermissionCategory | str) -> PermissionCategory:
    try:
        return PermissionCategory(category)
    except ValueError:
        raise InvalidCategoryError(category) from None

def define_permission(
    db: Session,
    name: str,
    description: str | None,
    category: PermissionCategory | str,
) -> Permission:
    cat = _category(category)
    name = name.strip()

    if db.scalar(select(Permission.id).where(Permission.name == name)) is not None:
        raise DuplicateNameError(name)

    p = Permission(name=name, description=description, category=cat)
    db.add(p)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateNameError(name) from None
    db.refresh(p)
    logger.info("defined permission %s (%s)", p.name, p.category.value)
    return p

def list_by_category(db: Session, category: PermissionCategory | str) -> list[Permission]:
    cat = _category(category)
    q = select(Permission).where(Permission.category == cat).order_by(Permission.name.asc())
    return list(db.scalars(q).all())

def list_permissions(db: Session) -> list[Permission]:
    q = select(Permission).order_by(Permission.category.asc(), Permission.name.asc())
    return list(db.scalars(q).all())

def get_permission(db: Session, name: str) -> Permission:
    p = db.scalar(select(Permission).where(Permission.name == permission_name(name)))
    if p is None:
        raise NotFoundError("permission", name)
    return p

def resolve_permission_names(db: Session, names: Iterable[str]) -> list[Permission]:
    """Load catalog rows for ``names``, rejecting the whole call on any unknown name.

    Duplicates in the input collapse to one row; the result is ordered by name.
    """
    wanted = {permission_name(n) for n in names}
    if not wanted:
        return []

    rows = db.scalars(select(Permission).where(Permission.name.in_(wanted))).all()
    found = {p.name for p in rows}
    missing = wanted - found
    if missing:
        raise UnknownPermissionError(missing)
    return sorted(rows, key=lambda p: p.name)

def ensure_default_catalog(db: Session) -> list[Permission]:
    """Upsert the built-in permissions by name. Safe to run on every start."""
    existing = {p.name: p for p in db.scalars(select(Permission)).all()}
    created = 0

    for perm, (category, description) in PERMISSION_DEFINITIONS.items():
        p = existing.get(perm.value)
        if p is None:
            p = Permission(name=perm.value, description=description, category=category)
            db.add(p)
            existing[perm.value] = p
            created += 1
        else:
            p.description = description
            p.category = category

    db.commit()
    if created:
        logger.info("registered %d default permissions", created)
    return [existing[p.value] for p in PERMISSION_DEFINITIONS]
