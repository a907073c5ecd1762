"""
Administrator capability checks.

Super administrators hold every capability; other administrators hold
the capabilities whose flag is enabled. The enabled flags are cached until
a change is published on the event channel.
"""

from typing import Any, Dict, FrozenSet, List, Optional
import threading
import logging

from sqlalchemy.orm import Session

from balzac.core.events import events, ADMIN_PRIVILEGES_CHANGED
from balzac.core.exceptions import NotFoundError
from balzac.models.admin import Administrator, AdminPrivilege, Capability

logger = logging.getLogger(__name__)

_enabled: Optional[FrozenSet[str]] = None
_cache_lock = threading.Lock()


def enabled_capabilities(db: Session) -> FrozenSet[str]:
    global _enabled
    with _cache_lock:
        if _enabled is None:
            _enabled = frozenset(
                row.capability
                for row in db.query(AdminPrivilege).filter(AdminPrivilege.is_enabled.is_(True))
            )
        return _enabled


def invalidate_capabilities(topic: Optional[str] = None, payload: Optional[Dict[str, Any]] = None) -> None:
    global _enabled
    with _cache_lock:
        _enabled = None
    logger.debug("Capability cache invalidated")


events.subscribe(ADMIN_PRIVILEGES_CHANGED, invalidate_capabilities)


def has_capability(db: Session, administrator: Optional[Administrator], capability: Capability) -> bool:
    if administrator is None:
        return False
    if administrator.is_super_admin:
        return True
    return capability.value in enabled_capabilities(db)


def capabilities_of(db: Session, administrator: Administrator) -> Dict[str, bool]:
    """Capability -> granted map for one administrator."""
    if administrator.is_super_admin:
        return {capability.value: True for capability in Capability}

    enabled = enabled_capabilities(db)
    return {capability.value: capability.value in enabled for capability in Capability}


def list_privileges(db: Session) -> List[AdminPrivilege]:
    return db.query(AdminPrivilege).order_by(AdminPrivilege.label).all()


def set_privilege(db: Session, capability: Capability, is_enabled: bool) -> AdminPrivilege:
    privilege = db.query(AdminPrivilege).filter(
        AdminPrivilege.capability == capability.value
    ).first()
    if not privilege:
        raise NotFoundError("Privilège introuvable")

    privilege.is_enabled = is_enabled
    db.commit()
    db.refresh(privilege)

    events.publish(ADMIN_PRIVILEGES_CHANGED, {
        "capability": capability.value,
        "is_enabled": is_enabled
    })
    logger.info(f"Privilege {capability.value} {'enabled' if is_enabled else 'disabled'}")
    return privilege
