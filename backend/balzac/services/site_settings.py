"""
Typed access to the site configuration rows.

The rows are read once into an immutable ``SiteSettings`` object which is
cached until an admin change is published on the event channel.
"""

from dataclasses import dataclass, fields, asdict
from typing import Any, Dict, Iterable, Optional
import threading
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from balzac.core.database import get_db
from balzac.core.events import events, SITE_CONFIGURATION_CHANGED
from balzac.core.exceptions import NotFoundError, ValidationFailed
from balzac.models.admin import SiteConfiguration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiteSettings:
    """Site-wide settings with their defaults."""
    questions_percentage_per_level: int = 20
    questions_per_test: int = 20
    anti_cheat_enabled: bool = True
    anti_cheat_max_warnings: int = 3
    site_name: str = "Balzac Certification"
    footer_text: str = "© Balzac Certification. Tous droits réservés."

    @classmethod
    def from_rows(cls, rows: Iterable[SiteConfiguration]) -> "SiteSettings":
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for row in rows:
            if row.key not in known:
                continue
            try:
                values[row.key] = row.get_typed_value()
            except (TypeError, ValueError):
                logger.error(f"Invalid value for setting {row.key}: {row.value!r}, using default")
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_cached: Optional[SiteSettings] = None
_cache_lock = threading.Lock()


def load_site_settings(db: Session) -> SiteSettings:
    """Return the cached settings, reading the rows on first use."""
    global _cached
    with _cache_lock:
        if _cached is None:
            _cached = SiteSettings.from_rows(db.query(SiteConfiguration).all())
        return _cached


def invalidate_site_settings(topic: Optional[str] = None, payload: Optional[Dict[str, Any]] = None) -> None:
    global _cached
    with _cache_lock:
        _cached = None
    logger.debug("Site settings cache invalidated")


events.subscribe(SITE_CONFIGURATION_CHANGED, invalidate_site_settings)


def get_site_settings(db: Session = Depends(get_db)) -> SiteSettings:
    """FastAPI dependency returning the typed site settings."""
    return load_site_settings(db)


def list_configuration(db: Session, public_only: bool = False):
    query = db.query(SiteConfiguration)
    if public_only:
        query = query.filter(SiteConfiguration.is_public.is_(True))
    return query.order_by(SiteConfiguration.category, SiteConfiguration.key).all()


def update_setting(db: Session, key: str, value: Any, modified_by: Optional[int] = None) -> SiteConfiguration:
    """
    Change one setting and notify subscribers.

    Raises:
        NotFoundError: Unknown key
        ValidationFailed: Value rejected by the setting's type or rules
    """
    row = db.query(SiteConfiguration).filter(SiteConfiguration.key == key).first()
    if not row:
        raise NotFoundError("Paramètre introuvable")

    try:
        row.set_typed_value(value)
    except (TypeError, ValueError) as e:
        raise ValidationFailed(f"Valeur invalide pour {key}: {e}")

    row.last_modified_by = modified_by
    db.commit()
    db.refresh(row)

    events.publish(SITE_CONFIGURATION_CHANGED, {"key": key, "value": row.value})
    logger.info(f"Setting {key} updated to {row.value}")
    return row
