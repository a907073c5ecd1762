"""
Administration models for Balzac.

Defines Administrator, AdminPrivilege, AdminLog and SiteConfiguration
for the back-office features.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum
import json

from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text,
    ForeignKey, Index, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from balzac.core.database import Base


class Capability(str, Enum):
    """Feature areas a regular administrator may be granted."""
    MANAGE_QUESTIONS = "manage_questions"
    MANAGE_HOMEPAGE = "manage_homepage"
    MANAGE_LEVELS = "manage_levels"
    MANAGE_PLANNING = "manage_planning"
    MANAGE_TEST_SETTINGS = "manage_test_settings"
    VIEW_FINANCE = "view_finance"

    @property
    def label(self) -> str:
        return _CAPABILITY_LABELS[self]


_CAPABILITY_LABELS = {
    Capability.MANAGE_QUESTIONS: "Gestion des questions",
    Capability.MANAGE_HOMEPAGE: "Gestion de la page d'accueil",
    Capability.MANAGE_LEVELS: "Gestion des niveaux et tarifs",
    Capability.MANAGE_PLANNING: "Gestion de la planification",
    Capability.MANAGE_TEST_SETTINGS: "Paramètres des tests",
    Capability.VIEW_FINANCE: "Consultation des finances",
}


class AdminAction(str, Enum):
    """Types of admin actions to log."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    INVITE = "invite"
    RESET_PASSWORD = "reset_password"
    SETTINGS_CHANGE = "settings_change"
    PRIVILEGE_CHANGE = "privilege_change"
    USER_MANAGEMENT = "user_management"
    BULK_OPERATION = "bulk_operation"


class Administrator(Base):
    """
    Marks a user as administrator; super admins hold every capability.
    """
    __tablename__ = "administrators"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    is_super_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    user = relationship("User", back_populates="administrator")

    def __repr__(self) -> str:
        return f"<Administrator(user_id={self.user_id}, super={self.is_super_admin})>"


class AdminPrivilege(Base):
    """
    Capability flag shared by every non-super administrator.
    """
    __tablename__ = "admin_privileges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    capability: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<AdminPrivilege(capability='{self.capability}', enabled={self.is_enabled})>"


class AdminLog(Base):
    """
    Audit log for admin actions.
    """
    __tablename__ = "admin_logs"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Admin who performed the action
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)  # user, question, level, promo_code...
    entity_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # Supports IPv6

    success: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    user = relationship("User", back_populates="admin_logs")

    __table_args__ = (
        Index("idx_admin_log_user_action", "user_id", "action"),
        Index("idx_admin_log_entity", "entity_type", "entity_id"),
        Index("idx_admin_log_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog(id={self.id}, user_id={self.user_id}, action='{self.action}', entity='{self.entity_type}')>"

    @classmethod
    def log_action(
        cls,
        user_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None
    ) -> "AdminLog":
        """Factory method to create admin log entries."""
        return cls(
            user_id=user_id,
            action=action.value if isinstance(action, AdminAction) else action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details or {},
            ip_address=ip_address,
            success=success,
            error_message=error_message
        )


class SiteConfiguration(Base):
    """
    Site-wide key/value settings editable from the back office.

    Code reads them through ``balzac.services.site_settings.SiteSettings``,
    never by key.
    """
    __tablename__ = "site_configuration"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    value_type: Mapped[str] = mapped_column(String(20), nullable=False)  # string, integer, boolean, json

    category: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    validation_rules: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    last_modified_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("idx_site_configuration_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<SiteConfiguration(key='{self.key}', value='{self.value}')>"

    def get_typed_value(self) -> Any:
        """Get the value converted to its declared type."""
        if self.value_type == "integer":
            return int(self.value)
        elif self.value_type == "boolean":
            return self.value.lower() in ("true", "1", "yes", "on")
        elif self.value_type == "json":
            return json.loads(self.value)
        return self.value

    def set_typed_value(self, value: Any) -> None:
        """
        Store ``value`` after checking it against the declared type and rules.

        Raises:
            ValueError: If the value does not fit the setting
        """
        if self.value_type == "integer":
            if isinstance(value, bool):
                raise ValueError("valeur entière attendue")
            number = int(value)
            rules = self.validation_rules or {}
            if "min" in rules and number < rules["min"]:
                raise ValueError(f"valeur minimale: {rules['min']}")
            if "max" in rules and number > rules["max"]:
                raise ValueError(f"valeur maximale: {rules['max']}")
            self.value = str(number)
        elif self.value_type == "boolean":
            if isinstance(value, str):
                value = value.lower() in ("true", "1", "yes", "on")
            self.value = "true" if value else "false"
        elif self.value_type == "json":
            self.value = json.dumps(value)
        else:
            self.value = str(value)

    @classmethod
    def get_default_settings(cls) -> List[Dict[str, Any]]:
        """Rows seeded on first start."""
        return [
            {
                "key": "questions_percentage_per_level",
                "value": "20",
                "value_type": "integer",
                "category": "tests",
                "description": "Pourcentage des questions d'un niveau servies par session",
                "is_public": True,
                "validation_rules": {"min": 1, "max": 100}
            },
            {
                "key": "questions_per_test",
                "value": "20",
                "value_type": "integer",
                "category": "tests",
                "description": "Nombre de questions par test",
                "is_public": True,
                "validation_rules": {"min": 1, "max": 200}
            },
            {
                "key": "anti_cheat_enabled",
                "value": "true",
                "value_type": "boolean",
                "category": "tests",
                "description": "Activer la détection de changement d'onglet pendant les tests",
                "is_public": True,
            },
            {
                "key": "anti_cheat_max_warnings",
                "value": "3",
                "value_type": "integer",
                "category": "tests",
                "description": "Nombre d'avertissements avant l'arrêt du test",
                "is_public": True,
                "validation_rules": {"min": 1, "max": 10}
            },
            {
                "key": "site_name",
                "value": "Balzac Certification",
                "value_type": "string",
                "category": "general",
                "description": "Nom de la plateforme",
                "is_public": True,
            },
            {
                "key": "footer_text",
                "value": "© Balzac Certification. Tous droits réservés.",
                "value_type": "string",
                "category": "general",
                "description": "Texte du pied de page",
                "is_public": True,
            },
        ]
