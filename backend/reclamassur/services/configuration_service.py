"""
Runtime configuration stored in the `configuration` table, plus the
read-only webhook delivery log.
"""
import json
import logging
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from ..errors import AccessDeniedError, NotFoundError, ValidationError
from ..models.db_models import ConfigType, ConfigurationDB, ProfileDB, WebhookLogDB
from .audit_service import log_admin_action

logger = logging.getLogger(__name__)

TRUE_VALUES = {"true", "1", "yes", "oui"}
FALSE_VALUES = {"false", "0", "no", "non"}


def coerce_value(raw: str, config_type: ConfigType) -> Any:
    """Typed value from the stored text. Raises ValueError on mismatch."""
    if config_type == ConfigType.NUMBER:
        number = float(raw)
        return int(number) if number.is_integer() else number
    if config_type == ConfigType.BOOLEAN:
        lowered = raw.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
        raise ValueError(f"Not a boolean: {raw}")
    if config_type == ConfigType.JSON:
        return json.loads(raw)
    return raw


class ConfigurationService:

    def __init__(self, db: Session):
        self.db = db

    def list_entries(self) -> List[ConfigurationDB]:
        return self.db.query(ConfigurationDB).order_by(ConfigurationDB.cle.asc()).all()

    def get_entry(self, cle: str) -> ConfigurationDB:
        entry = self.db.query(ConfigurationDB).filter(ConfigurationDB.cle == cle).first()
        if not entry:
            raise NotFoundError("Configuration", cle)
        return entry

    def get_value(self, cle: str, default: Any = None) -> Any:
        entry = self.db.query(ConfigurationDB).filter(ConfigurationDB.cle == cle).first()
        if entry is None:
            return default
        try:
            return coerce_value(entry.valeur, entry.type)
        except ValueError as e:
            logger.warning(f"Configuration '{cle}' has an invalid {entry.type.value} value: {e}")
            return default

    def update_value(self, admin: ProfileDB, cle: str, valeur: str) -> ConfigurationDB:
        entry = self.get_entry(cle)
        if not entry.modifiable:
            raise AccessDeniedError(f"La configuration '{cle}' n'est pas modifiable")
        try:
            coerce_value(valeur, entry.type)
        except ValueError as e:
            raise ValidationError(
                f"Valeur invalide pour '{cle}' (type {entry.type.value})",
                details={"error": str(e)},
            ) from e

        previous = entry.valeur
        entry.valeur = valeur
        entry.updated_by = admin.id
        log_admin_action(
            self.db, admin.id, "update_configuration",
            details={"cle": cle, "from": previous, "to": valeur},
        )
        self.db.commit()
        self.db.refresh(entry)
        logger.info(f"Configuration '{cle}' updated by {admin.id}")
        return entry

    def list_webhook_logs(self, status: Optional[str] = None, limit: int = 100) -> List[WebhookLogDB]:
        query = self.db.query(WebhookLogDB)
        if status:
            query = query.filter(WebhookLogDB.status == status)
        return query.order_by(WebhookLogDB.created_at.desc()).limit(limit).all()
