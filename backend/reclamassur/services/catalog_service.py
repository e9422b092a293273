"""
Catalog Service

Claim-type and letter-type catalogs and the matrix of which letter types are
offered for which claim types.
"""
import logging
from typing import Dict, List, Optional, Type, Union
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.db_models import (
    ProfileDB, SinistreCourrierMappingDB, TypeCourrierDB, TypeSinistreDB
)
from .audit_service import log_admin_action

logger = logging.getLogger(__name__)

CatalogModel = Union[Type[TypeSinistreDB], Type[TypeCourrierDB]]
CATALOG_FIELDS = ("code", "libelle", "description", "actif", "ordre_affichage")


class CatalogService:
    """CRUD over types_sinistres, types_courriers and their mapping."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # GENERIC CATALOG OPERATIONS
    # =========================================================================

    def _list(self, model: CatalogModel, active_only: bool = False) -> list:
        query = self.db.query(model)
        if active_only:
            query = query.filter(model.actif == True)  # noqa: E712
        return query.order_by(model.ordre_affichage.asc(), model.libelle.asc()).all()

    def _get(self, model: CatalogModel, entry_id: str):
        entry = self.db.query(model).filter(model.id == entry_id).first()
        if not entry:
            raise NotFoundError(model.__tablename__, entry_id)
        return entry

    def _create(self, admin: ProfileDB, model: CatalogModel, data: Dict):
        code = (data.get("code") or "").strip()
        libelle = (data.get("libelle") or "").strip()
        if not code or not libelle:
            raise ValidationError("Le code et le libellé sont requis")

        entry = model(
            id=str(uuid4()),
            code=code,
            libelle=libelle,
            description=data.get("description"),
            actif=data.get("actif", True),
            ordre_affichage=data.get("ordre_affichage", 0),
        )
        self.db.add(entry)
        log_admin_action(self.db, admin.id, f"create_{model.__tablename__}", details={"code": code})
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError(f"Le code '{code}' existe déjà") from e
        self.db.refresh(entry)
        return entry

    def _update(self, admin: ProfileDB, model: CatalogModel, entry_id: str, data: Dict):
        entry = self._get(model, entry_id)
        for key in CATALOG_FIELDS:
            if key in data and data[key] is not None:
                setattr(entry, key, data[key])
        log_admin_action(self.db, admin.id, f"update_{model.__tablename__}", details={"id": entry_id})
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError("Code déjà utilisé") from e
        self.db.refresh(entry)
        return entry

    def _delete(self, admin: ProfileDB, model: CatalogModel, entry_id: str, mapping_column) -> None:
        entry = self._get(model, entry_id)
        self.db.query(SinistreCourrierMappingDB).filter(
            mapping_column == entry_id
        ).delete(synchronize_session=False)
        self.db.delete(entry)
        log_admin_action(self.db, admin.id, f"delete_{model.__tablename__}", details={"code": entry.code})
        self.db.commit()

    # =========================================================================
    # CLAIM TYPES
    # =========================================================================

    def list_claim_types(self, active_only: bool = False) -> List[TypeSinistreDB]:
        return self._list(TypeSinistreDB, active_only)

    def create_claim_type(self, admin: ProfileDB, data: Dict) -> TypeSinistreDB:
        return self._create(admin, TypeSinistreDB, data)

    def update_claim_type(self, admin: ProfileDB, entry_id: str, data: Dict) -> TypeSinistreDB:
        return self._update(admin, TypeSinistreDB, entry_id, data)

    def delete_claim_type(self, admin: ProfileDB, entry_id: str) -> None:
        self._delete(admin, TypeSinistreDB, entry_id, SinistreCourrierMappingDB.type_sinistre_id)

    # =========================================================================
    # LETTER TYPES
    # =========================================================================

    def list_letter_types(self, active_only: bool = False) -> List[TypeCourrierDB]:
        return self._list(TypeCourrierDB, active_only)

    def create_letter_type(self, admin: ProfileDB, data: Dict) -> TypeCourrierDB:
        return self._create(admin, TypeCourrierDB, data)

    def update_letter_type(self, admin: ProfileDB, entry_id: str, data: Dict) -> TypeCourrierDB:
        return self._update(admin, TypeCourrierDB, entry_id, data)

    def delete_letter_type(self, admin: ProfileDB, entry_id: str) -> None:
        self._delete(admin, TypeCourrierDB, entry_id, SinistreCourrierMappingDB.type_courrier_id)

    # =========================================================================
    # COMPATIBILITY MAPPING
    # =========================================================================

    def list_mappings(self) -> List[SinistreCourrierMappingDB]:
        return self.db.query(SinistreCourrierMappingDB).order_by(
            SinistreCourrierMappingDB.created_at.desc()
        ).all()

    def set_mapping(self, admin: ProfileDB, type_sinistre_id: str, type_courrier_id: str,
                    actif: bool) -> SinistreCourrierMappingDB:
        """Enable or disable a (claim type, letter type) pair, creating it if needed."""
        self._get(TypeSinistreDB, type_sinistre_id)
        self._get(TypeCourrierDB, type_courrier_id)

        mapping = self.db.query(SinistreCourrierMappingDB).filter(
            SinistreCourrierMappingDB.type_sinistre_id == type_sinistre_id,
            SinistreCourrierMappingDB.type_courrier_id == type_courrier_id,
        ).first()
        if mapping:
            mapping.actif = actif
        else:
            mapping = SinistreCourrierMappingDB(
                id=str(uuid4()),
                type_sinistre_id=type_sinistre_id,
                type_courrier_id=type_courrier_id,
                actif=actif,
            )
            self.db.add(mapping)

        log_admin_action(
            self.db, admin.id, "update_compatibility",
            details={"type_sinistre_id": type_sinistre_id, "type_courrier_id": type_courrier_id, "actif": actif},
        )
        self.db.commit()
        self.db.refresh(mapping)
        return mapping

    def compatible_letter_types(self, claim_code: str) -> List[TypeCourrierDB]:
        """
        Active letter types offered for a claim type.

        Claim types with no mapping rows at all (or unknown codes) get every
        active letter type.
        """
        claim_type: Optional[TypeSinistreDB] = self.db.query(TypeSinistreDB).filter(
            TypeSinistreDB.code == claim_code
        ).first()
        if claim_type is None:
            return self.list_letter_types(active_only=True)

        has_mapping = self.db.query(SinistreCourrierMappingDB).filter(
            SinistreCourrierMappingDB.type_sinistre_id == claim_type.id
        ).first() is not None
        if not has_mapping:
            return self.list_letter_types(active_only=True)

        return self.db.query(TypeCourrierDB).join(
            SinistreCourrierMappingDB,
            SinistreCourrierMappingDB.type_courrier_id == TypeCourrierDB.id,
        ).filter(
            SinistreCourrierMappingDB.type_sinistre_id == claim_type.id,
            SinistreCourrierMappingDB.actif == True,  # noqa: E712
            TypeCourrierDB.actif == True,  # noqa: E712
        ).order_by(TypeCourrierDB.ordre_affichage.asc()).all()
