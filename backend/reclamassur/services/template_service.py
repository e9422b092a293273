"""
Template Service

Letter template CRUD and template analysis/rendering against a dossier.
"""
import logging
from datetime import date
from typing import Dict, List, Optional
from uuid import uuid4

import pydantic
from sqlalchemy.orm import Session, joinedload

from ..errors import NotFoundError, ValidationError
from ..models.db_models import DossierDB, ModeleCourrierDB, ProfileDB
from ..models.letters import TemplateAnalysis
from ..models.schemas import TemplateVariables
from .audit_service import log_admin_action
from .templating import analyze_template, build_mapping_for_dossier, extract_variables, render_template

logger = logging.getLogger(__name__)


def validate_required_variables(names: Optional[List[str]], template_content: str) -> List[str]:
    """Checked list of variable names; defaults to the template's placeholders."""
    if names is None:
        names = extract_variables(template_content)
    try:
        return TemplateVariables(names=names).names
    except pydantic.ValidationError as e:
        raise ValidationError("Variables requises invalides", details={"errors": e.errors()}) from e


class TemplateService:
    """Letter templates ("modèles de courriers")."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # CRUD
    # =========================================================================

    def get(self, template_id: str) -> ModeleCourrierDB:
        template = self.db.query(ModeleCourrierDB).filter(ModeleCourrierDB.id == template_id).first()
        if not template:
            raise NotFoundError("Modèle", template_id)
        return template

    def list_templates(self, type_sinistre: Optional[str] = None, type_courrier: Optional[str] = None,
                       actif: Optional[bool] = None) -> List[ModeleCourrierDB]:
        query = self.db.query(ModeleCourrierDB)
        if type_sinistre:
            query = query.filter(ModeleCourrierDB.type_sinistre == type_sinistre)
        if type_courrier:
            query = query.filter(ModeleCourrierDB.type_courrier == type_courrier)
        if actif is not None:
            query = query.filter(ModeleCourrierDB.actif == actif)
        return query.order_by(ModeleCourrierDB.created_at.desc()).all()

    def available_templates(self, type_sinistre: str, type_courrier: str) -> List[ModeleCourrierDB]:
        """Active templates for a claim type / letter type pair, newest first."""
        return self.list_templates(type_sinistre=type_sinistre, type_courrier=type_courrier, actif=True)

    def create(self, admin: ProfileDB, nom_modele: str, template_content: str, type_sinistre: str,
               type_courrier: str, variables_requises: Optional[List[str]] = None,
               actif: bool = True) -> ModeleCourrierDB:
        if not nom_modele or not nom_modele.strip():
            raise ValidationError("Le nom du modèle est requis")
        if not template_content or not template_content.strip():
            raise ValidationError("Le contenu du modèle est requis")

        template = ModeleCourrierDB(
            id=str(uuid4()),
            nom_modele=nom_modele.strip(),
            template_content=template_content,
            type_sinistre=type_sinistre,
            type_courrier=type_courrier,
            variables_requises=validate_required_variables(variables_requises, template_content),
            actif=actif,
            created_by=admin.id,
        )
        self.db.add(template)
        log_admin_action(self.db, admin.id, "create_template", details={"template_id": template.id})
        self.db.commit()
        self.db.refresh(template)
        logger.info(f"Template {template.id} created by {admin.id}")
        return template

    def update(self, admin: ProfileDB, template_id: str, updates: Dict) -> ModeleCourrierDB:
        template = self.get(template_id)
        for key in ("nom_modele", "template_content", "type_sinistre", "type_courrier", "actif"):
            if key in updates and updates[key] is not None:
                setattr(template, key, updates[key])

        if "variables_requises" in updates or "template_content" in updates:
            template.variables_requises = validate_required_variables(
                updates.get("variables_requises"), template.template_content
            )

        log_admin_action(self.db, admin.id, "update_template", details={"template_id": template_id})
        self.db.commit()
        self.db.refresh(template)
        return template

    def set_active(self, admin: ProfileDB, template_id: str, actif: bool) -> ModeleCourrierDB:
        return self.update(admin, template_id, {"actif": actif})

    def delete(self, admin: ProfileDB, template_id: str) -> None:
        template = self.get(template_id)
        self.db.delete(template)
        log_admin_action(self.db, admin.id, "delete_template", details={"template_id": template_id})
        self.db.commit()

    # =========================================================================
    # ANALYZE / RENDER
    # =========================================================================

    def _load_dossier(self, dossier_id: str) -> DossierDB:
        dossier = self.db.query(DossierDB).options(
            joinedload(DossierDB.profile)
        ).filter(DossierDB.id == dossier_id).first()
        if not dossier:
            raise NotFoundError("Dossier", dossier_id)
        return dossier

    def analyze(self, template_id: str, dossier_id: str, today: Optional[date] = None) -> TemplateAnalysis:
        template = self.get(template_id)
        mapping = build_mapping_for_dossier(self.db, self._load_dossier(dossier_id), today=today)
        return analyze_template(template.template_content, mapping)

    def render(self, template_id: str, dossier_id: str, manual_values: Optional[Dict[str, str]] = None,
               today: Optional[date] = None) -> str:
        template = self.get(template_id)
        mapping = build_mapping_for_dossier(self.db, self._load_dossier(dossier_id), today=today)
        return render_template(template.template_content, mapping, manual_values)
