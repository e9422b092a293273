"""
Courrier and Template Service Tests

Verifies:
1. Letters created from a template carry the rendered dossier values
2. Letters created from generation record their source (ai / fallback)
3. Validation workflow transitions and the fields each status stamps
4. Final-content edits and deletion
5. Template CRUD and required-variable validation
"""

import pytest

from reclamassur.errors import NotFoundError, ValidationError
from reclamassur.models.db_models import (
    AdminAuditLogDB,
    CourrierDB,
    SourceCourrier,
    StatutCourrier,
    TypeCourrier,
)
from reclamassur.models.letters import GenerationResult
from reclamassur.services.courrier_service import CourrierService, can_transition
from reclamassur.services.template_service import TemplateService


TEMPLATE = (
    "{{nom_client}}\n"
    "Objet : contestation du refus du {{date_refus}}\n"
    "Police n° {{numero_police}} - sinistre {{numero_sinistre}}\n"
    "Montant : {{montant_refuse_chiffres}} €"
)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def template_service(db_session):
    return TemplateService(db_session)


@pytest.fixture
def courrier_service(db_session):
    return CourrierService(db_session)


@pytest.fixture
def template(template_service, admin_profile):
    return template_service.create(
        admin_profile,
        nom_modele="Réclamation auto",
        template_content=TEMPLATE,
        type_sinistre="auto",
        type_courrier="reclamation_interne",
    )


@pytest.fixture
def courrier(courrier_service, dossier):
    result = GenerationResult(content="Madame, Monsieur, je conteste.", provider="groq", model="llama3-70b-8192")
    return courrier_service.create_from_generation(dossier.id, TypeCourrier.RECLAMATION_INTERNE, result)


# =============================================================================
# TEMPLATE SERVICE TESTS
# =============================================================================

class TestTemplateService:

    def test_required_variables_default_to_placeholders(self, template):
        assert template.variables_requises == [
            "nom_client", "date_refus", "numero_police", "numero_sinistre", "montant_refuse_chiffres"
        ]

    def test_invalid_variable_name(self, template_service, admin_profile):
        with pytest.raises(ValidationError):
            template_service.create(
                admin_profile, "Modèle", "Texte", "auto", "mediation", variables_requises=["nom client"]
            )

    def test_name_required(self, template_service, admin_profile):
        with pytest.raises(ValidationError):
            template_service.create(admin_profile, "  ", "Texte", "auto", "mediation")

    def test_update_content_refreshes_variables(self, template_service, admin_profile, template):
        updated = template_service.update(admin_profile, template.id, {"template_content": "{{assureur}}"})
        assert updated.variables_requises == ["assureur"]

    def test_available_only_active(self, template_service, admin_profile, template):
        assert [t.id for t in template_service.available_templates("auto", "reclamation_interne")] == [template.id]

        template_service.set_active(admin_profile, template.id, False)
        assert template_service.available_templates("auto", "reclamation_interne") == []

    def test_analyze_against_dossier(self, template_service, template, dossier):
        analysis = template_service.analyze(template.id, dossier.id)

        assert analysis.manual_keys == ["numero_sinistre"]
        assert "nom_client" in analysis.automatic_keys

    def test_render_against_dossier(self, template_service, template, dossier):
        content = template_service.render(template.id, dossier.id, {"numero_sinistre": "S-42"})

        assert content.startswith("Jean Dupont\n")
        assert "Police n° POL-123456 - sinistre S-42" in content
        assert "Montant : 1500.5 €" in content
        assert "{{" not in content

    def test_unknown_dossier(self, template_service, template):
        with pytest.raises(NotFoundError):
            template_service.render(template.id, "inexistant")

    def test_delete_is_audited(self, template_service, admin_profile, template, db_session):
        template_service.delete(admin_profile, template.id)

        with pytest.raises(NotFoundError):
            template_service.get(template.id)
        actions = [e.action for e in db_session.query(AdminAuditLogDB).all()]
        assert "delete_template" in actions


# =============================================================================
# CREATION TESTS
# =============================================================================

class TestCreateCourrier:

    def test_from_template(self, courrier_service, template, dossier):
        courrier = courrier_service.create_from_template(
            dossier.id, template.id, TypeCourrier.RECLAMATION_INTERNE, {"numero_sinistre": "S-42"}
        )

        assert courrier.source == SourceCourrier.TEMPLATE
        assert courrier.template_id == template.id
        assert courrier.statut == StatutCourrier.EN_ATTENTE_VALIDATION
        assert "S-42" in courrier.contenu_genere

    def test_from_ai(self, courrier):
        assert courrier.source == SourceCourrier.AI
        assert courrier.ai_provider == "groq"
        assert courrier.ai_model == "llama3-70b-8192"

    def test_from_fallback(self, courrier_service, dossier):
        result = GenerationResult(content="Lettre de secours", used_fallback=True)
        courrier = courrier_service.create_from_generation(dossier.id, TypeCourrier.MEDIATION, result)

        assert courrier.source == SourceCourrier.FALLBACK
        assert courrier.ai_provider is None

    def test_unknown_dossier(self, courrier_service):
        with pytest.raises(NotFoundError):
            courrier_service.create_from_generation(
                "inexistant", TypeCourrier.MEDIATION, GenerationResult(content="x")
            )


# =============================================================================
# WORKFLOW TESTS
# =============================================================================

class TestWorkflow:

    @pytest.mark.parametrize("current,target,allowed", [
        (StatutCourrier.EN_ATTENTE_VALIDATION, StatutCourrier.VALIDE_PRET_ENVOI, True),
        (StatutCourrier.EN_ATTENTE_VALIDATION, StatutCourrier.ENVOYE, False),
        (StatutCourrier.VALIDE_PRET_ENVOI, StatutCourrier.ENVOYE, True),
        (StatutCourrier.REJETE, StatutCourrier.EN_ATTENTE_VALIDATION, True),
        (StatutCourrier.ENVOYE, StatutCourrier.REJETE, False),
    ])
    def test_transitions(self, current, target, allowed):
        assert can_transition(current, target) is allowed

    def test_validation_stamps_admin(self, courrier_service, courrier, admin_profile):
        updated = courrier_service.update_status(admin_profile, courrier.id, StatutCourrier.VALIDE_PRET_ENVOI)

        assert updated.admin_validateur == admin_profile.id
        assert updated.date_validation is not None
        assert updated.date_envoi is None

    def test_sent_records_dispatch(self, courrier_service, courrier, admin_profile):
        courrier_service.update_status(admin_profile, courrier.id, StatutCourrier.VALIDE_PRET_ENVOI)
        sent = courrier_service.update_status(
            admin_profile, courrier.id, StatutCourrier.ENVOYE,
            numero_suivi="1A23456789012", reference_laposte="LRAR-1", cout_envoi=7.5,
        )

        assert sent.date_envoi is not None
        assert sent.numero_suivi == "1A23456789012"
        assert sent.reference_laposte == "LRAR-1"
        assert sent.cout_envoi == 7.5

    def test_illegal_transition(self, courrier_service, courrier, admin_profile):
        with pytest.raises(ValidationError):
            courrier_service.update_status(admin_profile, courrier.id, StatutCourrier.ENVOYE)

    def test_edit_final_content(self, courrier_service, courrier, admin_profile):
        edited = courrier_service.edit_final_content(admin_profile, courrier.id, "Texte corrigé")

        assert edited.contenu_final == "Texte corrigé"
        assert edited.contenu_genere == "Madame, Monsieur, je conteste."
        assert edited.statut == StatutCourrier.MODIFIE_PRET_ENVOI

    def test_sent_letter_is_frozen(self, courrier_service, courrier, admin_profile):
        courrier_service.update_status(admin_profile, courrier.id, StatutCourrier.VALIDE_PRET_ENVOI)
        courrier_service.update_status(admin_profile, courrier.id, StatutCourrier.ENVOYE)

        with pytest.raises(ValidationError):
            courrier_service.edit_final_content(admin_profile, courrier.id, "Trop tard")

    def test_empty_final_content(self, courrier_service, courrier, admin_profile):
        with pytest.raises(ValidationError):
            courrier_service.edit_final_content(admin_profile, courrier.id, "   ")

    def test_delete(self, courrier_service, courrier, admin_profile, db_session):
        courrier_service.delete(admin_profile, courrier.id)
        assert db_session.query(CourrierDB).count() == 0

    def test_list_filters(self, courrier_service, courrier, dossier):
        assert len(courrier_service.list_courriers(statut=StatutCourrier.EN_ATTENTE_VALIDATION)) == 1
        assert courrier_service.list_courriers(statut=StatutCourrier.ENVOYE) == []
        assert len(courrier_service.list_courriers(dossier_id=dossier.id)) == 1
