"""
Dossier Service Tests

Verifies:
1. Claim form validation (amount parsing, required fields, dates)
2. Dossier creation defaults and contract-type mapping
3. Client and admin edits (admin edits are audited)
4. Cascade delete of letters, deadlines, documents, payments and stored files
"""

from datetime import date
from uuid import uuid4

import pydantic
import pytest

from reclamassur.errors import AccessDeniedError, NotFoundError, ValidationError
from reclamassur.models.db_models import (
    AdminAuditLogDB,
    CourrierDB,
    DocumentDB,
    DossierDB,
    EcheanceDB,
    PaiementDB,
    StatutDossier,
    TypeCourrier,
    TypeDocument,
    TypeEcheance,
    TypeFacturation,
)
from reclamassur.models.schemas import ClaimSubmission
from reclamassur.services.dossier_service import DEFAULT_INSURER, DEFAULT_POLICY, DossierService, map_contract_type


# =============================================================================
# FIXTURES
# =============================================================================

def claim_form(**overrides):
    form = {
        "contractType": "Assurance Automobile",
        "accidentDate": "2024-01-15",
        "refusalDate": "2024-02-20",
        "claimedAmount": "1500,50",
        "firstName": "Jean",
        "lastName": "Dupont",
        "email": "jean.dupont@example.fr",
        "address": "12 rue des Lilas, 69003 Lyon",
        "phone": "0612345678",
        "refusalReason": "Exclusion de garantie",
        "policyNumber": "POL-123456",
        "insuranceCompany": "AXA France",
    }
    form.update(overrides)
    return form


@pytest.fixture
def service(db_session, storage):
    return DossierService(db_session, storage, sleep=lambda seconds: None)


# =============================================================================
# CLAIM FORM TESTS
# =============================================================================

class TestClaimSubmission:

    def test_amount_with_comma(self):
        submission = ClaimSubmission.model_validate(claim_form())
        assert submission.claimed_amount == 1500.5

    @pytest.mark.parametrize("amount", ["0", "-12", "abc", 0])
    def test_invalid_amount(self, amount):
        with pytest.raises(pydantic.ValidationError) as exc_info:
            ClaimSubmission.model_validate(claim_form(claimedAmount=amount))
        assert "nombre positif" in str(exc_info.value)

    def test_dates_parsed(self):
        submission = ClaimSubmission.model_validate(claim_form())
        assert submission.accident_date == date(2024, 1, 15)
        assert submission.refusal_date == date(2024, 2, 20)

    def test_invalid_date(self):
        with pytest.raises(pydantic.ValidationError):
            ClaimSubmission.model_validate(claim_form(refusalDate="pas une date"))

    def test_blank_required_field(self):
        with pytest.raises(pydantic.ValidationError):
            ClaimSubmission.model_validate(claim_form(lastName="   "))

    def test_invalid_insurer_postcode(self):
        address = {"rue": "1 rue de la Paix", "code_postal": "750", "ville": "Paris"}
        with pytest.raises(pydantic.ValidationError):
            ClaimSubmission.model_validate(claim_form(insurerAddress=address))


class TestMapContractType:

    @pytest.mark.parametrize("contract_type,expected", [
        ("Assurance Automobile", "auto"),
        ("véhicule de fonction", "auto"),
        ("Multirisque habitation", "habitation"),
        ("Complémentaire Santé", "sante"),
        ("Frais médicaux", "sante"),
        ("Assurance medicale", "sante"),
        ("Prévoyance", "autre"),
        ("", "autre"),
    ])
    def test_mapping(self, contract_type, expected):
        assert map_contract_type(contract_type) == expected


# =============================================================================
# CREATION TESTS
# =============================================================================

class TestCreateFromClaim:

    def test_creates_new_dossier(self, service, client_profile):
        dossier = service.create_from_claim(client_profile, ClaimSubmission.model_validate(claim_form()))

        assert dossier.client_id == client_profile.id
        assert dossier.type_sinistre == "auto"
        assert dossier.montant_refuse == 1500.5
        assert dossier.statut == StatutDossier.NOUVEAU
        assert dossier.motif_refus == "Exclusion de garantie"

    def test_placeholders_for_missing_insurer_and_policy(self, service, client_profile):
        form = claim_form(policyNumber=None, insuranceCompany="")
        dossier = service.create_from_claim(client_profile, ClaimSubmission.model_validate(form))

        assert dossier.police_number == DEFAULT_POLICY
        assert dossier.compagnie_assurance == DEFAULT_INSURER

    def test_fills_missing_phone(self, service, client_profile):
        service.create_from_claim(client_profile, ClaimSubmission.model_validate(claim_form()))
        assert client_profile.phone == "0612345678"

    def test_insurer_address_stored(self, service, client_profile):
        address = {"rue": "1 rue de la Paix", "code_postal": "75002", "ville": "Paris"}
        dossier = service.create_from_claim(
            client_profile, ClaimSubmission.model_validate(claim_form(insurerAddress=address))
        )
        assert dossier.adresse_assureur["ville"] == "Paris"
        assert dossier.adresse_assureur["pays"] == "France"


# =============================================================================
# READ / UPDATE TESTS
# =============================================================================

class TestAccessAndUpdates:

    def test_owner_reads_dossier(self, service, client_profile, dossier):
        assert service.get_dossier(client_profile, dossier.id).id == dossier.id

    def test_other_client_denied(self, service, other_profile, dossier):
        with pytest.raises(AccessDeniedError):
            service.get_dossier(other_profile, dossier.id)

    def test_admin_reads_any_dossier(self, service, admin_profile, dossier):
        assert service.get_dossier(admin_profile, dossier.id).id == dossier.id

    def test_client_cannot_change_status(self, service, client_profile, dossier):
        updated = service.update_by_client(
            client_profile, dossier.id, {"motif_refus": "Franchise", "statut": StatutDossier.CLOS}
        )
        assert updated.motif_refus == "Franchise"
        assert updated.statut == StatutDossier.NOUVEAU

    def test_client_cannot_edit_other_dossier(self, service, other_profile, dossier):
        with pytest.raises(NotFoundError):
            service.update_by_client(other_profile, dossier.id, {"motif_refus": "x"})

    def test_invalid_address_rejected(self, service, client_profile, dossier):
        with pytest.raises(ValidationError):
            service.update_by_client(client_profile, dossier.id, {"adresse_assureur": {"rue": "x"}})

    def test_admin_update_is_audited(self, service, admin_profile, dossier, db_session):
        updated = service.update_by_admin(admin_profile, dossier.id, {"statut": StatutDossier.EN_COURS})

        assert updated.statut == StatutDossier.EN_COURS
        entry = db_session.query(AdminAuditLogDB).one()
        assert entry.action == "update_dossier"
        assert entry.target_user_id == dossier.client_id
        assert entry.details["fields"] == ["statut"]

    def test_list_filters(self, service, dossier):
        assert len(service.list_all(statut=StatutDossier.NOUVEAU)) == 1
        assert service.list_all(type_sinistre="habitation") == []
        assert len(service.list_all(search="axa")) == 1
        assert len(service.list_all(search="dupont")) == 1


# =============================================================================
# CASCADE DELETE TESTS
# =============================================================================

class TestDeleteDossier:

    def test_unknown_dossier(self, service, admin_profile):
        assert service.delete_dossier(admin_profile, "inexistant") is None

    def test_cascade(self, service, admin_profile, client_profile, dossier, db_session, storage):
        path = f"{client_profile.id}/{dossier.id}/refus_1.pdf"
        storage.upload(path, b"%PDF")
        db_session.add_all([
            DocumentDB(
                id=str(uuid4()), dossier_id=dossier.id, uploaded_by=client_profile.id,
                nom_fichier="refus.pdf", type_document=TypeDocument.REFUS_ASSURANCE, url_stockage=path,
            ),
            CourrierDB(
                id=str(uuid4()), dossier_id=dossier.id,
                type_courrier=TypeCourrier.MEDIATION, contenu_genere="Madame, Monsieur",
            ),
            CourrierDB(
                id=str(uuid4()), dossier_id=dossier.id,
                type_courrier=TypeCourrier.MISE_EN_DEMEURE, contenu_genere="Mise en demeure",
            ),
            EcheanceDB(
                id=str(uuid4()), dossier_id=dossier.id, type_echeance=TypeEcheance.REPONSE_RECLAMATION,
                date_limite=date(2024, 4, 20), date_alerte=date(2024, 4, 13),
            ),
            PaiementDB(
                id=str(uuid4()), client_id=client_profile.id, dossier_id=dossier.id,
                stripe_payment_intent_id="pi_123", montant=49.0,
                type_facturation=TypeFacturation.FORFAIT_RECOURS,
            ),
        ])
        db_session.commit()

        cascade = service.delete_dossier(admin_profile, dossier.id)

        assert cascade == {
            "courriers": 2,
            "echeances": 1,
            "documents": 1,
            "paiements": 1,
            "storage_objects": 1,
        }
        assert db_session.query(DossierDB).count() == 0
        assert db_session.query(CourrierDB).count() == 0
        assert not storage.exists(path)
        assert db_session.query(AdminAuditLogDB).filter(AdminAuditLogDB.action == "delete_dossier").count() == 1

    def test_missing_stored_file_does_not_block(self, service, admin_profile, dossier, dossier_document):
        cascade = service.delete_dossier(admin_profile, dossier.id)

        assert cascade["documents"] == 1
        assert cascade["storage_objects"] == 0
