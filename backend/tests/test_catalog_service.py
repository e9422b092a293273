"""
Catalog, Deadline, Payment and Configuration Tests

Verifies:
1. Claim-type and letter-type catalogs (unique codes, ordering, deletion)
2. Compatibility matrix and the "no mapping means everything" rule
3. Deadline defaults counted from the refusal date, alerts and expiry
4. Payment records and configuration values with typed coercion
"""

from datetime import date
from uuid import uuid4

import pytest

from reclamassur.errors import AccessDeniedError, NotFoundError, ValidationError
from reclamassur.models.db_models import (
    ConfigType,
    ConfigurationDB,
    SinistreCourrierMappingDB,
    StatutEcheance,
    StatutPaiement,
    TypeEcheance,
    TypeFacturation,
)
from reclamassur.services.catalog_service import CatalogService
from reclamassur.services.configuration_service import ConfigurationService, coerce_value
from reclamassur.services.deadline_service import DeadlineService
from reclamassur.services.payment_service import PaymentService


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def catalog(db_session):
    return CatalogService(db_session)


@pytest.fixture
def seeded_catalog(catalog, admin_profile):
    """Two claim types and three letter types, no mapping rows."""
    claim_types = {
        code: catalog.create_claim_type(admin_profile, {"code": code, "libelle": label, "ordre_affichage": i})
        for i, (code, label) in enumerate([("auto", "Automobile"), ("habitation", "Habitation")])
    }
    letter_types = {
        code: catalog.create_letter_type(admin_profile, {"code": code, "libelle": label, "ordre_affichage": i})
        for i, (code, label) in enumerate([
            ("reclamation_interne", "Réclamation interne"),
            ("mediation", "Saisine du médiateur"),
            ("mise_en_demeure", "Mise en demeure"),
        ])
    }
    return claim_types, letter_types


# =============================================================================
# CATALOG TESTS
# =============================================================================

class TestCatalog:

    def test_ordered_listing(self, catalog, seeded_catalog):
        assert [t.code for t in catalog.list_letter_types()] == [
            "reclamation_interne", "mediation", "mise_en_demeure"
        ]

    def test_duplicate_code(self, catalog, seeded_catalog, admin_profile):
        with pytest.raises(ValidationError):
            catalog.create_claim_type(admin_profile, {"code": "auto", "libelle": "Auto bis"})

    def test_code_and_label_required(self, catalog, admin_profile):
        with pytest.raises(ValidationError):
            catalog.create_claim_type(admin_profile, {"code": " ", "libelle": "Vide"})

    def test_active_only(self, catalog, seeded_catalog, admin_profile):
        claim_types, _ = seeded_catalog
        catalog.update_claim_type(admin_profile, claim_types["habitation"].id, {"actif": False})

        assert [t.code for t in catalog.list_claim_types(active_only=True)] == ["auto"]

    def test_update_unknown(self, catalog, admin_profile):
        with pytest.raises(NotFoundError):
            catalog.update_letter_type(admin_profile, "inexistant", {"libelle": "x"})

    def test_delete_removes_mappings(self, catalog, seeded_catalog, admin_profile, db_session):
        claim_types, letter_types = seeded_catalog
        catalog.set_mapping(admin_profile, claim_types["auto"].id, letter_types["mediation"].id, True)

        catalog.delete_letter_type(admin_profile, letter_types["mediation"].id)

        assert db_session.query(SinistreCourrierMappingDB).count() == 0
        assert len(catalog.list_letter_types()) == 2


class TestCompatibility:

    def test_no_mapping_offers_all_active(self, catalog, seeded_catalog):
        codes = [t.code for t in catalog.compatible_letter_types("auto")]
        assert codes == ["reclamation_interne", "mediation", "mise_en_demeure"]

    def test_unknown_claim_code_offers_all_active(self, catalog, seeded_catalog):
        assert len(catalog.compatible_letter_types("voyage")) == 3

    def test_mapping_restricts(self, catalog, seeded_catalog, admin_profile):
        claim_types, letter_types = seeded_catalog
        catalog.set_mapping(admin_profile, claim_types["auto"].id, letter_types["mediation"].id, True)
        catalog.set_mapping(admin_profile, claim_types["auto"].id, letter_types["mise_en_demeure"].id, False)

        assert [t.code for t in catalog.compatible_letter_types("auto")] == ["mediation"]
        assert len(catalog.compatible_letter_types("habitation")) == 3

    def test_set_mapping_updates_existing_row(self, catalog, seeded_catalog, admin_profile):
        claim_types, letter_types = seeded_catalog
        first = catalog.set_mapping(admin_profile, claim_types["auto"].id, letter_types["mediation"].id, True)
        second = catalog.set_mapping(admin_profile, claim_types["auto"].id, letter_types["mediation"].id, False)

        assert first.id == second.id
        assert second.actif is False
        assert len(catalog.list_mappings()) == 1

    def test_set_mapping_unknown_type(self, catalog, seeded_catalog, admin_profile):
        claim_types, _ = seeded_catalog
        with pytest.raises(NotFoundError):
            catalog.set_mapping(admin_profile, claim_types["auto"].id, "inexistant", True)


# =============================================================================
# DEADLINE TESTS
# =============================================================================

class TestDeadlines:

    def test_default_dates_from_refusal(self, db_session, dossier):
        echeance = DeadlineService(db_session).create(dossier.id, TypeEcheance.REPONSE_RECLAMATION)

        assert echeance.date_limite == date(2024, 4, 20)
        assert echeance.date_alerte == date(2024, 4, 13)
        assert echeance.statut == StatutEcheance.ACTIF
        assert "2 mois" in echeance.description

    def test_biennial_prescription(self, db_session, dossier):
        echeance = DeadlineService(db_session).create(dossier.id, TypeEcheance.PRESCRIPTION_BIENNALE)
        assert echeance.date_limite == date(2026, 2, 20)

    def test_alert_after_limit_rejected(self, db_session, dossier):
        with pytest.raises(ValidationError):
            DeadlineService(db_session).create(
                dossier.id, TypeEcheance.DELAI_MEDIATION,
                date_limite=date(2024, 5, 1), date_alerte=date(2024, 5, 2),
            )

    def test_unknown_dossier(self, db_session):
        with pytest.raises(NotFoundError):
            DeadlineService(db_session).create("inexistant", TypeEcheance.DELAI_MEDIATION)

    def test_due_alerts(self, db_session, dossier):
        service = DeadlineService(db_session)
        due = service.create(dossier.id, TypeEcheance.REPONSE_RECLAMATION)
        service.create(dossier.id, TypeEcheance.PRESCRIPTION_BIENNALE)

        assert [e.id for e in service.due_alerts(today=date(2024, 4, 15))] == [due.id]
        assert service.due_alerts(today=date(2024, 4, 1)) == []

    def test_expire_overdue(self, db_session, dossier):
        service = DeadlineService(db_session)
        overdue = service.create(dossier.id, TypeEcheance.REPONSE_RECLAMATION)
        handled = service.create(dossier.id, TypeEcheance.DELAI_MEDIATION, date_limite=date(2024, 3, 1))
        service.update_status(handled.id, StatutEcheance.TRAITE)

        assert service.expire_overdue(today=date(2024, 6, 1)) == {"expired": 1}

        db_session.expire_all()
        assert service.list_echeances(statut=StatutEcheance.EXPIRE)[0].id == overdue.id

    def test_mark_notified(self, db_session, dossier):
        service = DeadlineService(db_session)
        echeance = service.create(dossier.id, TypeEcheance.REPONSE_RECLAMATION)

        assert service.mark_notified([echeance.id]) == 1
        db_session.expire_all()
        assert service.list_echeances()[0].notifie is True


# =============================================================================
# PAYMENT TESTS
# =============================================================================

class TestPayments:

    def test_record_and_totals(self, db_session, client_profile, dossier):
        service = PaymentService(db_session)
        paid = service.record(client_profile.id, "pi_1", 49.0, TypeFacturation.FORFAIT_RECOURS, dossier_id=dossier.id)
        service.record(client_profile.id, "pi_2", 19.9, TypeFacturation.ABONNEMENT_MENSUEL, devise="EUR")
        service.update_status(paid.id, StatutPaiement.SUCCEEDED)

        assert service.succeeded_totals() == {"eur": 49.0}
        assert len(service.list_payments(client_id=client_profile.id)) == 2

    def test_duplicate_intent(self, db_session, client_profile):
        service = PaymentService(db_session)
        service.record(client_profile.id, "pi_1", 49.0, TypeFacturation.FORFAIT_RECOURS)

        with pytest.raises(ValidationError):
            service.record(client_profile.id, "pi_1", 49.0, TypeFacturation.FORFAIT_RECOURS)

    def test_non_positive_amount(self, db_session, client_profile):
        with pytest.raises(ValidationError):
            PaymentService(db_session).record(client_profile.id, "pi_0", 0, TypeFacturation.FORFAIT_RECOURS)


# =============================================================================
# CONFIGURATION TESTS
# =============================================================================

def add_setting(db, cle, valeur, config_type, modifiable=True):
    entry = ConfigurationDB(id=str(uuid4()), cle=cle, valeur=valeur, type=config_type, modifiable=modifiable)
    db.add(entry)
    db.commit()
    return entry


class TestConfiguration:

    @pytest.mark.parametrize("raw,config_type,expected", [
        ("49", ConfigType.NUMBER, 49),
        ("7.5", ConfigType.NUMBER, 7.5),
        ("oui", ConfigType.BOOLEAN, True),
        ("false", ConfigType.BOOLEAN, False),
        ('{"a": 1}', ConfigType.JSON, {"a": 1}),
        ("texte", ConfigType.STRING, "texte"),
    ])
    def test_coerce_value(self, raw, config_type, expected):
        assert coerce_value(raw, config_type) == expected

    def test_invalid_boolean(self):
        with pytest.raises(ValueError):
            coerce_value("peut-être", ConfigType.BOOLEAN)

    def test_get_value_default_on_bad_value(self, db_session):
        add_setting(db_session, "prix_forfait", "quarante", ConfigType.NUMBER)
        service = ConfigurationService(db_session)

        assert service.get_value("prix_forfait", default=49) == 49
        assert service.get_value("absent", default="x") == "x"

    def test_update_value(self, db_session, admin_profile):
        add_setting(db_session, "prix_forfait", "49", ConfigType.NUMBER)
        service = ConfigurationService(db_session)

        entry = service.update_value(admin_profile, "prix_forfait", "59")

        assert entry.updated_by == admin_profile.id
        assert service.get_value("prix_forfait") == 59

    def test_update_rejects_wrong_type(self, db_session, admin_profile):
        add_setting(db_session, "prix_forfait", "49", ConfigType.NUMBER)
        with pytest.raises(ValidationError):
            ConfigurationService(db_session).update_value(admin_profile, "prix_forfait", "beaucoup")

    def test_read_only_entry(self, db_session, admin_profile):
        add_setting(db_session, "version_schema", "3", ConfigType.NUMBER, modifiable=False)
        with pytest.raises(AccessDeniedError):
            ConfigurationService(db_session).update_value(admin_profile, "version_schema", "4")
