"""Shared fixtures: in-memory database, seeded profiles and dossier, storage, API client."""

import os
from datetime import date
from uuid import uuid4

# Settings are read once at import time by reclamassur.database
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reclamassur.auth import create_access_token, hash_password
from reclamassur.config import ProviderCredentials, Settings, get_settings
from reclamassur.database import Base, get_db
from reclamassur.models import db_models  # noqa: F401
from reclamassur.models.db_models import (
    AppRole, DocumentDB, DossierDB, ProfileDB, StatutDossier, TypeDocument, UserRoleDB
)
from reclamassur.services.storage import LocalObjectStorage


TEST_PASSWORD = "motdepasse123"
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
def db_session():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def make_profile(db, email, role=AppRole.USER, first_name="Jean", last_name="Dupont"):
    profile = ProfileDB(
        id=str(uuid4()),
        email=email,
        password_hash=_PASSWORD_HASH,
        first_name=first_name,
        last_name=last_name,
    )
    db.add(profile)
    db.add(UserRoleDB(id=str(uuid4()), user_id=profile.id, role=role))
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def client_profile(db_session):
    return make_profile(db_session, "jean.dupont@example.fr")


@pytest.fixture
def other_profile(db_session):
    return make_profile(db_session, "claire.martin@example.fr", first_name="Claire", last_name="Martin")


@pytest.fixture
def admin_profile(db_session):
    return make_profile(db_session, "admin@reclamassur.fr", role=AppRole.ADMIN, first_name="Admin", last_name="Principal")


@pytest.fixture
def dossier(db_session, client_profile):
    """Car claim refused for 1500.50 EUR."""
    dossier = DossierDB(
        id=str(uuid4()),
        client_id=client_profile.id,
        type_sinistre="auto",
        date_sinistre=date(2024, 1, 15),
        refus_date=date(2024, 2, 20),
        montant_refuse=1500.5,
        police_number="POL-123456",
        compagnie_assurance="AXA France",
        motif_refus="Exclusion de garantie",
        statut=StatutDossier.NOUVEAU,
    )
    db_session.add(dossier)
    db_session.commit()
    db_session.refresh(dossier)
    return dossier


@pytest.fixture
def dossier_document(db_session, dossier, client_profile):
    document = DocumentDB(
        id=str(uuid4()),
        dossier_id=dossier.id,
        uploaded_by=client_profile.id,
        nom_fichier="lettre_refus.pdf",
        type_document=TypeDocument.REFUS_ASSURANCE,
        mime_type="application/pdf",
        taille_fichier=1024,
        url_stockage=f"{client_profile.id}/{dossier.id}/lettre_refus_1700000000000.pdf",
    )
    db_session.add(document)
    db_session.commit()
    db_session.refresh(document)
    return document


# =============================================================================
# SETTINGS / STORAGE
# =============================================================================

@pytest.fixture
def settings(tmp_path):
    """Settings with no AI provider, zero pauses and a temporary storage root."""
    return Settings(
        database_url="sqlite://",
        jwt_secret_key=os.environ["JWT_SECRET_KEY"],
        storage_root=str(tmp_path / "storage"),
        upload_pause_seconds=0,
        upload_retry_delay=0,
        ai_backoff_base_delay=0,
        providers=ProviderCredentials(),
    )


@pytest.fixture
def storage(settings):
    return LocalObjectStorage(settings.storage_root, settings.jwt_secret_key)


# =============================================================================
# API
# =============================================================================

@pytest.fixture
def api_client(db_session, settings):
    """TestClient bound to the test session and settings."""
    from reclamassur.main import app

    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _bearer(profile, role):
    token = create_access_token(profile.id, profile.email, role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client_headers(client_profile):
    return _bearer(client_profile, "user")


@pytest.fixture
def admin_headers(admin_profile):
    return _bearer(admin_profile, "admin")


@pytest.fixture
def other_headers(other_profile):
    return _bearer(other_profile, "user")
