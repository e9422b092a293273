"""
ReclamAssur - SQLAlchemy ORM Models
Tables for dossiers, documents, letters, deadlines, payments, templates,
catalogs, roles and audit trails.
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, JSON, ForeignKey,
    Enum as SQLEnum, Boolean, Date, UniqueConstraint
)
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS
# =============================================================================

class AppRole(str, Enum):
    """Platform roles."""
    USER = "user"
    ADMIN = "admin"


class StatutDossier(str, Enum):
    """Lifecycle of a claim dossier."""
    NOUVEAU = "nouveau"
    EN_COURS = "en_cours"
    RECLAMATION_ENVOYEE = "reclamation_envoyee"
    MEDIATION = "mediation"
    CLOS = "clos"


class TypeDocument(str, Enum):
    """Tag attached to an uploaded document."""
    REFUS_ASSURANCE = "refus_assurance"
    POLICE = "police"
    FACTURE = "facture"
    EXPERTISE = "expertise"
    AUTRE = "autre"


class TypeCourrier(str, Enum):
    """Letter types the generator knows about."""
    RECLAMATION_INTERNE = "reclamation_interne"
    MEDIATION = "mediation"
    MISE_EN_DEMEURE = "mise_en_demeure"


class StatutCourrier(str, Enum):
    """Letter validation workflow."""
    EN_ATTENTE_VALIDATION = "en_attente_validation"
    VALIDE_PRET_ENVOI = "valide_pret_envoi"
    MODIFIE_PRET_ENVOI = "modifie_pret_envoi"
    ENVOYE = "envoye"
    REJETE = "rejete"


class SourceCourrier(str, Enum):
    """How a letter's generated content was produced."""
    TEMPLATE = "template"
    AI = "ai"
    FALLBACK = "fallback"


class TypeEcheance(str, Enum):
    REPONSE_RECLAMATION = "reponse_reclamation"
    DELAI_MEDIATION = "delai_mediation"
    PRESCRIPTION_BIENNALE = "prescription_biennale"


class StatutEcheance(str, Enum):
    ACTIF = "actif"
    TRAITE = "traite"
    EXPIRE = "expire"


class StatutPaiement(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    REFUNDED = "refunded"


class TypeFacturation(str, Enum):
    FORFAIT_RECOURS = "forfait_recours"
    ABONNEMENT_MENSUEL = "abonnement_mensuel"


class ConfigType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


# =============================================================================
# USERS AND ROLES
# =============================================================================

class ProfileDB(Base):
    """Client or admin profile."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    roles = relationship("UserRoleDB", back_populates="user", cascade="all, delete-orphan")
    dossiers = relationship("DossierDB", back_populates="profile")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class UserRoleDB(Base):
    """Role assignment. One row per user."""
    __tablename__ = "user_roles"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), unique=True, nullable=False, index=True)
    role = Column(SQLEnum(AppRole), nullable=False, default=AppRole.USER)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("ProfileDB", back_populates="roles")


class AdminInvitationDB(Base):
    """Single-use invitation code for admin registration."""
    __tablename__ = "admin_invitations"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, index=True)
    invite_code = Column(String(64), unique=True, nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    used_by = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# DOSSIERS AND CHILD RECORDS
# =============================================================================

class DossierDB(Base):
    """Insurance claim dispute filed by a client."""
    __tablename__ = "dossiers"

    id = Column(String(36), primary_key=True)
    client_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    type_sinistre = Column(String(50), nullable=False)  # claim-type catalog code
    date_sinistre = Column(Date, nullable=False)
    refus_date = Column(Date, nullable=False)
    montant_refuse = Column(Float, nullable=False)
    police_number = Column(String(100), nullable=False)
    compagnie_assurance = Column(String(255), nullable=False)
    motif_refus = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    # {"rue": ..., "code_postal": ..., "ville": ..., "pays": ...}
    adresse_assureur = Column(JSON, nullable=True)
    statut = Column(SQLEnum(StatutDossier), nullable=False, default=StatutDossier.NOUVEAU, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    profile = relationship("ProfileDB", back_populates="dossiers")
    documents = relationship("DocumentDB", back_populates="dossier")
    courriers = relationship("CourrierDB", back_populates="dossier")
    echeances = relationship("EcheanceDB", back_populates="dossier")


class DocumentDB(Base):
    """Metadata for a stored file. The bytes live in object storage at url_stockage."""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    uploaded_by = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    nom_fichier = Column(String(255), nullable=False)
    type_document = Column(SQLEnum(TypeDocument), nullable=False, default=TypeDocument.AUTRE)
    mime_type = Column(String(100), nullable=True)
    taille_fichier = Column(Integer, nullable=True)
    url_stockage = Column(String(500), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    dossier = relationship("DossierDB", back_populates="documents")


class CourrierDB(Base):
    """Draft or sent dispute letter."""
    __tablename__ = "courriers_projets"

    id = Column(String(36), primary_key=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    type_courrier = Column(SQLEnum(TypeCourrier), nullable=False)
    contenu_genere = Column(Text, nullable=False)
    contenu_final = Column(Text, nullable=True)
    statut = Column(
        SQLEnum(StatutCourrier), nullable=False,
        default=StatutCourrier.EN_ATTENTE_VALIDATION, index=True
    )
    source = Column(SQLEnum(SourceCourrier), nullable=False, default=SourceCourrier.TEMPLATE)
    template_id = Column(String(36), ForeignKey("modeles_courriers.id"), nullable=True)
    ai_provider = Column(String(50), nullable=True)
    ai_model = Column(String(100), nullable=True)

    # Validation / dispatch
    admin_validateur = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    date_validation = Column(DateTime, nullable=True)
    date_envoi = Column(DateTime, nullable=True)
    numero_suivi = Column(String(100), nullable=True)
    reference_laposte = Column(String(100), nullable=True)
    cout_envoi = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    dossier = relationship("DossierDB", back_populates="courriers")


class EcheanceDB(Base):
    """Legal or regulatory deadline attached to a dossier."""
    __tablename__ = "echeances"

    id = Column(String(36), primary_key=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=False, index=True)
    type_echeance = Column(SQLEnum(TypeEcheance), nullable=False)
    date_limite = Column(Date, nullable=False)
    date_alerte = Column(Date, nullable=False)
    description = Column(Text, nullable=True)
    statut = Column(SQLEnum(StatutEcheance), nullable=False, default=StatutEcheance.ACTIF, index=True)
    notifie = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    dossier = relationship("DossierDB", back_populates="echeances")


class PaiementDB(Base):
    """Billing record from the payment provider."""
    __tablename__ = "paiements"

    id = Column(String(36), primary_key=True)
    client_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    dossier_id = Column(String(36), ForeignKey("dossiers.id"), nullable=True, index=True)
    stripe_payment_intent_id = Column(String(255), unique=True, nullable=False)
    montant = Column(Float, nullable=False)
    devise = Column(String(3), nullable=False, default="eur")
    type_facturation = Column(SQLEnum(TypeFacturation), nullable=False)
    statut = Column(SQLEnum(StatutPaiement), nullable=False, default=StatutPaiement.PENDING, index=True)
    description = Column(Text, nullable=True)
    payment_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# TEMPLATES AND CATALOGS
# =============================================================================

class ModeleCourrierDB(Base):
    """Reusable letter template with {{variable}} placeholders."""
    __tablename__ = "modeles_courriers"

    id = Column(String(36), primary_key=True)
    nom_modele = Column(String(255), nullable=False)
    template_content = Column(Text, nullable=False)
    type_sinistre = Column(String(50), nullable=False, index=True)
    type_courrier = Column(String(50), nullable=False, index=True)
    variables_requises = Column(JSON, nullable=False, default=list)  # list of variable names
    actif = Column(Boolean, default=True)
    created_by = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class TypeSinistreDB(Base):
    """Claim-type catalog entry."""
    __tablename__ = "types_sinistres"

    id = Column(String(36), primary_key=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    libelle = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    actif = Column(Boolean, default=True)
    ordre_affichage = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class TypeCourrierDB(Base):
    """Letter-type catalog entry."""
    __tablename__ = "types_courriers"

    id = Column(String(36), primary_key=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    libelle = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    actif = Column(Boolean, default=True)
    ordre_affichage = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class SinistreCourrierMappingDB(Base):
    """Which letter types are offered for which claim types."""
    __tablename__ = "sinistre_courrier_mapping"
    __table_args__ = (
        UniqueConstraint("type_sinistre_id", "type_courrier_id", name="uq_sinistre_courrier"),
    )

    id = Column(String(36), primary_key=True)
    type_sinistre_id = Column(String(36), ForeignKey("types_sinistres.id"), nullable=False)
    type_courrier_id = Column(String(36), ForeignKey("types_courriers.id"), nullable=False)
    actif = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# AUDIT, CONFIGURATION, WEBHOOKS
# =============================================================================

class ActivityLogDB(Base):
    """Document access log."""
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    dossier_id = Column(String(36), nullable=True, index=True)
    document_id = Column(String(36), nullable=True)
    action = Column(String(50), nullable=False)  # view, download, upload, delete
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class AdminAuditLogDB(Base):
    """Trail of administrative actions."""
    __tablename__ = "admin_audit_log"

    id = Column(String(36), primary_key=True)
    admin_user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    target_user_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    action = Column(String(100), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class ConfigurationDB(Base):
    """Admin-editable runtime setting."""
    __tablename__ = "configuration"

    id = Column(String(36), primary_key=True)
    cle = Column(String(100), unique=True, nullable=False, index=True)
    valeur = Column(Text, nullable=False)
    type = Column(SQLEnum(ConfigType), nullable=False, default=ConfigType.STRING)
    description = Column(Text, nullable=True)
    modifiable = Column(Boolean, default=True)
    updated_by = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class WebhookLogDB(Base):
    """Outgoing webhook delivery attempt (written by external workers)."""
    __tablename__ = "webhook_logs"

    id = Column(String(36), primary_key=True)
    webhook_url = Column(String(500), nullable=False)
    payload = Column(JSON, nullable=True)
    status = Column(String(30), nullable=False)
    attempt_number = Column(Integer, default=1)
    response_body = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
