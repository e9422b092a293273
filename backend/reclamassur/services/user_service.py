"""
User, role and admin-invitation management.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.db_models import AdminInvitationDB, AppRole, ProfileDB, UserRoleDB
from .audit_service import log_admin_action

logger = logging.getLogger(__name__)

INVITE_VALIDITY_DAYS = 7


def get_user_role(db: Session, user_id: str) -> AppRole:
    """Role of a user; users without a role row are plain users."""
    row = db.query(UserRoleDB).filter(UserRoleDB.user_id == user_id).first()
    return row.role if row else AppRole.USER


def has_role(db: Session, user_id: str, role: AppRole) -> bool:
    return get_user_role(db, user_id) == role


def is_admin(db: Session, user_id: str) -> bool:
    return has_role(db, user_id, AppRole.ADMIN)


class UserService:
    """Profiles, roles and admin invitations."""

    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, user_id: str) -> ProfileDB:
        profile = self.db.query(ProfileDB).filter(ProfileDB.id == user_id).first()
        if not profile:
            raise NotFoundError("Utilisateur", user_id)
        return profile

    def set_role(self, user_id: str, role: AppRole) -> UserRoleDB:
        """Upsert the role row for a user (no commit)."""
        row = self.db.query(UserRoleDB).filter(UserRoleDB.user_id == user_id).first()
        if row:
            row.role = role
        else:
            row = UserRoleDB(id=str(uuid4()), user_id=user_id, role=role)
            self.db.add(row)
        return row

    def change_role(self, admin: ProfileDB, user_id: str, role: AppRole) -> UserRoleDB:
        """Admin changes another user's role. Audited."""
        if user_id == admin.id and role != AppRole.ADMIN:
            raise ValidationError("Un administrateur ne peut pas retirer son propre rôle")
        self.get_profile(user_id)
        previous = get_user_role(self.db, user_id)
        row = self.set_role(user_id, role)
        log_admin_action(
            self.db, admin.id, "change_role", target_user_id=user_id,
            details={"from": previous.value, "to": role.value},
        )
        self.db.commit()
        logger.info(f"Admin {admin.id} changed role of {user_id}: {previous.value} -> {role.value}")
        return row

    def list_users(self, search: Optional[str] = None) -> List[dict]:
        """Profiles with their role, newest first."""
        query = self.db.query(ProfileDB)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                ProfileDB.email.ilike(pattern)
                | ProfileDB.first_name.ilike(pattern)
                | ProfileDB.last_name.ilike(pattern)
            )
        users = []
        for profile in query.order_by(ProfileDB.created_at.desc()).all():
            users.append({
                "id": profile.id,
                "email": profile.email,
                "first_name": profile.first_name,
                "last_name": profile.last_name,
                "role": get_user_role(self.db, profile.id).value,
                "created_at": profile.created_at.isoformat() if profile.created_at else None,
            })
        return users

    # =========================================================================
    # ADMIN INVITATIONS
    # =========================================================================

    def generate_admin_invite(self, admin: ProfileDB, email: str) -> AdminInvitationDB:
        """Create a single-use invitation code valid for a week."""
        invitation = AdminInvitationDB(
            id=str(uuid4()),
            email=email.lower(),
            invite_code=secrets.token_urlsafe(16),
            created_by=admin.id,
            expires_at=datetime.utcnow() + timedelta(days=INVITE_VALIDITY_DAYS),
        )
        self.db.add(invitation)
        log_admin_action(self.db, admin.id, "generate_admin_invite", details={"email": email.lower()})
        self.db.commit()
        self.db.refresh(invitation)
        logger.info(f"Admin invitation created for {email} by {admin.id}")
        return invitation

    def find_valid_invite(self, invite_code: str, email: str) -> AdminInvitationDB:
        """
        Unused, unexpired invitation matching code and email.

        Raises:
            ValidationError: no such invitation
        """
        invitation = self.db.query(AdminInvitationDB).filter(
            AdminInvitationDB.invite_code == invite_code
        ).first()
        if (
            invitation is None
            or invitation.used_at is not None
            or invitation.expires_at < datetime.utcnow()
            or invitation.email != email.lower()
        ):
            raise ValidationError("Code d'invitation invalide ou expiré")
        return invitation

    def consume_invite(self, invitation: AdminInvitationDB, user_id: str) -> None:
        """Mark the invitation used and grant the admin role (no commit)."""
        invitation.used_at = datetime.utcnow()
        invitation.used_by = user_id
        self.set_role(user_id, AppRole.ADMIN)

    def list_invitations(self) -> List[AdminInvitationDB]:
        return self.db.query(AdminInvitationDB).order_by(AdminInvitationDB.created_at.desc()).all()

    def diagnose_auth_state(self, user: ProfileDB, token_payload: Optional[dict] = None) -> dict:
        """Snapshot of the caller's authentication state for the diagnostics page."""
        expiry = None
        if token_payload and token_payload.get("exp"):
            expiry = datetime.utcfromtimestamp(token_payload["exp"])
        return {
            "timestamp": datetime.utcnow().isoformat(),
            "user_id": user.id,
            "email": user.email,
            "role": get_user_role(self.db, user.id).value,
            "token_expiry": expiry.isoformat() if expiry else None,
            "token_valid": expiry is not None and expiry > datetime.utcnow(),
            "profile_complete": bool(user.first_name and user.last_name),
        }
