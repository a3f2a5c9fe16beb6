import sqlalchemy as sa
from sqlalchemy.orm import relationship

from consent_service.model.base import Base, model_insert_listener, model_update_listener
from consent_service.model.utils import Enum, UTCDateTime
from consent_service.participant_enums import AccountStatus, SharingScope


class Account(Base):
    """One user identity within an app: a participant or a member of the study staff."""

    __tablename__ = "account"
    id = sa.Column("id", sa.String(24), primary_key=True)
    """Randomly generated on creation, never changes"""
    appId = sa.Column("app_id", sa.String(60), sa.ForeignKey("app.app_id"), nullable=False)
    email = sa.Column("email", sa.String(255))
    phone = sa.Column("phone", sa.String(40))
    synapseUserId = sa.Column("synapse_user_id", sa.String(40))
    firstName = sa.Column("first_name", sa.String(255))
    lastName = sa.Column("last_name", sa.String(255))
    passwordHash = sa.Column("password_hash", sa.String(255))
    status = sa.Column("status", Enum(AccountStatus), nullable=False, default=AccountStatus.ENABLED)
    roles = sa.Column("roles", sa.JSON, nullable=False, default=list)
    dataGroups = sa.Column("data_groups", sa.JSON, nullable=False, default=list)
    languages = sa.Column("languages", sa.JSON, nullable=False, default=list)
    """Language preferences, most preferred first"""
    orgMembership = sa.Column("org_membership", sa.String(80))
    """Identifier of the organization the account belongs to, if any"""
    sharingScope = sa.Column("sharing_scope", Enum(SharingScope), nullable=False, default=SharingScope.NO_SHARING)
    emailVerified = sa.Column("email_verified", sa.Boolean, nullable=False, default=False)
    phoneVerified = sa.Column("phone_verified", sa.Boolean, nullable=False, default=False)
    version = sa.Column("version", sa.Integer, nullable=False, default=1)
    created = sa.Column("created", UTCDateTime, nullable=False)
    modified = sa.Column("modified", UTCDateTime, nullable=False)

    substudies = relationship(
        "AccountSubstudy", cascade="all, delete-orphan", lazy="selectin", order_by="AccountSubstudy.substudyId"
    )

    __table_args__ = (
        sa.UniqueConstraint("app_id", "email", name="uidx_account_email"),
        sa.UniqueConstraint("app_id", "phone", name="uidx_account_phone"),
        sa.UniqueConstraint("app_id", "synapse_user_id", name="uidx_account_synapse_user_id"),
        sa.Index("idx_account_org_membership", "app_id", "org_membership"),
    )

    @property
    def substudyIds(self):
        return {substudy.substudyId for substudy in self.substudies}

    @property
    def externalIds(self):
        return {
            substudy.substudyId: substudy.externalId
            for substudy in self.substudies
            if substudy.externalId is not None
        }


class AccountSubstudy(Base):
    """Membership of an account in a substudy, optionally through an external identifier."""

    __tablename__ = "account_substudy"
    accountId = sa.Column("account_id", sa.String(24), sa.ForeignKey("account.id", ondelete="CASCADE"),
                          primary_key=True)
    substudyId = sa.Column("substudy_id", sa.String(60), primary_key=True)
    externalId = sa.Column("external_id", sa.String(255))


class AccountSession(Base):
    """A signed-in session; the token is sent as a bearer token on each request."""

    __tablename__ = "account_session"
    token = sa.Column("token", sa.String(128), primary_key=True)
    accountId = sa.Column("account_id", sa.String(24), sa.ForeignKey("account.id", ondelete="CASCADE"),
                          nullable=False, index=True)
    created = sa.Column("created", UTCDateTime, nullable=False)
    modified = sa.Column("modified", UTCDateTime, nullable=False)


sa.event.listen(Account, "before_insert", model_insert_listener)
sa.event.listen(Account, "before_update", model_update_listener)
sa.event.listen(AccountSession, "before_insert", model_insert_listener)
