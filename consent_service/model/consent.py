import sqlalchemy as sa

from consent_service.model.base import Base
from consent_service.model.utils import Enum, UTCDateTime
from consent_service.participant_enums import SharingScope


class ConsentSignature(Base):
    """A participant's signature of one version of a subpopulation's consent."""

    __tablename__ = "consent_signature"
    id = sa.Column("id", sa.Integer, primary_key=True, autoincrement=True)
    accountId = sa.Column("account_id", sa.String(24), sa.ForeignKey("account.id", ondelete="CASCADE"),
                          nullable=False)
    subpopGuid = sa.Column("subpop_guid", sa.String(60), nullable=False)
    name = sa.Column("name", sa.String(255), nullable=False)
    birthdate = sa.Column("birthdate", sa.String(20), nullable=False)
    imageData = sa.Column("image_data", sa.Text)
    imageMimeType = sa.Column("image_mime_type", sa.String(80))
    sharingScope = sa.Column("sharing_scope", Enum(SharingScope), nullable=False)
    consentCreatedOn = sa.Column("consent_created_on", UTCDateTime)
    """createdOn of the StudyConsent version that was signed"""
    signedOn = sa.Column("signed_on", UTCDateTime, nullable=False)
    withdrewOn = sa.Column("withdrew_on", UTCDateTime)

    __table_args__ = (
        sa.Index("idx_consent_signature_account_subpop", "account_id", "subpop_guid"),
    )


class IntentToParticipate(Base):
    """
    A consent signature captured before the participant has an account. It is attached to the
    account created with the same phone number and then discarded.
    """

    __tablename__ = "intent_to_participate"
    appId = sa.Column("app_id", sa.String(60), primary_key=True)
    phone = sa.Column("phone", sa.String(40), primary_key=True)
    subpopGuid = sa.Column("subpop_guid", sa.String(60), primary_key=True)
    name = sa.Column("name", sa.String(255), nullable=False)
    birthdate = sa.Column("birthdate", sa.String(20), nullable=False)
    imageData = sa.Column("image_data", sa.Text)
    imageMimeType = sa.Column("image_mime_type", sa.String(80))
    sharingScope = sa.Column("sharing_scope", Enum(SharingScope), nullable=False)
    osName = sa.Column("os_name", sa.String(80))
    consentCreatedOn = sa.Column("consent_created_on", UTCDateTime)
    created = sa.Column("created", UTCDateTime, nullable=False)
