import sqlalchemy as sa

from consent_service.model.base import Base, model_insert_listener, model_update_listener
from consent_service.model.utils import CriteriaType, UTCDateTime


class Subpopulation(Base):
    """A consent group: the participants matching its criteria are asked to sign its consent document."""

    __tablename__ = "subpopulation"
    guid = sa.Column("guid", sa.String(60), primary_key=True)
    appId = sa.Column("app_id", sa.String(60), sa.ForeignKey("app.app_id"), nullable=False)
    name = sa.Column("name", sa.String(255), nullable=False)
    description = sa.Column("description", sa.String(1024))
    required = sa.Column("required", sa.Boolean, nullable=False, default=True)
    """Whether a participant must sign this consent to count as consented"""
    criteria = sa.Column("criteria", CriteriaType)
    substudyIdsAssignedOnConsent = sa.Column("substudy_ids_assigned_on_consent", sa.JSON, nullable=False,
                                             default=list)
    publishedConsentCreatedOn = sa.Column("published_consent_created_on", UTCDateTime)
    """createdOn of the StudyConsent version participants currently sign"""
    deleted = sa.Column("deleted", sa.Boolean, nullable=False, default=False)
    version = sa.Column("version", sa.Integer, nullable=False, default=1)
    created = sa.Column("created", UTCDateTime, nullable=False)
    modified = sa.Column("modified", UTCDateTime, nullable=False)


class StudyConsent(Base):
    """One version of a subpopulation's consent document."""

    __tablename__ = "study_consent"
    subpopGuid = sa.Column("subpop_guid", sa.String(60), sa.ForeignKey("subpopulation.guid", ondelete="CASCADE"),
                           primary_key=True)
    createdOn = sa.Column("created_on", UTCDateTime, primary_key=True)
    documentContent = sa.Column("document_content", sa.Text)


sa.event.listen(Subpopulation, "before_insert", model_insert_listener)
sa.event.listen(Subpopulation, "before_update", model_update_listener)
