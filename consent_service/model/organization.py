import sqlalchemy as sa

from consent_service.model.base import Base, model_insert_listener, model_update_listener
from consent_service.model.utils import UTCDateTime


class Organization(Base):
    """An organization whose member accounts share visibility of the substudies it sponsors."""

    __tablename__ = "organization"
    appId = sa.Column("app_id", sa.String(60), sa.ForeignKey("app.app_id"), primary_key=True)
    identifier = sa.Column("identifier", sa.String(80), primary_key=True)
    """Chosen on creation, never changes"""
    name = sa.Column("name", sa.String(255), nullable=False)
    description = sa.Column("description", sa.String(1024))
    version = sa.Column("version", sa.Integer, nullable=False, default=1)
    created = sa.Column("created", UTCDateTime, nullable=False)
    modified = sa.Column("modified", UTCDateTime, nullable=False)


class OrganizationSponsoredStudy(Base):
    __tablename__ = "organization_sponsored_study"
    appId = sa.Column("app_id", sa.String(60), primary_key=True)
    orgId = sa.Column("org_id", sa.String(80), primary_key=True)
    substudyId = sa.Column("substudy_id", sa.String(60), primary_key=True)

    __table_args__ = (
        sa.ForeignKeyConstraint(["app_id", "org_id"], ["organization.app_id", "organization.identifier"],
                                ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["app_id", "substudy_id"], ["substudy.app_id", "substudy.id"]),
    )


sa.event.listen(Organization, "before_insert", model_insert_listener)
sa.event.listen(Organization, "before_update", model_update_listener)
