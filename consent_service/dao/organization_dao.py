from werkzeug.exceptions import BadRequest, NotFound

from consent_service.dao.base_dao import UpdatableDao, required_field
from consent_service.exceptions import EntityAlreadyExists
from consent_service.model.organization import Organization, OrganizationSponsoredStudy


class OrganizationDao(UpdatableDao):
    def __init__(self):
        super(OrganizationDao, self).__init__(Organization)

    def get_id(self, obj):
        return obj.appId, obj.identifier

    def _validate_insert(self, session, obj):
        if self.get_with_session(session, self.get_id(obj)) is not None:
            raise EntityAlreadyExists(f"Organization {obj.identifier} already exists.")
        super(OrganizationDao, self)._validate_insert(session, obj)

    def get_organization_with_session(self, session, app_id, org_id):
        organization = self.get_with_session(session, (app_id, org_id))
        if organization is None:
            raise NotFound(f"Organization {org_id} not found.")
        return organization

    @staticmethod
    def get_organizations_with_session(session, app_id):
        return session.query(Organization).filter(
            Organization.appId == app_id
        ).order_by(Organization.identifier).all()

    @staticmethod
    def get_sponsored_study_ids_with_session(session, app_id, org_id):
        if not org_id:
            return set()
        return {
            row.substudyId for row in session.query(OrganizationSponsoredStudy.substudyId).filter(
                OrganizationSponsoredStudy.appId == app_id,
                OrganizationSponsoredStudy.orgId == org_id
            )
        }

    @staticmethod
    def add_sponsored_study_with_session(session, app_id, org_id, substudy_id):
        existing = session.query(OrganizationSponsoredStudy).get((app_id, org_id, substudy_id))
        if existing is None:
            session.add(OrganizationSponsoredStudy(appId=app_id, orgId=org_id, substudyId=substudy_id))

    @staticmethod
    def remove_sponsored_study_with_session(session, app_id, org_id, substudy_id):
        existing = session.query(OrganizationSponsoredStudy).get((app_id, org_id, substudy_id))
        if existing is None:
            raise BadRequest(f"Organization {org_id} does not sponsor substudy {substudy_id}.")
        session.delete(existing)

    @staticmethod
    def delete_with_session(session, organization):
        session.query(OrganizationSponsoredStudy).filter(
            OrganizationSponsoredStudy.appId == organization.appId,
            OrganizationSponsoredStudy.orgId == organization.identifier
        ).delete()
        session.delete(organization)

    def to_client_json(self, model):
        result = {
            "identifier": model.identifier,
            "name": model.name,
            "version": model.version,
            "createdOn": model.created.isoformat() if model.created else None,
            "modifiedOn": model.modified.isoformat() if model.modified else None,
        }
        if model.description:
            result["description"] = model.description
        return result

    def from_client_json(self, resource, app_id=None, id_=None, expected_version=None, **kwargs):
        return Organization(
            appId=app_id,
            identifier=id_ or required_field(resource, "identifier"),
            name=required_field(resource, "name"),
            description=resource.get("description"),
            version=expected_version if expected_version is not None else resource.get("version"),
        )
