from flask_restful import Resource

from consent_service import api_util, app_util
from consent_service.api.base_api import get_page_args, get_request_json
from consent_service.services.organization_service import OrganizationService


class OrganizationApi(Resource):
    method_decorators = {
        "get": [app_util.auth_required(api_util.STUDY_STAFF)],
        "post": [app_util.auth_required(api_util.SUPERADMIN_AND_ADMIN)],
        "delete": [app_util.auth_required(api_util.SUPERADMIN)],
    }

    def __init__(self):
        self.service = OrganizationService()

    def get(self, org_id=None):
        app_id = app_util.get_caller().appId
        if org_id is None:
            return self.service.list(app_id)
        return self.service.get(app_id, org_id)

    def post(self, org_id=None):
        app_id = app_util.get_caller().appId
        resource = get_request_json()
        if org_id is None:
            return self.service.create(app_id, resource), 201
        return self.service.update(app_id, org_id, resource)

    def delete(self, org_id):
        self.service.delete(app_util.get_caller().appId, org_id)
        return {"message": "Organization deleted."}


class OrganizationMemberApi(Resource):
    method_decorators = [app_util.auth_required(api_util.ORG_ADMIN_AND_ADMIN)]

    def __init__(self):
        self.service = OrganizationService()

    def get(self, org_id):
        page_size, offset_key = get_page_args()
        return self.service.list_members(app_util.get_caller(), org_id, page_size, offset_key)

    def post(self, org_id, account_id):
        self.service.add_member(app_util.get_caller(), org_id, account_id)
        return {"message": "Account added to organization."}

    def delete(self, org_id, account_id):
        self.service.remove_member(app_util.get_caller(), org_id, account_id)
        return {"message": "Account removed from organization."}


class UnassignedAdminApi(Resource):
    method_decorators = [app_util.auth_required(api_util.ORG_ADMIN_AND_ADMIN)]

    def __init__(self):
        self.service = OrganizationService()

    def get(self):
        return self.service.list_unassigned_admins(app_util.get_caller().appId)


class SponsoredStudyApi(Resource):
    method_decorators = {
        "get": [app_util.auth_required(api_util.STUDY_STAFF)],
        "post": [app_util.auth_required(api_util.SUPERADMIN_AND_ADMIN)],
        "delete": [app_util.auth_required(api_util.SUPERADMIN_AND_ADMIN)],
    }

    def __init__(self):
        self.service = OrganizationService()

    def get(self, org_id):
        return self.service.list_sponsored_studies(app_util.get_caller().appId, org_id)

    def post(self, org_id, substudy_id):
        self.service.add_sponsored_study(app_util.get_caller().appId, org_id, substudy_id)
        return {"message": "Substudy sponsored."}

    def delete(self, org_id, substudy_id):
        self.service.remove_sponsored_study(app_util.get_caller().appId, org_id, substudy_id)
        return {"message": "Substudy no longer sponsored."}
