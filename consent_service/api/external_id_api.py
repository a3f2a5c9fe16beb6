from flask import request
from flask_restful import Resource

from consent_service import api_util, app_util
from consent_service.api.base_api import get_page_args, get_request_arg_bool, get_request_json
from consent_service.services.identifier_registry import IdentifierRegistry
from consent_service.services.membership import MembershipEngine

_EXTERNAL_ID_ROLES = [api_util.DEVELOPER, api_util.RESEARCHER, api_util.ORG_ADMIN, api_util.ADMIN,
                      api_util.SUPERADMIN]


class ExternalIdApi(Resource):
    """The external identifier registry, limited to the caller's substudies."""
    method_decorators = [app_util.auth_required(_EXTERNAL_ID_ROLES)]

    def __init__(self):
        self.registry = IdentifierRegistry()
        self.membership = MembershipEngine()

    def get(self, identifier=None):
        caller = app_util.get_caller()
        scope = self.membership.scope_for(caller)
        if identifier is not None:
            return self.registry.get(caller.appId, identifier, request.args.get("substudyId"), scope)
        return list_external_ids(self.registry, caller, scope, request.args.get("substudyId"))

    def post(self):
        caller = app_util.get_caller()
        resource = get_request_json()
        return self.registry.create(
            caller.appId, resource.get("identifier"), resource.get("substudyId"), self.membership.scope_for(caller)
        ), 201

    def delete(self, identifier):
        caller = app_util.get_caller()
        self.registry.delete(
            caller.appId, identifier,
            substudy_id=request.args.get("substudyId"),
            force=get_request_arg_bool("force"),
            scope=self.membership.scope_for(caller)
        )
        return {"message": "External identifier deleted."}


class SubstudyExternalIdApi(Resource):
    method_decorators = [app_util.auth_required(_EXTERNAL_ID_ROLES)]

    def __init__(self):
        self.registry = IdentifierRegistry()
        self.membership = MembershipEngine()

    def get(self, substudy_id):
        caller = app_util.get_caller()
        return list_external_ids(self.registry, caller, self.membership.scope_for(caller), substudy_id)


def list_external_ids(registry, caller, scope, substudy_id=None):
    page_size, offset_key = get_page_args()
    return registry.list(
        caller.appId, page_size,
        offset_key=offset_key,
        id_filter=request.args.get("idFilter"),
        assignment_filter=api_util.parse_bool(request.args.get("assignmentFilter"), "assignmentFilter"),
        substudy_id=substudy_id,
        scope=scope
    )
