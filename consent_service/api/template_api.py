from flask import request
from flask_restful import Resource

from consent_service import api_util, app_util
from consent_service.api.base_api import BaseApi
from consent_service.dao.template_dao import TemplateDao
from consent_service.services.membership import MembershipEngine


class TemplateApi(BaseApi):
    method_decorators = [app_util.auth_required(api_util.DEVELOPER_AND_ADMIN)]

    def __init__(self):
        super(TemplateApi, self).__init__(TemplateDao())

    def _get_model(self, session, app_id, id_):
        return self.dao.get_template_with_session(session, app_id, id_)

    def _list_models(self, session, app_id, include_deleted):
        return self.dao.get_templates_with_session(
            session, app_id, template_type=request.args.get("type"), include_deleted=include_deleted
        )

    def _delete_model(self, session, app_id, id_, physical):
        return self.dao.delete_with_session(session, app_id, id_, physical)


class TemplateForSelfApi(Resource):
    """The template of a type that applies to the signed in participant."""
    method_decorators = [app_util.auth_required(api_util.ALL_ROLES)]

    def __init__(self):
        self.dao = TemplateDao()
        self.membership = MembershipEngine()

    def get(self, template_type):
        caller = app_util.get_caller()
        with self.dao.session() as session:
            context = self.membership.context_for_account(session, caller, app_util.get_client_context())
        return self.dao.to_client_json(self.dao.get_template_for_user(caller.appId, template_type, context))
