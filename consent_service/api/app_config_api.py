from flask_restful import Resource

from consent_service import api_util, app_util
from consent_service.api.base_api import BaseApi
from consent_service.dao.app_config_dao import AppConfigDao
from consent_service.logic.criteria import CriteriaContext


class AppConfigApi(BaseApi):
    method_decorators = [app_util.auth_required(api_util.DEVELOPER_AND_ADMIN)]

    def __init__(self):
        super(AppConfigApi, self).__init__(AppConfigDao())

    def _get_model(self, session, app_id, id_):
        return self.dao.get_app_config_with_session(session, app_id, id_)

    def _list_models(self, session, app_id, include_deleted):
        return self.dao.get_app_configs_with_session(session, app_id, include_deleted)

    def _delete_model(self, session, app_id, id_, physical):
        return self.dao.delete_with_session(session, app_id, id_, physical)


class AppConfigForUserApi(Resource):
    """The app config for an app's client, chosen from its User-Agent and Accept-Language headers.
    No session is needed since clients load this before sign-in."""

    def __init__(self):
        self.dao = AppConfigDao()

    def get(self, app_id):
        client = app_util.get_client_context()
        context = CriteriaContext(
            appId=app_id,
            languages=client.languages or [],
            osName=client.osName,
            appVersion=client.appVersion,
        )
        return self.dao.to_client_json(self.dao.get_app_config_for_user(app_id, context))
