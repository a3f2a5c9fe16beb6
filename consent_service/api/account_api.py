from flask import request
from flask_restful import Resource

from consent_service import api_util, app_util
from consent_service.api.base_api import get_page_args, get_request_json
from consent_service.services.account_service import AccountService
from consent_service.services.identity_resolver import IdentifierUpdate, IdentityResolver


class SelfApi(Resource):
    method_decorators = [app_util.auth_required(api_util.ALL_ROLES)]

    def __init__(self):
        self.service = AccountService()

    def get(self):
        return self.service.session_view(app_util.get_caller(), app_util.get_client_context())


class IdentifierUpdateApi(Resource):
    method_decorators = [app_util.auth_required(api_util.ALL_ROLES)]

    def __init__(self):
        self.resolver = IdentityResolver()

    def post(self):
        caller = app_util.get_caller()
        update = IdentifierUpdate.from_client_json(get_request_json(), caller.appId)
        return self.resolver.update_identifiers(update, session_account_id=caller.id)


class AccountApi(Resource):
    method_decorators = [app_util.auth_required(api_util.STUDY_STAFF)]

    def __init__(self):
        self.service = AccountService()

    def get(self, account_id=None):
        caller = app_util.get_caller()
        if account_id is not None:
            return self.service.get_account(caller, account_id)
        page_size, offset_key = get_page_args()
        return self.service.search_accounts(
            caller, page_size,
            offset_key=offset_key,
            email_filter=request.args.get("emailFilter"),
            phone_filter=request.args.get("phoneFilter")
        )

    def post(self, account_id=None):
        caller = app_util.get_caller()
        resource = get_request_json()
        if account_id is None:
            return self.service.create_account(caller, resource), 201
        return self.service.update_account(caller, account_id, resource)

    def delete(self, account_id):
        self.service.delete_account(app_util.get_caller(), account_id)
        return {"message": "Account deleted."}
