from flask import request
from flask_restful import Resource
from werkzeug.exceptions import Forbidden

from consent_service import api_util, app_util
from consent_service.api.base_api import get_request_json
from consent_service.services.membership import MembershipEngine, SignatureRequest


class ConsentStatusApi(Resource):
    """Consent state per subpopulation of the caller, or of another account for study staff."""
    method_decorators = [app_util.auth_required(api_util.ALL_ROLES)]

    def __init__(self):
        self.membership = MembershipEngine()

    def get(self):
        caller = app_util.get_caller()
        account_id = request.args.get("accountId")
        if account_id and account_id != caller.id and not set(caller.roles or []) & set(api_util.STUDY_STAFF):
            raise Forbidden("Only study staff can view the consent status of other accounts.")
        statuses = self.membership.get_consent_statuses(caller, account_id, app_util.get_client_context())
        return {guid: status.to_client_json() for guid, status in statuses.items()}


class ConsentSignatureApi(Resource):
    method_decorators = [app_util.auth_required(api_util.ALL_ROLES)]

    def __init__(self):
        self.membership = MembershipEngine()

    def get(self, subpop_guid):
        caller = app_util.get_caller()
        return self.membership.get_consent_signature(caller.id, caller.appId, subpop_guid)

    def post(self, subpop_guid):
        caller = app_util.get_caller()
        signature_request = SignatureRequest.from_client_json(get_request_json())
        _, view = self.membership.sign_consent(
            caller.id, caller.appId, subpop_guid, signature_request, app_util.get_client_context()
        )
        return view, 201


class WithdrawConsentApi(Resource):
    method_decorators = [app_util.auth_required(api_util.ALL_ROLES)]

    def __init__(self):
        self.membership = MembershipEngine()

    def post(self, subpop_guid):
        caller = app_util.get_caller()
        resource = request.get_json(force=True, silent=True) or {}
        return self.membership.withdraw_consent(caller.id, caller.appId, subpop_guid, resource.get("reason"))


class ConsentHistoryApi(Resource):
    method_decorators = [app_util.auth_required(api_util.ALL_ROLES)]

    def __init__(self):
        self.membership = MembershipEngine()

    def get(self, subpop_guid):
        caller = app_util.get_caller()
        items = self.membership.get_consent_history(caller.id, caller.appId, subpop_guid)
        return {"items": items, "total": len(items)}


class IntentToParticipateApi(Resource):
    """Records a consent signature for a phone number that has not signed up yet."""

    def __init__(self):
        self.membership = MembershipEngine()

    def post(self):
        resource = get_request_json()
        self.membership.submit_intent(resource.get("appId"), resource)
        return {"message": "Intent to participate accepted."}, 202


class StudyConsentApi(Resource):
    method_decorators = [app_util.auth_required(api_util.DEVELOPER_AND_ADMIN)]

    def __init__(self):
        self.membership = MembershipEngine()

    def get(self, subpop_guid):
        items = self.membership.get_consents(app_util.get_caller().appId, subpop_guid)
        return {"items": items, "total": len(items)}

    def post(self, subpop_guid):
        resource = get_request_json()
        return self.membership.create_consent(
            app_util.get_caller().appId, subpop_guid, resource.get("documentContent")
        ), 201


class PublishConsentApi(Resource):
    method_decorators = [app_util.auth_required(api_util.DEVELOPER_AND_ADMIN)]

    def __init__(self):
        self.membership = MembershipEngine()

    def post(self, subpop_guid, created_on):
        return self.membership.publish_consent(
            app_util.get_caller().appId, subpop_guid, api_util.parse_date(created_on)
        )
