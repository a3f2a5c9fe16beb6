from flask_restful import Resource

from consent_service import app_util
from consent_service.api.base_api import get_request_json
from consent_service.services.account_service import AccountService


class SignUpApi(Resource):
    """Creates a participant account. Responds the same way whether or not the participant was
    already signed up."""

    def __init__(self):
        self.service = AccountService()

    def post(self):
        resource = get_request_json()
        self.service.sign_up(resource.get("appId"), resource)
        return {"message": "Signed up."}, 201


class SignInApi(Resource):
    def __init__(self):
        self.service = AccountService()

    def post(self):
        resource = get_request_json()
        return self.service.sign_in(resource.get("appId"), resource)


class SignOutApi(Resource):
    def __init__(self):
        self.service = AccountService()

    def post(self):
        token = app_util.get_auth_token()
        if token:
            self.service.sign_out(token)
        return {"message": "Signed out."}
