from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from werkzeug.exceptions import NotFound, Unauthorized
from werkzeug.security import check_password_hash, generate_password_hash

from consent_service.dao.account_dao import AccountDao
from consent_service.exceptions import InvalidEntity
from consent_service.model.account import Account
from consent_service.provider import Provider


@dataclass
class SignIn:
    """Credentials identifying an account by exactly one of email, phone or external identifier."""
    appId: str
    password: str
    email: Optional[str] = None
    phone: Optional[str] = None
    externalId: Optional[str] = None

    @classmethod
    def from_client_json(cls, resource, app_id=None):
        if not isinstance(resource, dict):
            raise InvalidEntity("signIn is required")
        sign_in = cls(
            appId=app_id or resource.get("appId"),
            password=resource.get("password"),
            email=resource.get("email"),
            phone=resource.get("phone"),
            externalId=resource.get("externalId"),
        )
        if not sign_in.appId:
            raise InvalidEntity("appId is required")
        if not sign_in.password:
            raise InvalidEntity("password is required")
        if len([value for value in (sign_in.email, sign_in.phone, sign_in.externalId) if value]) != 1:
            raise InvalidEntity("Exactly one of email, phone or externalId is required to sign in")
        return sign_in


def hash_password(password):
    return generate_password_hash(password) if password else None


class Authenticator(Provider, ABC):
    environment_variable_name = 'CONSENT_AUTHENTICATOR'

    @abstractmethod
    def authenticate(self, session, sign_in: SignIn) -> Account:
        """Returns the account the credentials belong to.

        Raises NotFound when no account has the identifier and Unauthorized when the password
        does not match."""


class PasswordAuthenticator(Authenticator):
    def __init__(self, account_dao=None):
        self.account_dao = account_dao or AccountDao()

    def authenticate(self, session, sign_in: SignIn) -> Account:
        account = self.account_dao.get_by_identifier_with_session(
            session, sign_in.appId, email=sign_in.email, phone=sign_in.phone, external_id=sign_in.externalId
        )
        if account is None:
            raise NotFound("Account not found.")
        if not account.passwordHash or not check_password_hash(account.passwordHash, sign_in.password):
            raise Unauthorized("Invalid credentials.")
        return account


def get_authenticator() -> Authenticator:
    provider_class = Authenticator.get_provider(default=PasswordAuthenticator)
    return provider_class()
