"""Adds identifiers to an existing account after re-authenticating its owner."""
from dataclasses import dataclass, field
from typing import Dict, Optional

from werkzeug.exceptions import Forbidden

from consent_service.dao.account_dao import AccountDao
from consent_service.dao.app_dao import AppDao
from consent_service.exceptions import EntityAlreadyExists, InvalidEntity
from consent_service.participant_enums import VerificationChannel
from consent_service.services.authentication import SignIn, get_authenticator
from consent_service.services.identifier_registry import IdentifierRegistry
from consent_service.services.membership import MembershipEngine
from consent_service.services.notification import dispatch_verification, get_notifier


@dataclass
class IdentifierUpdate:
    signIn: SignIn
    emailUpdate: Optional[str] = None
    phoneUpdate: Optional[str] = None
    synapseUserIdUpdate: Optional[str] = None
    externalIdUpdate: Dict[str, str] = field(default_factory=dict)
    """Substudy id to external identifier"""

    @classmethod
    def from_client_json(cls, resource, app_id=None):
        if not isinstance(resource, dict):
            raise InvalidEntity("An identifier update is required")
        external_ids = resource.get("externalIdUpdate") or {}
        if not isinstance(external_ids, dict):
            raise InvalidEntity("externalIdUpdate must map substudy ids to identifiers")
        update = cls(
            signIn=SignIn.from_client_json(resource.get("signIn"), app_id),
            emailUpdate=resource.get("emailUpdate"),
            phoneUpdate=resource.get("phoneUpdate"),
            synapseUserIdUpdate=resource.get("synapseUserIdUpdate"),
            externalIdUpdate=external_ids,
        )
        updates = [value for value in (update.emailUpdate, update.phoneUpdate, update.synapseUserIdUpdate) if value]
        if len(updates) > 1:
            raise InvalidEntity("Only one of emailUpdate, phoneUpdate or synapseUserIdUpdate may be sent")
        if not updates and not update.externalIdUpdate:
            raise InvalidEntity("At least one identifier update is required")
        return update


class IdentityResolver:
    def __init__(self, authenticator=None, notifier=None, account_dao=None, app_dao=None, registry=None,
                 membership=None):
        self.authenticator = authenticator or get_authenticator()
        self.notifier = notifier or get_notifier()
        self.account_dao = account_dao or AccountDao()
        self.app_dao = app_dao or AppDao()
        self.registry = registry or IdentifierRegistry()
        self.membership = membership or MembershipEngine()

    def update_identifiers(self, update: IdentifierUpdate, session_account_id=None):
        """
        Sets each requested identifier the account does not have yet; identifiers that are already
        set keep their value. A new email or phone starts unverified and a verification is sent
        once the update has been stored.
        :param session_account_id: when called from a signed-in session, the credentials must
          belong to that session's account
        :return: the account's session view
        """
        verifications = []
        with self.account_dao.session() as session:
            account = self.authenticator.authenticate(session, update.signIn)
            if session_account_id is not None and account.id != session_account_id:
                raise Forbidden("Credentials do not belong to the signed in account.")
            app = self.app_dao.get_app_or_404_with_session(session, account.appId)

            changed = False
            if update.emailUpdate and account.email is None:
                self._check_unused(session, account, email=update.emailUpdate)
                account.email = update.emailUpdate
                account.emailVerified = False
                verifications.append((VerificationChannel.EMAIL, account.email))
                changed = True
            if update.phoneUpdate and account.phone is None:
                self._check_unused(session, account, phone=update.phoneUpdate)
                account.phone = update.phoneUpdate
                account.phoneVerified = False
                verifications.append((VerificationChannel.PHONE, account.phone))
                changed = True
            if update.synapseUserIdUpdate and account.synapseUserId is None:
                self._check_unused(session, account, synapse_user_id=update.synapseUserIdUpdate)
                account.synapseUserId = update.synapseUserIdUpdate
                changed = True

            held = account.externalIds
            for substudy_id, identifier in sorted(update.externalIdUpdate.items()):
                if substudy_id in held or not identifier:
                    continue
                self.registry.bind_with_session(session, app, account.id, substudy_id, identifier)
                changed = True

            if changed:
                account.version += 1
                self.membership.refresh_memberships(session, account)
            account_id = account.id
            view = self.membership.session_view_with_session(session, account)

        for channel, address in verifications:
            dispatch_verification(self.notifier, account_id, channel, address)
        return view

    def _check_unused(self, session, account, **identifier):
        other = self.account_dao.get_by_identifier_with_session(session, account.appId, **identifier)
        if other is not None and other.id != account.id:
            name, value = next(iter(identifier.items()))
            raise EntityAlreadyExists(f"Another account already uses {name} {value}.")
