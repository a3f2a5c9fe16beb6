"""Account creation, sign-up, sign-in and administration by study staff."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from werkzeug.exceptions import Forbidden

from consent_service import api_util, config
from consent_service.dao.account_dao import AccountDao, AccountSessionDao
from consent_service.dao.app_dao import AppDao
from consent_service.dao.base_dao import required_field
from consent_service.dao.organization_dao import OrganizationDao
from consent_service.dao.substudy_dao import SubstudyDao
from consent_service.exceptions import ConcurrentModification, EntityAlreadyExists, InvalidEntity
from consent_service.model.account import Account
from consent_service.participant_enums import AccountStatus, SharingScope, VerificationChannel
from consent_service.services.authentication import SignIn, get_authenticator, hash_password
from consent_service.services.identifier_registry import IdentifierRegistry
from consent_service.services.membership import MembershipEngine
from consent_service.services.notification import dispatch_verification, get_notifier


def _string_list(resource, field_name):
    value = resource.get(field_name) or []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise InvalidEntity(f"{field_name} must be a list of strings")
    return value


@dataclass
class Participant:
    """An account as submitted for sign-up or by study staff."""
    password: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    synapseUserId: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    dataGroups: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    externalIds: Dict[str, str] = field(default_factory=dict)
    """Substudy id to external identifier"""
    substudyIds: List[str] = field(default_factory=list)
    roles: List[str] = field(default_factory=list)
    orgMembership: Optional[str] = None

    @classmethod
    def from_client_json(cls, resource):
        if not isinstance(resource, dict):
            raise InvalidEntity("An account is required")
        external_ids = resource.get("externalIds") or {}
        if not isinstance(external_ids, dict):
            raise InvalidEntity("externalIds must map substudy ids to identifiers")
        participant = cls(
            password=resource.get("password"),
            email=resource.get("email"),
            phone=resource.get("phone"),
            synapseUserId=resource.get("synapseUserId"),
            firstName=resource.get("firstName"),
            lastName=resource.get("lastName"),
            dataGroups=sorted(set(_string_list(resource, "dataGroups"))),
            languages=_string_list(resource, "languages"),
            externalIds={key: value for key, value in external_ids.items() if value},
            substudyIds=sorted(set(_string_list(resource, "substudyIds"))),
            roles=sorted(set(_string_list(resource, "roles"))),
            orgMembership=resource.get("orgMembership"),
        )
        if participant.email and participant.phone:
            raise InvalidEntity("Only one of email or phone may be supplied")
        return participant

    def verifications(self):
        if self.email:
            return [(VerificationChannel.EMAIL, self.email)]
        if self.phone:
            return [(VerificationChannel.PHONE, self.phone)]
        return []


class AccountService:
    def __init__(self, account_dao=None, session_dao=None, app_dao=None, substudy_dao=None, organization_dao=None,
                 registry=None, membership=None, authenticator=None, notifier=None):
        self.account_dao = account_dao or AccountDao()
        self.session_dao = session_dao or AccountSessionDao()
        self.app_dao = app_dao or AppDao()
        self.substudy_dao = substudy_dao or SubstudyDao()
        self.organization_dao = organization_dao or OrganizationDao()
        self.registry = registry or IdentifierRegistry()
        self.membership = membership or MembershipEngine()
        self.authenticator = authenticator or get_authenticator()
        self.notifier = notifier or get_notifier()

    # Self-service

    def sign_up(self, app_id, resource):
        """
        Creates a participant account. Sign-ups that collide with an existing account succeed without
        changing anything, so that sign-up cannot be used to discover who is enrolled.
        :return: the new account's id, or None when the sign-up was a duplicate
        """
        participant = Participant.from_client_json(resource)
        if not participant.password:
            raise InvalidEntity("password is required")
        try:
            with self.account_dao.session() as session:
                app = self.app_dao.get_app_or_404_with_session(session, app_id)
                if app.externalIdRequiredOnSignup and not participant.externalIds:
                    raise InvalidEntity("An external ID is required to sign up")
                self._validate_participant(session, app, participant)
                if self._is_duplicate_sign_up(session, app, participant):
                    logging.info(f"Ignoring sign up for an existing participant of {app_id}.")
                    return None

                account = self._new_account(app_id, participant)
                self.account_dao.insert_account_with_session(session, account)
                session.flush()
                for substudy_id, identifier in sorted(participant.externalIds.items()):
                    self.registry.bind_with_session(session, app, account.id, substudy_id, identifier)
                self.membership.refresh_memberships(session, account)
                self.membership.consume_intents_with_session(session, account)
                account_id = account.id
        except ConcurrentModification:
            logging.info(f"Ignoring sign up with an external ID claimed by another account in {app_id}.")
            return None

        for channel, address in participant.verifications():
            dispatch_verification(self.notifier, account_id, channel, address)
        return account_id

    def sign_in(self, app_id, resource):
        sign_in = SignIn.from_client_json(resource, app_id)
        with self.account_dao.session() as session:
            account = self.authenticator.authenticate(session, sign_in)
            if account.status == AccountStatus.DISABLED:
                raise Forbidden("Account disabled.")
            account_session = self.session_dao.create_session_with_session(
                session, account.id, config.getSettingJson(config.SESSION_TOKEN_LENGTH, 32)
            )
            view = self.membership.session_view_with_session(session, account)
            view["sessionToken"] = account_session.token
            return view

    def sign_out(self, token):
        with self.session_dao.session() as session:
            self.session_dao.delete_token_with_session(session, token)

    def session_view(self, caller, client=None):
        with self.account_dao.session() as session:
            account = self.account_dao.get_account_with_session(session, caller.appId, caller.id)
            return self.membership.session_view_with_session(session, account, client)

    # Administration

    def create_account(self, caller, resource):
        """Creates an account on behalf of study staff. Unlike sign-up, duplicates are errors."""
        participant = Participant.from_client_json(resource)
        with self.account_dao.session() as session:
            app = self.app_dao.get_app_or_404_with_session(session, caller.appId)
            scope = self.membership.scope_for_caller(session, caller)
            self._validate_participant(session, app, participant, scope)
            self._check_role_change(caller, participant.roles)
            if participant.orgMembership:
                self._check_org_assignment(session, caller, participant.orgMembership)
            for name, value in (("email", participant.email), ("phone", participant.phone),
                                ("synapse_user_id", participant.synapseUserId)):
                if value and self.account_dao.get_by_identifier_with_session(session, app.appId, **{name: value}):
                    raise EntityAlreadyExists(f"An account already uses {name} {value}.")

            substudy_ids = set(participant.substudyIds)
            if not substudy_ids and not scope.unscoped:
                substudy_ids = self.membership.effective_substudies(session, caller)

            account = self._new_account(app.appId, participant)
            account.roles = participant.roles
            account.orgMembership = participant.orgMembership
            self.account_dao.insert_account_with_session(session, account)
            self.membership.add_substudies(account, substudy_ids)
            session.flush()
            for substudy_id, identifier in sorted(participant.externalIds.items()):
                self.registry.bind_with_session(session, app, account.id, substudy_id, identifier)
            self.membership.refresh_memberships(session, account)
            self.membership.consume_intents_with_session(session, account)
            return self.account_dao.to_client_json(account, self.membership.effective_substudies(session, account))

    def get_account(self, caller, account_id):
        with self.account_dao.session() as session:
            scope = self.membership.scope_for_caller(session, caller)
            account = self.membership.get_account_in_scope(session, scope, caller.appId, account_id)
            return self.account_dao.to_client_json(account, self.membership.effective_substudies(session, account))

    def update_account(self, caller, account_id, resource):
        """
        Applies staff changes to an account. Identifiers and organization membership have their own
        operations and are left alone here.
        """
        if not isinstance(resource, dict):
            raise InvalidEntity("An account is required")
        with self.account_dao.session() as session:
            app = self.app_dao.get_app_or_404_with_session(session, caller.appId)
            scope = self.membership.scope_for_caller(session, caller)
            account = self.membership.get_account_in_scope(session, scope, caller.appId, account_id)

            for field_name in ("firstName", "lastName"):
                if field_name in resource:
                    setattr(account, field_name, resource.get(field_name))
            if "dataGroups" in resource:
                data_groups = sorted(set(_string_list(resource, "dataGroups")))
                self._validate_data_groups(app, data_groups)
                account.dataGroups = data_groups
            if "languages" in resource:
                account.languages = _string_list(resource, "languages")
            if "roles" in resource:
                roles = sorted(set(_string_list(resource, "roles")))
                if set(roles) != set(account.roles or []):
                    self._check_role_change(caller, roles)
                    account.roles = roles
            if resource.get("status") is not None:
                try:
                    account.status = AccountStatus.from_name(resource["status"])
                except KeyError:
                    raise InvalidEntity(f"Invalid status: {resource['status']}")
            if "substudyIds" in resource:
                self._update_substudies(session, scope, account, set(_string_list(resource, "substudyIds")))

            account.version += 1
            session.flush()
            return self.account_dao.to_client_json(account, self.membership.effective_substudies(session, account))

    def delete_account(self, caller, account_id):
        with self.account_dao.session() as session:
            scope = self.membership.scope_for_caller(session, caller)
            account = self.membership.get_account_in_scope(session, scope, caller.appId, account_id)
            logging.info(f"Deleting account {account.id} of {account.appId}.")
            self.account_dao.delete_with_session(session, account)

    def search_accounts(self, caller, page_size, offset_key=None, email_filter=None, phone_filter=None):
        with self.account_dao.session() as session:
            scope = self.membership.scope_for_caller(session, caller)
            results = self.account_dao.search_with_session(
                session, caller.appId, page_size,
                offset_key=offset_key,
                email_filter=email_filter,
                phone_filter=phone_filter,
                scope_substudy_ids=scope.substudyIds
            )
            return api_util.make_list_response(results, self.account_dao.to_client_json)

    # Helpers

    def _validate_participant(self, session, app, participant, scope=None):
        self._validate_data_groups(app, participant.dataGroups)
        substudy_ids = set(participant.substudyIds) | set(participant.externalIds)
        missing = self.substudy_dao.get_missing_ids_with_session(session, app.appId, substudy_ids)
        if scope is not None:
            missing |= {substudy_id for substudy_id in substudy_ids if not scope.includes_substudy(substudy_id)}
        if missing:
            raise InvalidEntity(f"{', '.join(sorted(missing))} are not substudies")

    @staticmethod
    def _validate_data_groups(app, data_groups):
        unknown = set(data_groups) - set(app.dataGroups or [])
        if unknown:
            raise InvalidEntity(f"{', '.join(sorted(unknown))} are not data groups of {app.appId}")

    def _is_duplicate_sign_up(self, session, app, participant):
        for name, value in (("email", participant.email), ("phone", participant.phone),
                            ("synapse_user_id", participant.synapseUserId)):
            if value and self.account_dao.get_by_identifier_with_session(session, app.appId, **{name: value}):
                return True
        for substudy_id, identifier in participant.externalIds.items():
            for external_id in self.registry.external_id_dao.get_matching_with_session(
                    session, app.appId, identifier, substudy_id):
                if external_id.assigned:
                    return True
        return False

    @staticmethod
    def _new_account(app_id, participant):
        return Account(
            appId=app_id,
            email=participant.email,
            phone=participant.phone,
            synapseUserId=participant.synapseUserId,
            firstName=participant.firstName,
            lastName=participant.lastName,
            passwordHash=hash_password(participant.password),
            status=AccountStatus.ENABLED,
            roles=[],
            dataGroups=participant.dataGroups,
            languages=participant.languages,
            sharingScope=SharingScope.NO_SHARING,
            emailVerified=False,
            phoneVerified=False,
        )

    @staticmethod
    def _check_role_change(caller, roles):
        if not roles:
            return
        unknown = set(roles) - set(api_util.ADMINISTRATIVE_ROLES)
        if unknown:
            raise InvalidEntity(f"{', '.join(sorted(unknown))} are not roles")
        caller_roles = set(caller.roles or [])
        if api_util.SUPERADMIN in caller_roles:
            return
        if api_util.ADMIN not in caller_roles or api_util.SUPERADMIN in roles:
            logging.warning(f"Account {caller.id} may not assign roles {roles}.")
            raise Forbidden("You do not have permission to assign these roles.")

    def _check_org_assignment(self, session, caller, org_id):
        self.organization_dao.get_organization_with_session(session, caller.appId, org_id)
        if set(caller.roles or []) & set(api_util.SUPERADMIN_AND_ADMIN):
            return
        if caller.orgMembership != org_id:
            raise Forbidden(f"You cannot add accounts to organization {org_id}.")

    def _update_substudies(self, session, scope, account, requested):
        """Replaces the memberships the caller can see; memberships outside its scope, and those
        held through an external identifier, are kept."""
        missing = self.substudy_dao.get_missing_ids_with_session(session, account.appId, requested)
        missing |= {substudy_id for substudy_id in requested if not scope.includes_substudy(substudy_id)}
        if missing:
            raise InvalidEntity(f"{', '.join(sorted(missing))} are not substudies")
        for membership in list(account.substudies):
            if membership.substudyId not in requested and scope.includes_substudy(membership.substudyId) \
                    and membership.externalId is None:
                account.substudies.remove(membership)
        self.membership.add_substudies(account, requested)
