"""
The registry of external identifiers: participant codes issued by a substudy, each of which
may be held by at most one account.
"""
import logging

from werkzeug.exceptions import NotFound

from consent_service import api_util
from consent_service.dao.app_dao import AppDao
from consent_service.dao.external_id_dao import ExternalIdDao
from consent_service.dao.substudy_dao import SubstudyDao
from consent_service.exceptions import ConcurrentModification, ConstraintViolation, InvalidEntity
from consent_service.model.external_identifier import ExternalIdentifier


class IdentifierRegistry:
    def __init__(self, external_id_dao=None, substudy_dao=None, app_dao=None):
        self.external_id_dao = external_id_dao or ExternalIdDao()
        self.substudy_dao = substudy_dao or SubstudyDao()
        self.app_dao = app_dao or AppDao()

    def create(self, app_id, identifier, substudy_id, scope=None):
        with self.external_id_dao.session() as session:
            external_id = self.create_with_session(session, app_id, identifier, substudy_id, scope)
            return self.external_id_dao.to_client_json(external_id)

    def create_with_session(self, session, app_id, identifier, substudy_id, scope=None):
        """
        Adds an unassigned identifier to a substudy.
        :param scope: the caller's CallerScope; scoped callers may only add to their own substudies
        """
        if not identifier or not str(identifier).strip():
            raise InvalidEntity("identifier is required")
        self.app_dao.get_app_or_404_with_session(session, app_id)
        if not substudy_id:
            raise InvalidEntity("substudyId is required")
        # Substudies outside the caller's scope are reported the same way as unknown ones.
        if (scope is not None and not scope.includes_substudy(substudy_id)) or \
                self.substudy_dao.get_missing_ids_with_session(session, app_id, [substudy_id]):
            raise InvalidEntity(f"{substudy_id} is not a substudy")
        external_id = ExternalIdentifier(appId=app_id, substudyId=substudy_id, identifier=identifier)
        return self.external_id_dao.insert_with_session(session, external_id)

    def get_with_session(self, session, app_id, identifier, substudy_id=None, scope=None):
        """Finds the single identifier with this string. Naming the substudy is required when the
        string is used by more than one substudy."""
        matching = self.external_id_dao.get_matching_with_session(session, app_id, identifier, substudy_id)
        if scope is not None:
            matching = [external_id for external_id in matching if scope.includes_substudy(external_id.substudyId)]
        if not matching:
            raise NotFound(f"External identifier {identifier} not found.")
        if len(matching) > 1:
            raise InvalidEntity(f"External identifier {identifier} exists in several substudies; "
                                f"substudyId is required")
        return matching[0]

    def get(self, app_id, identifier, substudy_id=None, scope=None):
        with self.external_id_dao.session() as session:
            return self.external_id_dao.to_client_json(
                self.get_with_session(session, app_id, identifier, substudy_id, scope)
            )

    def assign_with_session(self, session, app_id, identifier, account_id, substudy_id=None):
        """Assigns the identifier to the account. Assigning it again to the same account is a no-op;
        assigning an identifier held by another account raises ConcurrentModification."""
        external_id = self.get_with_session(session, app_id, identifier, substudy_id)
        if not self.external_id_dao.assign_with_session(
                session, app_id, external_id.substudyId, external_id.identifier, account_id):
            raise ConcurrentModification(f"External identifier {identifier} is assigned to another account.")
        session.expire(external_id)
        return external_id

    def bind_with_session(self, session, app, account_id, substudy_id, identifier):
        """Assigns an identifier named by a participant. Unknown identifiers are rejected when the app
        validates them, and otherwise registered on the fly."""
        matching = self.external_id_dao.get_matching_with_session(session, app.appId, identifier, substudy_id)
        if not matching:
            if app.externalIdValidationEnabled:
                raise InvalidEntity(f"{identifier} is not a valid external ID")
            self.create_with_session(session, app.appId, identifier, substudy_id)
        return self.assign_with_session(session, app.appId, identifier, account_id, substudy_id)

    def release_with_session(self, session, app_id, identifier, substudy_id=None, scope=None):
        """Clears the identifier's assignment, leaving it available. Safe to repeat."""
        external_id = self.get_with_session(session, app_id, identifier, substudy_id, scope)
        self.external_id_dao.release_with_session(session, external_id)
        return external_id

    def release(self, app_id, identifier, substudy_id=None, scope=None):
        with self.external_id_dao.session() as session:
            external_id = self.release_with_session(session, app_id, identifier, substudy_id, scope)
            return self.external_id_dao.to_client_json(external_id)

    def list(self, app_id, page_size, offset_key=None, id_filter=None, assignment_filter=None,
             substudy_id=None, scope=None):
        with self.external_id_dao.session() as session:
            results = self.external_id_dao.list_with_session(
                session, app_id, page_size,
                offset_key=offset_key,
                id_filter=id_filter,
                assignment_filter=assignment_filter,
                substudy_id=substudy_id,
                scope_substudy_ids=scope.substudyIds if scope is not None else None
            )
            return api_util.make_list_response(results, self.external_id_dao.to_client_json)

    def delete(self, app_id, identifier, substudy_id=None, force=False, scope=None):
        """Removes an identifier. An assigned identifier is only removed when forced, in which case
        the account loses it first."""
        with self.external_id_dao.session() as session:
            external_id = self.get_with_session(session, app_id, identifier, substudy_id, scope)
            if external_id.assigned:
                if not force:
                    raise ConstraintViolation(f"External identifier {identifier} is assigned to an account.")
                logging.info(f"Releasing {identifier} from account {external_id.accountId} before deleting it.")
                self.external_id_dao.release_with_session(session, external_id)
            session.delete(external_id)
