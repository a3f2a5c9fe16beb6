from werkzeug.exceptions import NotFound

from consent_service.dao.base_dao import UpdatableDao, required_field
from consent_service.exceptions import ConstraintViolation, EntityAlreadyExists
from consent_service.model.account import Account, AccountSubstudy
from consent_service.model.external_identifier import ExternalIdentifier
from consent_service.model.organization import OrganizationSponsoredStudy
from consent_service.model.substudy import Substudy


class SubstudyDao(UpdatableDao):
    def __init__(self):
        super(SubstudyDao, self).__init__(Substudy)

    def get_id(self, obj):
        return obj.appId, obj.id

    def _validate_insert(self, session, obj):
        if self.get_with_session(session, (obj.appId, obj.id)) is not None:
            raise EntityAlreadyExists(f"Substudy {obj.id} already exists.")
        super(SubstudyDao, self)._validate_insert(session, obj)

    def _do_update(self, session, obj, existing_obj):
        # The deleted flag is only changed through delete_with_session.
        obj.deleted = existing_obj.deleted
        return super(SubstudyDao, self)._do_update(session, obj, existing_obj)

    def get_substudy_with_session(self, session, app_id, substudy_id, include_deleted=False):
        substudy = self.get_with_session(session, (app_id, substudy_id))
        if substudy is None or (substudy.deleted and not include_deleted):
            raise NotFound(f"Substudy {substudy_id} not found.")
        return substudy

    def get_substudies(self, app_id, include_deleted=False):
        with self.session() as session:
            return self.get_substudies_with_session(session, app_id, include_deleted)

    @staticmethod
    def get_substudies_with_session(session, app_id, include_deleted=False, substudy_ids=None):
        query = session.query(Substudy).filter(Substudy.appId == app_id)
        if not include_deleted:
            query = query.filter(Substudy.deleted.is_(False))
        if substudy_ids is not None:
            query = query.filter(Substudy.id.in_(substudy_ids))
        return query.order_by(Substudy.id).all()

    def get_missing_ids_with_session(self, session, app_id, substudy_ids):
        """Returns those of the given substudy ids that do not name an active substudy."""
        if not substudy_ids:
            return set()
        found = session.query(Substudy.id).filter(
            Substudy.appId == app_id,
            Substudy.id.in_(substudy_ids),
            Substudy.deleted.is_(False)
        ).all()
        return set(substudy_ids) - {row.id for row in found}

    def delete_with_session(self, session, app_id, substudy_id, physical=False):
        substudy = self.get_substudy_with_session(session, app_id, substudy_id, include_deleted=physical)
        if not physical:
            substudy.deleted = True
            substudy.version += 1
            return substudy

        in_use = (
            session.query(ExternalIdentifier).filter(
                ExternalIdentifier.appId == app_id,
                ExternalIdentifier.substudyId == substudy_id
            ).first() is not None
            or session.query(OrganizationSponsoredStudy).filter(
                OrganizationSponsoredStudy.appId == app_id,
                OrganizationSponsoredStudy.substudyId == substudy_id
            ).first() is not None
            or self._has_member_accounts(session, app_id, substudy_id)
        )
        if in_use:
            raise ConstraintViolation(f"Substudy {substudy_id} is still referenced by accounts, "
                                      f"external identifiers or organizations.")
        session.delete(substudy)
        return substudy

    @staticmethod
    def _has_member_accounts(session, app_id, substudy_id):
        return session.query(AccountSubstudy).join(
            Account, Account.id == AccountSubstudy.accountId
        ).filter(
            Account.appId == app_id,
            AccountSubstudy.substudyId == substudy_id
        ).first() is not None

    def to_client_json(self, model):
        return {
            "id": model.id,
            "name": model.name,
            "deleted": model.deleted,
            "version": model.version,
            "createdOn": model.created.isoformat() if model.created else None,
            "modifiedOn": model.modified.isoformat() if model.modified else None,
        }

    def from_client_json(self, resource, app_id=None, id_=None, expected_version=None, **kwargs):
        return Substudy(
            appId=app_id,
            id=id_ or required_field(resource, "id"),
            name=required_field(resource, "name"),
            version=expected_version if expected_version is not None else resource.get("version"),
        )
