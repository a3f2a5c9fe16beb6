import uuid

from werkzeug.exceptions import NotFound

from consent_service.dao.base_dao import UpdatableDao, required_field
from consent_service.dao.substudy_dao import SubstudyDao
from consent_service.exceptions import ConstraintViolation, InvalidEntity
from consent_service.logic.criteria import Criteria, validate_criteria
from consent_service.model.consent import ConsentSignature
from consent_service.model.subpopulation import StudyConsent, Subpopulation


class SubpopulationDao(UpdatableDao):
    def __init__(self, substudy_dao=None):
        super(SubpopulationDao, self).__init__(Subpopulation)
        self.substudy_dao = substudy_dao or SubstudyDao()

    def get_id(self, obj):
        return obj.guid

    def _validate_model(self, session, obj):
        validate_criteria(obj.criteria or Criteria())
        missing = self.substudy_dao.get_missing_ids_with_session(
            session, obj.appId, obj.substudyIdsAssignedOnConsent or []
        )
        if missing:
            raise InvalidEntity(f"substudyIdsAssignedOnConsent refers to unknown substudies {sorted(missing)}")

    def insert_with_session(self, session, obj):
        if not obj.guid:
            obj.guid = str(uuid.uuid4())
        return super(SubpopulationDao, self).insert_with_session(session, obj)

    def _do_update(self, session, obj, existing_obj):
        # Publishing and deletion have their own operations.
        obj.publishedConsentCreatedOn = existing_obj.publishedConsentCreatedOn
        obj.deleted = existing_obj.deleted
        return super(SubpopulationDao, self)._do_update(session, obj, existing_obj)

    def get_subpopulation_with_session(self, session, app_id, guid, include_deleted=False):
        subpopulation = self.get_with_session(session, guid)
        if subpopulation is None or subpopulation.appId != app_id or (subpopulation.deleted and not include_deleted):
            raise NotFound(f"Subpopulation {guid} not found.")
        return subpopulation

    @staticmethod
    def get_subpopulations_with_session(session, app_id, include_deleted=False):
        query = session.query(Subpopulation).filter(Subpopulation.appId == app_id)
        if not include_deleted:
            query = query.filter(Subpopulation.deleted.is_(False))
        return query.order_by(Subpopulation.created, Subpopulation.guid).all()

    def delete_with_session(self, session, app_id, guid, physical=False):
        subpopulation = self.get_subpopulation_with_session(session, app_id, guid, include_deleted=physical)
        if not physical:
            subpopulation.deleted = True
            subpopulation.version += 1
            return subpopulation
        if session.query(ConsentSignature).filter(ConsentSignature.subpopGuid == guid).first() is not None:
            raise ConstraintViolation(f"Subpopulation {guid} has been signed by participants.")
        session.query(StudyConsent).filter(StudyConsent.subpopGuid == guid).delete()
        session.delete(subpopulation)
        return subpopulation

    def to_client_json(self, model):
        result = {
            "guid": model.guid,
            "name": model.name,
            "required": model.required,
            "criteria": (model.criteria or Criteria()).to_json(),
            "substudyIdsAssignedOnConsent": sorted(model.substudyIdsAssignedOnConsent or []),
            "publishedConsentCreatedOn":
                model.publishedConsentCreatedOn.isoformat() if model.publishedConsentCreatedOn else None,
            "deleted": model.deleted,
            "version": model.version,
        }
        if model.description:
            result["description"] = model.description
        return result

    def from_client_json(self, resource, app_id=None, id_=None, expected_version=None, **kwargs):
        return Subpopulation(
            guid=id_ or resource.get("guid"),
            appId=app_id,
            name=required_field(resource, "name"),
            description=resource.get("description"),
            required=bool(resource.get("required", True)),
            criteria=Criteria.from_json(resource.get("criteria")),
            substudyIdsAssignedOnConsent=sorted(set(resource.get("substudyIdsAssignedOnConsent") or [])),
            version=expected_version if expected_version is not None else resource.get("version"),
        )
