from flask import request
from flask_restful import Resource
from werkzeug.exceptions import BadRequest, Forbidden

from consent_service import api_util, app_util


def get_request_json():
    resource = request.get_json(force=True, silent=True)
    if not isinstance(resource, dict):
        raise BadRequest("Request body must be a JSON object.")
    return resource


def get_request_arg_bool(key, default=False):
    """Reads a true/false query parameter, returning default when it is absent."""
    if key not in request.args:
        return default
    return api_util.parse_bool(request.args.get(key), key)


def get_page_args():
    return api_util.parse_page_size(request.args.get("pageSize")), request.args.get("offsetKey")


class BaseApi(Resource):
    """Base class for API handlers of entities that belong to the caller's app.

  Subclasses implement _get_model, _list_models and _delete_model against their DAO. Updates
  carry the expected version in an If-Match ETag or in the body's "version" field.

  Role checks are declared per method through the method_decorators class property, e.g.:
    method_decorators = {"get": [app_util.auth_required(api_util.STUDY_STAFF)]}
  """

    def __init__(self, dao):
        self.dao = dao

    def get(self, id_=None):
        caller = app_util.get_caller()
        with self.dao.session() as session:
            if id_ is None:
                models = self._list_models(session, caller.appId, get_request_arg_bool("includeDeleted"))
                return {"items": [self.dao.to_client_json(model) for model in models], "total": len(models)}
            return self._make_response(self._get_model(session, caller.appId, id_))

    def post(self, id_=None):
        caller = app_util.get_caller()
        resource = get_request_json()
        with self.dao.session() as session:
            if id_ is None:
                m = self.dao.from_client_json(resource, app_id=caller.appId)
                self.dao.insert_with_session(session, m)
                session.flush()
                result, _, headers = self._make_response(m)
                return result, 201, headers

            self._get_model(session, caller.appId, id_)
            m = self.dao.from_client_json(
                resource, app_id=caller.appId, id_=id_, expected_version=self._get_expected_version()
            )
            updated = self.dao.update_with_session(session, m)
            session.flush()
            return self._make_response(updated)

    def delete(self, id_):
        caller = app_util.get_caller()
        physical = get_request_arg_bool("physical")
        if physical and not set(caller.roles or []) & set(api_util.SUPERADMIN_AND_ADMIN):
            raise Forbidden("Only administrators can permanently delete.")
        with self.dao.session() as session:
            self._delete_model(session, caller.appId, id_, physical)
        return {"message": "Deleted."}

    def _make_response(self, obj):
        etag = make_etag(obj.version)
        return self.dao.to_client_json(obj), 200, {"ETag": etag}

    @staticmethod
    def _get_expected_version():
        etag = request.headers.get("If-Match")
        return parse_etag(etag) if etag else None

    def _get_model(self, session, app_id, id_):
        raise NotImplementedError()

    def _list_models(self, session, app_id, include_deleted):
        raise NotImplementedError()

    def _delete_model(self, session, app_id, id_, physical):
        raise NotImplementedError()


def make_etag(version):
    return 'W/"{}"'.format(str(version))


def parse_etag(etag):
    if etag.startswith('W/"') and etag.endswith('"'):
        version_str = etag.split('"')[1]
        try:
            return int(version_str)
        except ValueError:
            raise BadRequest(f"Invalid version: {version_str}")
    raise BadRequest(f"Invalid ETag: {etag}")
