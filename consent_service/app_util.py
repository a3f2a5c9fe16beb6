import calendar
import email.utils
import logging

import flask
import pytz
from flask import request
from werkzeug.exceptions import Forbidden, Unauthorized

from consent_service import api_util, clock, config
from consent_service.dao.account_dao import AccountSessionDao
from consent_service.logic.criteria import parse_accept_language, parse_user_agent
from consent_service.services.membership import ClientContext

_GMT = pytz.timezone("GMT")


def handle_database_disconnect(err):
    """Turns a lost database connection into a 503 so the client retries. Other DBAPIErrors propagate."""
    if err.connection_invalidated:
        return "Database connection lost, retry the request", 503
    raise err


def nonprod(func):
    """Rejects the call with 403 unless the config allows nonprod requests."""

    def wrapped(*args, **kwargs):
        if not config.getSettingJson(config.ALLOW_NONPROD_REQUESTS, False):
            raise Forbidden("This request is only available in nonprod environments.")
        return func(*args, **kwargs)

    return wrapped


def get_auth_token():
    header = request.headers.get("Authorization", '')
    if not header:
        return None
    try:
        scheme, token = header.split(' ', 1)
    except ValueError:
        raise Unauthorized(f"Invalid Authorization Header: {header}")
    if scheme.lower() != "bearer":
        raise Unauthorized(f"Unsupported Authorization scheme: {scheme}")
    return token.strip()


def get_session_account():
    """The account signed in with the request's bearer token, or None."""
    if "session_account" not in flask.g:
        token = get_auth_token()
        account = None
        if token:
            with AccountSessionDao().session() as session:
                account = AccountSessionDao.get_account_for_token(session, token)
        flask.g.session_account = account
    return flask.g.session_account


def get_caller():
    account = get_session_account()
    if account is None:
        raise Unauthorized("Not signed in.")
    return account


def check_auth(role_whitelist):
    """Raises Unauthorized or Forbidden if the current caller is not allowed."""
    account = get_caller()
    roles = set(account.roles or []) | {api_util.PARTICIPANT}
    if roles & set(role_whitelist):
        return account

    logging.warning(f"Account {account.id} has roles {sorted(account.roles or [])}, but {role_whitelist} is required")
    raise Forbidden()


def auth_required(role_whitelist):
    """Decorates a handler so it only runs for a signed in caller holding one of the roles.

  Every signed in account counts as holding the participant role.
  """
    assert role_whitelist, "auth_required needs at least one role"

    if not isinstance(role_whitelist, list):
        role_whitelist = [role_whitelist]

    def auth_required_wrapper(func):
        def wrapped(*args, **kwargs):
            check_auth(role_whitelist)
            return func(*args, **kwargs)

        return wrapped

    return auth_required_wrapper


def get_client_context():
    """Criteria inputs sent by the client app in its request headers."""
    os_name, app_version = parse_user_agent(request.headers.get("User-Agent"))
    return ClientContext(
        osName=os_name,
        appVersion=app_version,
        languages=parse_accept_language(request.headers.get("Accept-Language")) or None,
    )


def add_headers(response):
    """Marks every response as uncacheable JSON."""
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Content-Type"] = "application/json; charset=utf-8"
    response.headers["Date"] = email.utils.formatdate(
        calendar.timegm(pytz.utc.localize(clock.CLOCK.now()).astimezone(_GMT).timetuple()), usegmt=True
    )
    response.headers["Pragma"] = "no-cache"
    response.headers["Cache-control"] = "no-cache, must-revalidate"
    response.headers["Expires"] = email.utils.formatdate(0.0, usegmt=True)
    return response
