"""Role names and the request and response conversions shared by the API resources."""
import datetime

from dateutil.parser import parse
from werkzeug.exceptions import BadRequest

from consent_service import config

# Role constants
SUPERADMIN = "superadmin"
ADMIN = "admin"
DEVELOPER = "developer"
RESEARCHER = "researcher"
ORG_ADMIN = "org_admin"
WORKER = "worker"
# Held implicitly by every signed-in account.
PARTICIPANT = "participant"

ADMINISTRATIVE_ROLES = [SUPERADMIN, ADMIN, DEVELOPER, RESEARCHER, ORG_ADMIN, WORKER]
# Roles whose holders see every account in the app regardless of substudy.
UNSCOPED_ROLES = [SUPERADMIN, ADMIN, WORKER]
SUPERADMIN_AND_ADMIN = [SUPERADMIN, ADMIN]
DEVELOPER_AND_ADMIN = [DEVELOPER, ADMIN, SUPERADMIN]
STUDY_STAFF = [RESEARCHER, DEVELOPER, ORG_ADMIN, ADMIN, SUPERADMIN, WORKER]
ORG_ADMIN_AND_ADMIN = [ORG_ADMIN, ADMIN, SUPERADMIN]
ALL_ROLES = ADMINISTRATIVE_ROLES + [PARTICIPANT]


def parse_date(date_str, date_only=False):
    """Parses a client supplied date or timestamp into a naive UTC datetime.

  With date_only, any time of day other than midnight is rejected.
  """
    try:
        parsed = parse(date_str)
    except (TypeError, ValueError, OverflowError):
        raise BadRequest(f"Invalid date: {date_str}")
    offset = parsed.utcoffset()
    parsed = parsed.replace(tzinfo=None)
    if offset:
        parsed -= offset
    if date_only and parsed.time() != datetime.time.min:
        raise BadRequest(f"{date_str} is not a date")
    return parsed


def format_json_date(obj, field_name):
    """Renders a datetime field of a client JSON dict as ISO 8601, dropping it when unset."""
    if field_name not in obj:
        return
    if obj[field_name] is None:
        del obj[field_name]
    else:
        obj[field_name] = obj[field_name].isoformat()


def format_json_enum(obj, field_name):
    """Renders an enum field of a client JSON dict by name."""
    if field_name in obj and obj[field_name] is not None:
        obj[field_name] = str(obj[field_name])


def parse_bool(value, field_name):
    if value is None or isinstance(value, bool):
        return value
    lowered = str(value).lower()
    if lowered in ("true", "1"):
        return True
    if lowered in ("false", "0"):
        return False
    raise BadRequest(f"Invalid value for {field_name}: {value}")


def parse_page_size(value):
    """Bounds a requested page size by the configured limits."""
    if value is None:
        return config.getSettingJson(config.DEFAULT_PAGE_SIZE, 50)
    try:
        page_size = int(value)
    except ValueError:
        raise BadRequest(f"Invalid pageSize: {value}")
    max_page_size = config.getSettingJson(config.MAX_PAGE_SIZE, 100)
    if page_size < 1 or page_size > max_page_size:
        raise BadRequest(f"pageSize must be between 1 and {max_page_size}")
    return page_size


def make_list_response(results, item_converter):
    response = {
        "items": [item_converter(item) for item in results.items],
        "total": results.total,
    }
    if results.pagination_token:
        response["offsetKey"] = results.pagination_token
    return response
