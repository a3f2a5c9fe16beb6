import datetime
import enum
import json


class ConsentJsonEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, (datetime.datetime, datetime.date)):
            return obj.isoformat()
        if isinstance(obj, enum.Enum):
            return str(obj)
        if isinstance(obj, set):
            return sorted(obj)
        return json.JSONEncoder.default(self, obj)
