import logging

from flask import Flask

from consent_service.config import get_config
from consent_service.json_encoder import ConsentJsonEncoder


app = Flask(__name__)

app.config.setdefault("RESTFUL_JSON", {"cls": ConsentJsonEncoder})

API_PREFIX = "/v1/"


# If we are being run under gunicorn, hookup gunicorn's logging handler.
if __name__ != '__main__':
    gunicorn_logger = logging.getLogger('gunicorn.error')
    if gunicorn_logger.handlers:
        app.logger.handlers = gunicorn_logger.handlers
        app.logger.setLevel(gunicorn_logger.level)


def flask_warmup():
    # Load configuration into the cache.
    get_config()
    return '{ "success": "true" }'
