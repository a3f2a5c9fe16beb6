import argparse
import os
import shlex
import subprocess
import sys

GUNICORN_COMMAND = "gunicorn --bind 0.0.0.0:{port} --workers {workers} --timeout 60 consent_service.main:app"


def run():
    parser = argparse.ArgumentParser(prog='consent-service', description="Participant consent web service")
    parser.add_argument("--debug", help="enable debug output", default=False, action="store_true")  # noqa
    parser.add_argument("--flask", help="launch flask app", default=False, action="store_true")  # noqa
    parser.add_argument("--gunicorn", help="launch gunicorn web service", default=False, action="store_true")  # noqa
    parser.add_argument("--port", help="port to listen on", default=8080, type=int)  # noqa
    parser.add_argument("--workers", help="gunicorn worker count", default=2, type=int)  # noqa
    parser.add_argument("--unittests", help="enable unittest mode", default=False, action="store_true")  # noqa

    args = parser.parse_args()

    if args.unittests:
        os.environ["UNITTEST_FLAG"] = "1"

    if args.flask == args.gunicorn:
        print("Exactly one of --flask or --gunicorn must be given.")
        sys.exit(1)

    if args.flask:
        # This is used when running locally only; deployments serve the app through gunicorn.
        from consent_service.main import app
        app.run(host='127.0.0.1', port=args.port, debug=args.debug)
        sys.exit(0)

    p_args = shlex.split(GUNICORN_COMMAND.format(port=args.port, workers=args.workers))
    print(p_args)
    p = subprocess.Popen(p_args, env=dict(os.environ))
    sys.exit(p.wait())


if __name__ == '__main__':
    run()
