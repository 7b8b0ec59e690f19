"""
To serve with uwsgi:

uwsgi --http 0.0.0.0:8002 --manage-script-name --mount /=sigflow.web_gui.server_flask:create_app()

To serve with python:

python -m sigflow.web_gui.server_flask 8002
(then call http://localhost:8002/get_graph)

"""
import sys
import traceback
import logging
import posixpath
import json

from flask import Flask, request, make_response
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
import msgpack as msgpack_converter

RPC_ENDPOINT = '/RPC2'
RETURN_TYPES = ["application/json", "application/msgpack"]

def create_app(config=None):
    from sigflow.web_gui import api
    from sigflow.flow import __version__

    SHOW_EXCEPTIONS = False
    if hasattr(config, 'get'):
        SHOW_EXCEPTIONS = config.get('show_exceptions', False)

    app = Flask(__name__)
    CORS(app)

    @app.route('/')
    def root():
        content = {'name': 'sigflow', 'version': __version__, 'methods': api.api_methods}
        response = make_response(json.dumps(content))
        response.headers['Content-Type'] = "application/json"
        return response

    @app.errorhandler(Exception)
    def handle_error(e):
        code = 500
        if isinstance(e, HTTPException):
            code = e.code
        if SHOW_EXCEPTIONS:
            content = {'exception': repr(e), 'traceback': traceback.format_exc()}
        else:
            content = {'exception': 'API exception', 'traceback': ''}
        logging.info(traceback.format_exc())
        response = make_response(msgpack_converter.packb(content, use_bin_type=True), code)
        response.headers['Content-Type'] = "application/msgpack"
        return response

    def wrap_method(mfunc):
        def wrapper(*args, **kwargs):
            if request.method == "GET":
                real_kwargs = request.args.to_dict()
            else:
                real_kwargs = request.get_json() if request.get_data() else {}
            return_type = request.headers.get("Accept", "application/msgpack")
            if return_type not in RETURN_TYPES:
                # fall back to application/json for debugging GET requests
                return_type = "application/json"
            content = mfunc(*args, **real_kwargs)
            if return_type == "application/msgpack":
                packed = msgpack_converter.packb(content, use_bin_type=True)
            else:
                packed = json.dumps(content)

            response = make_response(packed)
            response.headers['Content-Type'] = return_type
            return response
        wrapper.__name__ = mfunc.__name__
        return wrapper

    api.initialize(config)

    for method in api.api_methods:
        mfunc = getattr(api, method)
        wrapped = wrap_method(mfunc)
        path = posixpath.join(RPC_ENDPOINT, method)
        shortpath = posixpath.join("/", method)
        app.add_url_rule(path, path, wrapped, methods=["POST", "GET"])
        app.add_url_rule(shortpath, shortpath, wrapped, methods=["POST", "GET"])

    logging.info("sigflow %s serving %d methods", __version__, len(api.api_methods))

    return app

if __name__ == '__main__':
    logging.basicConfig(level=logging.WARNING)
    port = 8002
    if len(sys.argv) > 1:
        port = int(sys.argv[1])
    app = create_app()
    app.run(port=port)
