# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/server/app.py

"""HTTP surface of an agent: Flask routes served by werkzeug."""

import socket
import threading
import time
from typing import List, Optional

from flask import Flask, Response, jsonify, request
from loguru import logger
from pydantic import TypeAdapter, ValidationError
from werkzeug.serving import make_server

from tfcmesh.agent import Agent
from tfcmesh.errors import (
    AliasConflictError,
    CatalogWriteError,
    CentralCatalogError,
    DuplicateRequestError,
    FetchError,
    IntegrityMismatchError,
    MalformedRequestError,
    QueueFullError,
    TfcMeshError,
)
from tfcmesh.models import CatalogEntry, Registration, Selector, TransferCollection

STATUS_CODES = {
    MalformedRequestError: 400,
    AliasConflictError: 409,
    DuplicateRequestError: 409,
    QueueFullError: 503,
    FetchError: 502,
    IntegrityMismatchError: 500,
    CatalogWriteError: 500,
    CentralCatalogError: 500,
}

_entries = TypeAdapter(List[CatalogEntry])


def _status_code(error: TfcMeshError) -> int:
    for cls in type(error).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise MalformedRequestError("Request body is not valid JSON")
    return data


def _int_arg(name: str, default: int) -> int:
    value = request.args.get(name, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise MalformedRequestError(f"{name} must be an integer, got {value!r}") from e


def create_app(agent: Agent) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False

    @app.errorhandler(TfcMeshError)
    def handle_error(error: TfcMeshError):
        code = _status_code(error)
        if code >= 500:
            logger.error(f"{request.method} {request.path} -> {code}: {error}")
        else:
            logger.warning(f"{request.method} {request.path} -> {code}: {error}")
        return jsonify({"error": str(error)}), code

    @app.route("/status", methods=["GET"])
    def status():
        return jsonify(agent.status().to_wire())

    @app.route("/agents", methods=["GET"])
    def agents():
        return jsonify(agent.registry.snapshot())

    @app.route("/files", methods=["GET"])
    def files():
        return jsonify(agent.files(request.args.get("pattern", "")))

    @app.route("/register", methods=["POST"])
    def register():
        try:
            reg = Registration.model_validate(_json_body())
        except ValidationError as e:
            raise MalformedRequestError(f"Invalid registration: {e}") from e
        added = agent.register(reg.alias, reg.agent)
        return jsonify({"status": "ok", "registered": added})

    @app.route("/request", methods=["POST"])
    def submit():
        try:
            collection = TransferCollection.model_validate(_json_body())
        except ValidationError as e:
            raise MalformedRequestError(f"Invalid transfer collection: {e}") from e
        ids = agent.accept(collection)
        return jsonify({"status": "ok", "ids": ids})

    @app.route("/upload", methods=["POST"])
    def upload():
        data = request.files.get("data")
        lfn = request.headers.get("Lfn", "")
        if data is None or not lfn:
            raise MalformedRequestError("Upload needs a data part and an Lfn header")
        try:
            size = int(request.headers.get("Bytes", ""))
        except ValueError as e:
            raise MalformedRequestError("Bytes header must be an integer") from e
        logger.debug(
            f"Upload {lfn} from {request.headers.get('Src', '?')} "
            f"(source pfn {request.headers.get('Pfn', '?')})"
        )
        receipt = agent.receive_upload(lfn, size, request.headers.get("Hash", ""), data.stream)
        return jsonify(receipt.to_wire())

    @app.route("/tfc", methods=["POST"])
    def add_entries():
        try:
            entries = _entries.validate_python(_json_body())
        except ValidationError as e:
            raise MalformedRequestError(f"Invalid catalog entries: {e}") from e
        count = agent.add_entries(entries)
        return jsonify({"status": "ok", "added": count})

    @app.route("/tfc", methods=["GET"])
    def records():
        selector = Selector(
            dataset=request.args.get("dataset", ""),
            block=request.args.get("block", ""),
            lfn=request.args.get("lfn", ""),
        )
        return jsonify([e.to_wire() for e in agent.records(selector)])

    @app.route("/requests", methods=["GET"])
    def list_requests():
        # no status: what is still waiting in the queue
        status = request.args.get("status", "")
        if not status:
            found = agent.pending()
        else:
            found = agent.requests("" if status == "all" else status)
        return jsonify([r.to_wire() for r in found])

    @app.route("/requests/<int:request_id>", methods=["GET"])
    def request_status(request_id: int):
        found = agent.request(request_id)
        if found is None:
            return jsonify({"error": f"Request {request_id} is unknown"}), 404
        return jsonify(found.to_wire())

    @app.route("/requests/<int:request_id>", methods=["DELETE"])
    def cancel(request_id: int):
        if not agent.cancel(request_id):
            return jsonify({"error": f"Request {request_id} is not pending"}), 404
        return jsonify({"status": "ok", "id": request_id})

    @app.route("/transfers", methods=["GET"])
    def transfers():
        t0 = _int_arg("t0", 0)
        t1 = _int_arg("t1", int(time.time()))
        return jsonify([r.to_wire() for r in agent.transfers(t0, t1)])

    @app.route("/dump", methods=["GET"])
    def dump():
        text = agent.dump()
        if text is None:
            return jsonify({"error": "Catalog dump not supported"}), 501
        return Response(text, mimetype="text/plain")

    @app.route("/snapshot", methods=["POST"])
    def snapshot():
        path = agent.publish_snapshot()
        return jsonify({"status": "ok", "path": str(path)})

    return app


class AgentServer:
    """Threaded werkzeug server bound before the agent starts.

    Binding first lets port 0 pick a free port; the agent url is then
    rewritten to the real one so self-registration advertises it.
    """

    def __init__(self, agent: Agent, host: str = "0.0.0.0"):
        self.agent = agent
        self.app = create_app(agent)
        self.httpd = make_server(host, agent.config.port, self.app, threaded=True)
        if agent.config.port == 0:
            advertised = host if host not in ("", "0.0.0.0") else socket.gethostname()
            agent.config.url = f"http://{advertised}:{self.port}"
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.httpd.server_port

    def start(self) -> "AgentServer":
        """Serve in a background thread."""
        self._thread = threading.Thread(target=self.httpd.serve_forever, name="agent-http", daemon=True)
        self._thread.start()
        logger.info(f"Serving {self.agent.name} on port {self.port}")
        return self

    def serve_forever(self):
        logger.info(f"Serving {self.agent.name} on port {self.port}")
        self.httpd.serve_forever()

    def shutdown(self):
        self.httpd.shutdown()
        if self._thread is not None:
            self._thread.join(5)
        self.httpd.server_close()
