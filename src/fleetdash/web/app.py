"""HTTP surface of the dashboard."""

from __future__ import annotations

import logging
import math
from typing import Any

from flask import Flask, jsonify, redirect, request, send_from_directory

from fleetdash.core.files import FileCatalog
from fleetdash.core.identity import has_physical_id
from fleetdash.errors import (
    CommandError,
    FileNotFoundInCatalogError,
    InvalidFileNameError,
    NodeNotFoundError,
)
from fleetdash.services import NodeService

logger = logging.getLogger(__name__)


class InvalidRequest(Exception):
    pass


def _body() -> dict[str, Any]:
    """JSON body, falling back to form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    if request.form:
        return request.form.to_dict()
    raise InvalidRequest("invalid body")


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key, "")
    return value if isinstance(value, str) else str(value)


def _number(data: dict[str, Any], key: str) -> float:
    value = data.get(key, 0)
    if isinstance(value, bool):
        raise InvalidRequest(f"invalid {key}")
    try:
        number = float(value or 0)
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(f"invalid {key}") from exc
    if not math.isfinite(number):
        raise InvalidRequest(f"invalid {key}")
    return number


def create_app(service: NodeService, catalog: FileCatalog, broker: str = "") -> Flask:
    app = Flask(__name__)

    @app.errorhandler(InvalidRequest)
    def _invalid_request(exc: InvalidRequest):
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(NodeNotFoundError)
    def _node_not_found(_exc: NodeNotFoundError):
        return jsonify({"error": "node not found"}), 404

    @app.errorhandler(FileNotFoundInCatalogError)
    def _file_not_found(_exc: FileNotFoundInCatalogError):
        return jsonify({"error": "file not found"}), 404

    @app.errorhandler(InvalidFileNameError)
    def _invalid_name(_exc: InvalidFileNameError):
        return jsonify({"error": "invalid file name"}), 400

    @app.errorhandler(CommandError)
    def _command_failed(exc: CommandError):
        logger.warning("%s", exc)
        return jsonify({"error": "broker unavailable", "topic": exc.topic}), 503

    @app.get("/")
    def index():
        return jsonify({"broker": broker, "nodes": len(service.registry)})

    # nodes

    @app.get("/api/nodes")
    def list_nodes():
        return jsonify(service.get_snapshot())

    @app.delete("/api/nodes/<path:node_id>")
    def delete_node(node_id: str):
        result = service.delete_node(node_id)
        if not has_physical_id(node_id):
            return jsonify({"status": "deleted", "node": node_id, "count": result.count})
        return jsonify(
            {"status": "deleted", "mac": result.physical_id, "count": result.count}
        )

    @app.get("/logs/<path:node_id>")
    def node_logs(node_id: str):
        return jsonify({"node": node_id, "logs": service.get_logs(node_id)})

    @app.post("/config")
    @app.post("/set-threshold", endpoint="set_threshold")
    def set_config():
        data = _body()
        node_id = _text(data, "node")
        if not node_id:
            raise InvalidRequest("node required")
        topic = service.set_config(
            node_id,
            ck=_text(data, "ck"),
            area=_text(data, "area"),
            no=_text(data, "no"),
            min_value=_number(data, "min"),
            max_value=_number(data, "max"),
        )
        return jsonify({"status": "ok", "topic": topic})

    @app.post("/ota")
    def trigger_ota():
        data = _body()
        node_id = _text(data, "node")
        if not node_id:
            raise InvalidRequest("node required")
        topic = service.trigger_ota(node_id, _text(data, "url"))
        return jsonify({"status": "OTA triggered", "topic": topic})

    # firmware files

    @app.get("/api/files")
    def list_files():
        return jsonify([record.model_dump(mode="json") for record in catalog.list_files()])

    @app.delete("/api/files/<name>")
    def delete_file(name: str):
        deleted = catalog.delete(name)
        return jsonify({"status": "deleted", "name": deleted})

    @app.post("/api/files/<name>/rename")
    def rename_file(name: str):
        data = _body()
        record = catalog.rename(name, _text(data, "new_name"))
        return jsonify(record.model_dump(mode="json"))

    @app.post("/upload")
    def upload():
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            return "file required", 400
        catalog.save(upload.filename, upload.stream)
        return redirect("/")

    @app.get("/files/<name>")
    def download(name: str):
        return send_from_directory(catalog.path.resolve(), name)

    return app
