"""Flask blueprint for the host topology API."""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from ..context import RequestContext
from ..engine import EngineResult, TopologyEngine
from . import schemas

LOGGER = logging.getLogger("cmdb.api")

REQUEST_ID_HEADER = "X-Request-Id"


def create_blueprint(engine: TopologyEngine) -> Blueprint:
    bp = Blueprint("cmdb_topology_api", __name__)

    @bp.before_request
    def open_context():
        g.ctx = engine.new_context(request.headers.get(REQUEST_ID_HEADER))

    @bp.after_request
    def echo_request_id(response):
        ctx = g.get("ctx")
        if ctx is not None:
            response.headers[REQUEST_ID_HEADER] = ctx.rid
        return response

    def respond(result: EngineResult):
        rid = g.ctx.rid
        if result.ok:
            return jsonify(schemas.success(result.payload, rid).to_dict())
        envelope = schemas.failure(result.error or "error", result.code, rid)
        return jsonify(envelope.to_dict()), (400 if result.is_client_error else 500)

    def body():
        return request.get_json(force=True, silent=True) or {}

    @bp.route("/health", methods=["GET"])
    def health():
        return jsonify(schemas.success({"status": "ok"}, g.ctx.rid).to_dict())

    @bp.route("/hosts/app/<bk_biz_id>/list_hosts", methods=["POST"])
    def list_biz_hosts(bk_biz_id: str):
        return respond(engine.list_biz_hosts(bk_biz_id, body(), g.ctx))

    @bp.route("/hosts/list_hosts_without_app", methods=["POST"])
    def list_hosts_without_biz():
        return respond(engine.list_hosts_without_biz(body(), g.ctx))

    @bp.route("/hosts/app/<bk_biz_id>/list_hosts_topo", methods=["POST"])
    def list_biz_hosts_topo(bk_biz_id: str):
        return respond(engine.list_biz_hosts_topo(bk_biz_id, body(), g.ctx))

    @bp.route("/upgrade", methods=["POST"])
    def upgrade():
        payload = body()
        version = payload.get("version") if isinstance(payload, dict) else None
        LOGGER.info("upgrade requested, version: %s, rid: %s", version or "all", g.ctx.rid)
        return respond(engine.upgrade(version, RequestContext(rid=g.ctx.rid)))

    return bp
