"""Flask application entry point for the CMDB topology service."""

from __future__ import annotations

import atexit
from pathlib import Path

from flask import Flask

from .api.routes import create_blueprint
from .bootstrap import TopologyContext, build_context

URL_PREFIX = "/api/v3"


def create_app(base_dir: Path | None = None, context: TopologyContext | None = None) -> Flask:
    ctx = context or build_context(base_dir)
    app = Flask(__name__)
    app.config["CMDB_CONFIG"] = ctx.config
    app.extensions["cmdb_topology"] = ctx
    app.register_blueprint(create_blueprint(ctx.engine), url_prefix=URL_PREFIX)
    atexit.register(ctx.database.dispose)
    return app


if __name__ == "__main__":
    app = create_app()
    cfg = app.config["CMDB_CONFIG"]
    app.run(host=cfg.server.host, port=cfg.server.port)
