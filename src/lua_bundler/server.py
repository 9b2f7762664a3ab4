"""Minimal HTTP server for a written bundle.

Lets a client fetch the bundle with ``game:HttpGet`` during development.
"""

import logging
from pathlib import Path

from flask import Flask, abort, send_file

logger = logging.getLogger(__name__)


def create_app(path: str | Path) -> Flask:
    """Create a Flask app serving one file at ``/`` and ``/<file name>``."""
    bundle_path = Path(path).resolve()
    app = Flask(__name__)

    @app.route("/")
    @app.route("/<name>")
    def bundle(name: str | None = None):
        if name is not None and name != bundle_path.name:
            abort(404)
        if not bundle_path.is_file():
            abort(404)
        return send_file(bundle_path, mimetype="text/plain", max_age=0)

    return app


def serve_file(path: str | Path, port: int = 8080, host: str = "0.0.0.0") -> None:
    """Serve a bundle until interrupted. Blocks."""
    app = create_app(path)
    logger.info(f"Serving {path} on http://{host}:{port}/")
    app.run(host=host, port=port)
