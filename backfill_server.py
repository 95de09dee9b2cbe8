#!/usr/bin/env python3
"""
HTTP front end for Arweave Backfill.

``POST /fix`` runs the full recovery for one transaction and streams its
progress back as plain text while it runs. Each request gets its own
progress sink, so concurrent requests never see each other's output.
"""

import os
import json
import queue
import logging
import threading
from typing import Callable, Optional

from flask import Flask, Response, jsonify, request, stream_with_context
from flask_cors import CORS

from backfill.artifact_store import validate_content_id
from backfill.config import BackfillConfig, load_config
from backfill.errors import UsageError
from backfill.pipeline import BackfillPipeline
from backfill.progress import ProgressLog

logger = logging.getLogger(__name__)

_END = object()

PipelineFactory = Callable[[ProgressLog], BackfillPipeline]


def _stream_fix(txid: str, pipeline_factory: PipelineFactory):
    """Run ``fix`` in a worker thread and yield its progress lines as they arrive."""
    lines: "queue.Queue" = queue.Queue()
    progress = ProgressLog(writer=lambda message: lines.put(f"{message}\n"),
                           logger=logging.getLogger("backfill.server.fix"))

    def worker():
        try:
            result = pipeline_factory(progress).fix(txid)
            lines.put(f"\nDONE: {json.dumps(result)}\n")
        except Exception as e:
            logger.error(f"Fix failed for {txid}: {e}")
            lines.put(f"\nERROR: {e}\n")
        finally:
            lines.put(_END)

    thread = threading.Thread(target=worker, name=f"fix-{txid}", daemon=True)
    thread.start()

    while True:
        item = lines.get()
        if item is _END:
            break
        yield item
    thread.join()


def create_app(config: Optional[BackfillConfig] = None,
               pipeline_factory: Optional[PipelineFactory] = None) -> Flask:
    app = Flask(__name__)
    CORS(app, send_wildcard=True)

    if pipeline_factory is None:
        config = config or load_config()

        def pipeline_factory(progress: ProgressLog) -> BackfillPipeline:
            return BackfillPipeline(config, progress=progress)

    @app.route("/", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    @app.route("/fix", methods=["POST"])
    def fix():
        payload = request.get_json(silent=True) or {}
        txid = payload.get("txid") if isinstance(payload, dict) else None
        if not txid:
            return Response("Missing txid\n", status=400, mimetype="text/plain")
        try:
            txid = validate_content_id(str(txid))
        except UsageError as e:
            return Response(f"{e}\n", status=400, mimetype="text/plain")

        logger.info(f"Starting fix for {txid}")
        return Response(
            stream_with_context(_stream_fix(txid, pipeline_factory)),
            content_type="text/plain; charset=utf-8",
        )

    return app


if __name__ == "__main__":
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    port = int(os.getenv("PORT", "3000"))
    logger.info(f"Backfill API listening on port {port}")
    create_app(config).run(host="0.0.0.0", port=port, threaded=True)
