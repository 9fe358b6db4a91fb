"""
Frame Service HTTP API

Flask application exposing resolved geostationary frames:

    GET /health                  service and cache status
    GET /api/element-sets        element sets currently in use
    GET /api/frames              resolved frames (metadata, no pixels)
    GET /api/frames/render.png   composited sphere rendered headlessly
"""

import asyncio
import traceback
from datetime import datetime, timezone
from io import BytesIO
from typing import Optional

import structlog
from flask import Flask, jsonify, request, send_file
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from frame_service.config import FrameServiceConfig
from frame_service.frames import FrameResolver
from frame_service.logging_config import configure_logging, configure_structlog
from frame_service.propagator import ecef_to_geodetic
from frame_service.render import render_frames
from frame_service.store import RedisStore

logger = structlog.get_logger()


def frame_to_json(frame) -> dict:
    lat, lon, alt_km = ecef_to_geodetic(frame.position_ecef_m)
    data = frame.summary()
    data.update({
        "subsatellite_latitude": lat,
        "subsatellite_longitude": lon,
        "altitude_km": alt_km,
    })
    return data


def create_app(resolver: Optional[FrameResolver] = None,
               config: Optional[FrameServiceConfig] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        resolver: Frame resolver (default: wired from ``config``)
        config: Service configuration (default: read from the environment)
    """
    config = config or FrameServiceConfig()
    resolver = resolver or FrameResolver.from_config(config)

    app = Flask(__name__)
    CORS(app)
    app.config["FRAME_RESOLVER"] = resolver
    app.config["RENDER_SIZE"] = config.RENDER_SIZE

    @app.route("/health")
    def health():
        store = resolver.text_cache.store
        status = "healthy"
        if isinstance(store, RedisStore):
            try:
                store.client.ping()
            except Exception as e:
                logger.warning("Redis ping failed", error=str(e))
                status = "degraded"
        return jsonify({
            "status": status,
            "cache_store": type(store).__name__,
            "element_set_mode": resolver.element_set_mode.value,
            "satellites": list(resolver.catalog),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    @app.route("/api/element-sets")
    def element_sets():
        try:
            found = asyncio.run(resolver.fetch_element_sets())
        except Exception as e:
            logger.error("Element-set fetch failed", error=str(e))
            return jsonify({"error": str(e)}), 502
        return jsonify({
            sat_id: {
                "name": es.name,
                "norad_id": es.norad_id,
                "epoch": es.epoch.isoformat(),
                "line1": es.line1,
                "line2": es.line2,
            }
            for sat_id, es in found.items()
        })

    @app.route("/api/frames")
    def frames():
        requested = request.args.get("satellites")
        satellite_ids = requested.split(",") if requested else None
        resolved = asyncio.run(resolver.resolve_frames(satellite_ids))
        logger.info("Frames resolved", count=len(resolved))
        return jsonify({
            "frames": [frame_to_json(f) for f in resolved],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    @app.route("/api/frames/render.png")
    def render_png():
        size = request.args.get("size", default=app.config["RENDER_SIZE"], type=int)
        size = max(16, min(size, 2048))
        resolved = asyncio.run(resolver.resolve_frames())
        buffer = BytesIO()
        render_frames(resolved, size=size, output_path=buffer)
        buffer.seek(0)
        return send_file(buffer, mimetype="image/png")

    @app.errorhandler(Exception)
    def handle_error(error):
        """Global error handler"""
        if isinstance(error, HTTPException):
            return error
        logger.error(f"Unhandled error: {error}\n{traceback.format_exc()}")
        return jsonify({
            "error": "Internal server error",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }), 500

    return app


if __name__ == "__main__":
    configure_logging()
    configure_structlog()
    logger.info("Starting Frame Service")
    config = FrameServiceConfig()
    create_app(config=config).run(host="0.0.0.0", port=config.PORT)
