# app.py - CropTrade Flask backend: marketplace, logistics, soil kits and AI advisory tools
# Run with `python app.py`, or `gunicorn "app:create_app()"`.

import logging

from flask import Flask, jsonify
from flask_cors import CORS

import ai_routes
import auctions
import auth
import config
import database as db
import marketplace
import orders
import soil_kits
import speech
import traceability
import transport
from ai_client import GeminiClient
from errors import register_error_handlers

logger = logging.getLogger("croptrade")
logging.basicConfig(level=logging.INFO)

BLUEPRINTS = (
    auth.bp,
    marketplace.bp,
    orders.bp,
    transport.bp,
    auctions.bp,
    soil_kits.bp,
    traceability.bp,
    ai_routes.bp,
)


def create_app(overrides=None, database=None, ai_client=None, synthesizer=None):
    app = Flask(__name__)
    app.config.update(config.as_dict())
    if overrides:
        app.config.update(overrides)

    CORS(
        app,
        resources={r"/*": {"origins": app.config["FRONTEND_ORIGINS"]}},
        supports_credentials=True,
    )

    api_key = app.config["GEMINI_API_KEY"]
    if not api_key:
        app.logger.warning("GEMINI_API_KEY not set in env - Gemini calls will fail if used.")
    if not speech.ffmpeg_available():
        app.logger.warning("FFmpeg not found in PATH. Audio conversion (/ai/transcribe) will likely fail.")

    if database is None:
        database = db.connect(app.config["MONGO_URI"], app.config["MONGO_DB_NAME"])
    if ai_client is None:
        ai_client = GeminiClient(
            api_key,
            app.config["GEMINI_TEXT_MODEL"],
            max_retries=app.config["AI_MAX_RETRIES"],
            retry_base_seconds=app.config["AI_RETRY_BASE_SECONDS"],
        )
    if synthesizer is None:
        synthesizer = speech.SpeechSynthesizer(api_key, app.config["GEMINI_TTS_MODEL"], app.config["TTS_VOICE"])

    app.extensions["croptrade_db"] = database
    app.extensions["croptrade_ai"] = ai_client
    app.extensions["croptrade_tts"] = synthesizer

    try:
        db.ensure_indexes(database)
        db.seed_trace_events(database)
    except Exception as e:
        app.logger.warning("⚠️ Could not prepare MongoDB collections: %s", e)

    register_error_handlers(app)
    for bp in BLUEPRINTS:
        app.register_blueprint(bp)
    register_health_routes(app)
    return app


def register_health_routes(app):
    @app.route("/")
    def home():
        return jsonify({"message": "CropTrade backend is running 🚀"})

    @app.route("/health")
    def health():
        return jsonify({"ok": True})

    @app.route("/db-health")
    def db_health():
        database = app.extensions["croptrade_db"]
        try:
            database.command("ping")
            count = database[db.USERS].count_documents({})
            return jsonify({"ok": True, "count": count})
        except Exception as e:
            logger.exception("DB health failed: %s", e)
            return jsonify({"ok": False, "error": str(e)}), 500

    @app.route("/gemini-health")
    def gemini_health():
        try:
            txt = app.extensions["croptrade_ai"].generate_text("Say 'pong' in one word.")
            return jsonify({"ok": True, "reply": txt})
        except Exception as e:
            logger.exception("Gemini health failed: %s", e)
            return jsonify({"ok": False, "error": str(e)}), 500


if __name__ == "__main__":
    app = create_app()
    logger.info(f"Starting Flask app on port {config.PORT}...")
    app.run(host="0.0.0.0", port=config.PORT, debug=False, use_reloader=False)
