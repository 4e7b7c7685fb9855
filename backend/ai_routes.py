# ai_routes.py - HTTP surface for the advisory flows, speech and soil analyses

import base64
import io
import logging

from flask import Blueprint, current_app, jsonify, request
from PIL import Image, UnidentifiedImageError
from pymongo import DESCENDING

import database as db
import flows
import schemas
import speech
from auth import login_required, user_id
from errors import APIError

logger = logging.getLogger("croptrade.ai_routes")

bp = Blueprint("ai", __name__, url_prefix="/ai")


def ai_client():
    return current_app.extensions["croptrade_ai"]


def synthesizer():
    return current_app.extensions["croptrade_tts"]


def run_action(success, failure, call):
    """Wrap a flow call in the ``{message, data}`` envelope; generation failures become 502."""
    try:
        result = call()
    except APIError:
        raise
    except Exception as e:
        logger.exception("%s: %s", failure, e)
        reason = str(e) or "An unknown error occurred."
        return jsonify({"message": f"error:{failure} {reason}", "errors": {}}), 502
    if hasattr(result, "model_dump"):
        result = result.model_dump()
    return jsonify({"message": success, "data": result})


def photo_payload():
    """JSON ``photoDataUri`` or a multipart ``photo`` upload, as a dict for PhotoInput."""
    upload = request.files.get("photo")
    if upload is None:
        return request.get_json(silent=True) or {}
    raw = upload.read()
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.verify()
            mime = Image.MIME.get(img.format, "image/jpeg")
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise APIError("error:Please upload an image.", errors={"photo": ["The uploaded file is not a valid image."]})
    return {"photoDataUri": f"data:{mime};base64,{base64.b64encode(raw).decode()}"}


# -------------------------------
# Advisory flows
# -------------------------------
@bp.route("/ask", methods=["POST"])
@login_required
def ask():
    form = schemas.QuestionForm.parse(request.get_json(silent=True))
    soil_kit_orders = db.col(db.SOIL_KIT_ORDERS)
    return run_action("Answer complete.", "Failed to get answer.",
                      lambda: flows.ask_agronomist(form.question, user_id(), ai_client(), soil_kit_orders))


@bp.route("/credit-score", methods=["POST"])
def credit_score():
    data = schemas.CreditScoreInput.parse(request.get_json(silent=True))
    return run_action("Assessment complete.", "Assessment failed.",
                      lambda: flows.assess_credit_score(data, ai_client()))


@bp.route("/crop-description", methods=["POST"])
def crop_description():
    data = schemas.CropDescriptionInput.parse(request.get_json(silent=True))
    return run_action("Description generated.", "Failed to generate description.",
                      lambda: flows.generate_crop_description(data, ai_client()))


@bp.route("/crop-simulator", methods=["POST"])
def crop_simulator():
    data = schemas.CropSimulatorInput.parse(request.get_json(silent=True))
    cfg = current_app.config
    return run_action("Simulation complete.", "Simulation failed.", lambda: flows.simulate_crop_cycle(
        data, ai_client(), fast_model=cfg["GEMINI_FAST_MODEL"], pro_model=cfg["GEMINI_PRO_MODEL"]))


@bp.route("/demand-forecast", methods=["POST"])
def demand_forecast():
    data = schemas.DemandForecastInput.parse(request.get_json(silent=True))
    return run_action("Forecast complete.", "Forecast failed.",
                      lambda: flows.forecast_demand(data, ai_client()))


@bp.route("/fertilizer", methods=["POST"])
def fertilizer():
    data = schemas.FertilizerInput.parse(request.get_json(silent=True))
    return run_action("Calculation complete.", "Calculation failed.",
                      lambda: flows.calculate_fertilizer(data, ai_client()))


@bp.route("/ad-image", methods=["POST"])
def ad_image():
    data = schemas.AdImageInput.parse(request.get_json(silent=True))
    return run_action("Image generated.", "Image generation failed.",
                      lambda: flows.generate_ad_image(data, ai_client()))


@bp.route("/insurance-risk", methods=["POST"])
def insurance_risk():
    data = schemas.InsuranceRiskInput.parse(request.get_json(silent=True))
    return run_action("Assessment complete.", "Assessment failed.",
                      lambda: flows.assess_insurance_risk(data, ai_client()))


@bp.route("/pest-diagnosis", methods=["POST"])
def pest_diagnosis():
    data = schemas.PhotoInput.parse(photo_payload())
    return run_action("Diagnosis complete.", "Diagnosis failed.",
                      lambda: flows.diagnose_pest_from_image(data, ai_client()))


@bp.route("/soil-analysis", methods=["POST"])
def soil_analysis():
    data = schemas.SoilDescriptionInput.parse(request.get_json(silent=True))
    return run_action("Analysis complete.", "Analysis failed.",
                      lambda: flows.analyze_soil_from_prompt(data, ai_client()))


@bp.route("/soil-analysis/image", methods=["POST"])
@login_required
def soil_analysis_image():
    data = schemas.PhotoInput.parse(photo_payload())
    uid = user_id()

    def analyze_and_save():
        result = flows.analyze_soil_from_image(data, ai_client())
        doc = {"userId": uid, "createdAt": db.now_iso(), **result.model_dump()}
        res = db.col(db.SOIL_ANALYSES).insert_one(doc)
        doc["_id"] = res.inserted_id
        return db.serialize(doc)

    return run_action("Analysis complete.", "Analysis failed.", analyze_and_save)


@bp.route("/soil-analyses", methods=["GET"])
@login_required
def soil_analyses():
    docs = db.col(db.SOIL_ANALYSES).find({"userId": user_id()}).sort("createdAt", DESCENDING)
    return jsonify([db.serialize(d) for d in docs])


@bp.route("/yield-prediction", methods=["POST"])
def yield_prediction():
    data = schemas.YieldPredictionInput.parse(request.get_json(silent=True))
    weather_key = current_app.config["WEATHER_API"]
    return run_action("Prediction complete.", "Prediction failed.",
                      lambda: flows.predict_yield(data, ai_client(), weather_api_key=weather_key))


# -------------------------------
# Speech
# -------------------------------
@bp.route("/text-to-speech", methods=["POST"])
def text_to_speech():
    form = schemas.TextForm.parse(request.get_json(silent=True))
    return run_action("Audio generated.", "Failed to generate audio.",
                      lambda: speech.text_to_speech(form.text, synthesizer()))


@bp.route("/transcribe", methods=["POST"])
def transcribe():
    audio = request.files.get("audio")
    if audio is None:
        raise APIError("No audio file provided", errors={"audio": ["No audio file provided"]})
    return run_action("Transcription complete.", "Transcription failed.",
                      lambda: speech.transcribe_upload(audio, ai_client()))
