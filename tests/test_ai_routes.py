import io

from PIL import Image

from errors import AIGenerationError

CREDIT_INPUT = {"annualRevenue": 500000, "yearsFarming": 12, "loanHistory": "Paid On Time", "outstandingDebt": 0}
CREDIT_OUTPUT = {
    "creditScore": 742,
    "riskLevel": "Medium",
    "analysis": "Steady revenue and a clean repayment record.",
    "recommendations": ["Keep debt low", "Diversify crops"],
}
SOIL_IMAGE_OUTPUT = {
    "soilType": "Sandy Loam",
    "moisture": "Moderate",
    "texture": "Loamy",
    "phEstimate": 6.8,
    "nutrientAnalysis": {"nitrogen": "Low", "phosphorus": "Moderate", "potassium": "High"},
    "fertilityScore": 64,
    "recommendedCrops": ["Groundnut", "Millet", "Maize"],
    "fertilizerPlan": ["Urea @ 70kg/acre"],
    "generalAdvice": "Add organic matter before sowing.",
}


def png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), (120, 80, 40)).save(buf, format="PNG")
    return buf.getvalue()


def test_success_envelope(client, ai):
    ai.json_replies["CreditScoreOutput"] = CREDIT_OUTPUT
    res = client.post("/ai/credit-score", json=CREDIT_INPUT)
    assert res.status_code == 200
    body = res.get_json()
    assert body["message"] == "Assessment complete."
    assert body["data"]["creditScore"] == 742


def test_validation_envelope(client, ai):
    res = client.post("/ai/credit-score", json={"annualRevenue": -5, "loanHistory": "Sometimes"})
    assert res.status_code == 400
    body = res.get_json()
    assert body["message"] == "error:Invalid form data."
    assert body["errors"]["annualRevenue"] == ["Annual revenue must be a positive number."]
    assert body["errors"]["loanHistory"] == ["Please select your loan history."]
    assert ai.calls == []


def test_generation_failure_is_502(client, ai):
    ai.error = AIGenerationError("The AI returned an empty response.")
    res = client.post("/ai/credit-score", json=CREDIT_INPUT)
    assert res.status_code == 502
    assert res.get_json() == {
        "message": "error:Assessment failed. AI failed to generate a credit score assessment.",
        "errors": {},
    }


def test_pest_diagnosis_requires_image_uri(client):
    res = client.post("/ai/pest-diagnosis", json={"photoDataUri": "data:text/plain;base64,aGk="})
    assert res.status_code == 400
    assert res.get_json()["errors"]["photoDataUri"] == ["Please upload a valid image file before diagnosing."]


def test_pest_diagnosis_multipart_upload(client, ai):
    ai.json_replies["PestDiagnosisOutput"] = {"diagnosis": "Leaf rust", "recommendedActions": "Fungicide."}
    res = client.post("/ai/pest-diagnosis", data={"photo": (io.BytesIO(png_bytes()), "leaf.png")},
                      content_type="multipart/form-data")
    assert res.status_code == 200
    assert res.get_json()["data"]["diagnosis"] == "Leaf rust"
    mime, data = ai.calls[0][3]
    assert mime == "image/png"
    assert data == png_bytes()


def test_multipart_upload_must_be_an_image(client):
    res = client.post("/ai/pest-diagnosis", data={"photo": (io.BytesIO(b"not an image"), "leaf.png")},
                      content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json()["message"] == "error:Please upload an image."


def test_soil_image_analysis_is_saved(client, ai, signup):
    ai.json_replies["SoilImageAnalysis"] = SOIL_IMAGE_OUTPUT
    _, headers = signup("Farmer")
    res = client.post("/ai/soil-analysis/image", data={"photo": (io.BytesIO(png_bytes()), "soil.png")},
                      content_type="multipart/form-data", headers=headers)
    assert res.status_code == 200
    saved = res.get_json()["data"]
    assert saved["soilType"] == "Sandy Loam"
    assert saved["id"]

    _, other = signup("Farmer")
    assert client.get("/ai/soil-analyses", headers=other).get_json() == []
    mine = client.get("/ai/soil-analyses", headers=headers).get_json()
    assert [a["id"] for a in mine] == [saved["id"]]


def test_soil_image_analysis_requires_login(client):
    assert client.post("/ai/soil-analysis/image", json={}).status_code == 401


def test_ask_requires_login(client):
    assert client.post("/ai/ask", json={"question": "When should I sow wheat?"}).status_code == 401


def test_ask(client, ai, signup, monkeypatch):
    import flows

    monkeypatch.setattr(flows, "detect_lang", lambda text: "en")
    _, headers = signup("Farmer")
    client.post("/soil-kits/orders", headers=headers)
    res = client.post("/ai/ask", json={"question": "Where is my soil kit?"}, headers=headers)
    body = res.get_json()
    assert body["message"] == "Answer complete."
    assert body["data"]["answer"] == "Stub agronomist answer."
    assert ai.tool_results[0]["status"] == "ordered"


def test_crop_simulator_route(client, ai):
    ai.json_replies["FinalAnalysis"] = {
        "predictedYield": "10 tons", "estimatedRevenue": "₹2,00,000", "roi": 12,
        "analysis": {"executiveSummary": "s", "riskOpportunityAnalysis": "r",
                     "comparativeAnalysis": "c", "recommendations": ["x"]},
    }
    res = client.post("/ai/crop-simulator", json={
        "cropType": "Rice", "acreage": 2, "region": "Coastal Odisha", "simulationMonths": 6,
        "fertilizerPlan": "Organic Compost", "wateringSchedule": "Rain-fed only",
        "weatherScenario": "Excessive Rain", "pestScenario": "Minor Infestation",
    })
    data = res.get_json()["data"]
    assert [s["month"] for s in data["timeline"]] == [3, 6]
    assert data["summary"]["roi"] == 12
    models = [c[2] for c in ai.calls]
    assert models[-1] == client.application.config["GEMINI_PRO_MODEL"]
    assert set(models[:-1]) == {client.application.config["GEMINI_FAST_MODEL"]}


def test_simulator_months_range(client):
    res = client.post("/ai/crop-simulator", json={"simulationMonths": 30})
    assert res.status_code == 400
    assert res.get_json()["errors"]["simulationMonths"] == ["Simulation length must be between 1 and 24 months."]


def test_text_to_speech(client, tts):
    res = client.post("/ai/text-to-speech", json={"text": "Good morning"})
    assert res.status_code == 200
    assert res.get_json()["data"]["audioUrl"].startswith("data:audio/wav;base64,")
    assert tts.texts == ["Good morning"]


def test_text_to_speech_needs_text(client):
    res = client.post("/ai/text-to-speech", json={"text": ""})
    assert res.status_code == 400
    assert res.get_json()["errors"]["text"] == ["Please provide text."]


def test_text_to_speech_without_audio(client, tts):
    tts.pcm = b""
    res = client.post("/ai/text-to-speech", json={"text": "Good morning"})
    assert res.status_code == 502
    assert res.get_json()["message"] == "error:Failed to generate audio. No audio was returned from the model."


def test_transcribe_needs_file(client):
    assert client.post("/ai/transcribe", data={}, content_type="multipart/form-data").status_code == 400


def test_ad_image_route(client, ai):
    ai.text_replies = ["fresh mangoes"]
    res = client.post("/ai/ad-image", json={"description": "Alphonso mangoes from Ratnagiri"})
    assert res.get_json()["data"]["imageUrl"] == "https://picsum.photos/seed/fresh-mangoes/1280/720"
