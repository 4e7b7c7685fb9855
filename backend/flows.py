# flows.py - prompt orchestration for the CropTrade advisory tools
#
# Every flow takes a validated input model and an AI client exposing
# generate_text / generate_json / chat_with_tools, and returns an output model.

import logging
import math
import re
from datetime import date

from pymongo import DESCENDING

import schemas
from ai_client import detect_lang, parse_data_uri, translate_from_en, translate_to_en
from errors import AIGenerationError
from weather import get_weather_forecast

logger = logging.getLogger("croptrade.flows")

PICSUM_URL = "https://picsum.photos/seed/{seed}/1280/720"


def picsum_url(hint: str, fallback="farm"):
    seed = re.sub(r"\s+", "-", hint.strip()).lower()
    return PICSUM_URL.format(seed=seed or fallback)


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


# -------------------------------
# Agronomist chat
# -------------------------------
AGRONOMIST_SYSTEM_PROMPT = """You are an expert agronomist and AI assistant for the CropTrade platform. Your role is to provide clear, concise, and accurate advice to farmers.

- If the user asks about the status of their order, kit, or report, you MUST use the get_soil_kit_order_status tool to check the database.
- Base your answer on the information provided by the tool. Inform the user if no order is found. If the tool fails, inform the user you could not retrieve the information.
- For all other agricultural questions, provide a helpful and encouraging answer based on your expertise.
- Keep your answers concise and easy to understand for a non-expert audience.
- Today's date is {today}."""


def latest_soil_kit_order(soil_kit_orders, user_id):
    """Most recent soil kit order for a user as ``{status, orderDate}``, or None."""
    try:
        doc = soil_kit_orders.find_one({"userId": user_id}, sort=[("orderDate", DESCENDING)])
    except Exception as e:
        logger.exception("Error fetching soil kit order status: %s", e)
        return None
    if not doc:
        logger.info("No soil kit orders found for user %s.", user_id)
        return None
    return {"status": doc.get("status"), "orderDate": doc.get("orderDate")}


def ask_agronomist(question: str, user_id: str, ai, soil_kit_orders):
    def get_soil_kit_order_status() -> dict:
        """Get the status of the current user's most recent soil kit order.

        Use this whenever the user asks about their order, report, or kit status.
        Returns an empty object ({}) when the user has no orders or the lookup
        failed; function responses must be objects, so there is no null reply.
        """
        logger.info("Checking soil kit order status for user: %s", user_id)
        return latest_soil_kit_order(soil_kit_orders, user_id) or {}

    user_lang = detect_lang(question)
    prompt_en = question if user_lang == "en" else translate_to_en(question)
    system = AGRONOMIST_SYSTEM_PROMPT.format(today=date.today().strftime("%d/%m/%Y"))
    answer_en = ai.chat_with_tools(prompt_en, system=system, tools=[get_soil_kit_order_status])
    if not answer_en:
        raise AIGenerationError("The AI failed to generate a response. Please try again.")
    answer = answer_en if user_lang == "en" else translate_from_en(answer_en, user_lang)
    return {"answer": answer, "language": user_lang}


# -------------------------------
# Structured advisory prompts
# -------------------------------
CREDIT_SCORE_PROMPT = """You are an expert financial analyst AI for the agricultural sector. Your task is to assess a farmer's creditworthiness based on the data they provide and generate a credit score and analysis.

**Input Data:**
- Annual Farm Revenue: {annualRevenue}
- Years in Farming: {yearsFarming}
- Past Loan History: {loanHistory}
- Total Outstanding Debt: {outstandingDebt}

**Your Analysis Must Include:**

1.  **Credit Score**: Calculate a credit score between 300 and 850. A higher revenue and more years of experience should positively impact the score. A history of delayed payments or high outstanding debt should negatively impact it.
2.  **Risk Level**: Categorize the risk as 'Low' (750-850), 'Medium' (650-749), 'High' (550-649), or 'Very High' (300-549).
3.  **Analysis**: Provide a brief paragraph explaining the key factors that influenced the score. Mention both strengths and weaknesses in the farmer's profile.
4.  **Recommendations**: Provide at least two actionable recommendations for the farmer to improve their credit score and financial health."""


def assess_credit_score(data: schemas.CreditScoreInput, ai):
    prompt = CREDIT_SCORE_PROMPT.format(**data.model_dump())
    try:
        return ai.generate_json(prompt, schemas.CreditScoreOutput)
    except AIGenerationError:
        raise AIGenerationError("AI failed to generate a credit score assessment.")


CROP_DESCRIPTION_PROMPT = """You are an agricultural marketing expert. Generate an appealing description for the following crop listing to attract more buyers.

Crop Name: {cropName}
Variety: {variety}
Growing Conditions: {growingConditions}
Yield: {yield_}
Unique Qualities: {uniqueQualities}

Write a compelling description that highlights the best features of this crop."""


def generate_crop_description(data: schemas.CropDescriptionInput, ai):
    prompt = CROP_DESCRIPTION_PROMPT.format(**data.model_dump())
    return ai.generate_json(prompt, schemas.CropDescriptionOutput)


DEMAND_FORECAST_PROMPT = """You are an expert agricultural market analyst AI. Your task is to provide a demand and price forecast for a specific crop in a given region and month.

**Input Data:**
- Crop: {cropType}
- Region: {region}
- Month: {month}

**Your Analysis Must Include:**

1.  **Demand Trend**: Predict whether the demand for this crop will be 'Increasing', 'Decreasing', or 'Stable'. Provide a concise reason based on factors like seasonal consumption, festivals, industrial use, etc.
2.  **Price Trend**: Predict whether the market price will be 'Increasing', 'Decreasing', or 'Stable'. Provide a reason, considering demand, supply from harvests, storage levels, and government MSP (Minimum Support Price) if applicable. Also, provide an estimated price range (e.g., per quintal or ton).
3.  **Overall Analysis**: Summarize the key factors that will influence the market during the specified month. Consider weather forecasts, government policies, international market trends, and logistical factors.
4.  **Strategic Recommendations**: Provide at least two clear, actionable recommendations for a farmer. For example: "Sell immediately after harvest to capitalize on high demand," or "Store the crop for 2-3 weeks as prices are expected to rise." """


def forecast_demand(data: schemas.DemandForecastInput, ai):
    try:
        return ai.generate_json(DEMAND_FORECAST_PROMPT.format(**data.model_dump()), schemas.DemandForecastOutput)
    except AIGenerationError:
        raise AIGenerationError("AI failed to generate a demand forecast.")


FERTILIZER_PROMPT = """You are an expert agronomist AI specializing in soil science and nutrient management for Indian agriculture.

A farmer has provided the following soil test data and wants a fertilizer plan for their chosen crop. Analyze the data and provide a set of clear, actionable recommendations.

**Soil Data:**
- Soil Type: {soilType}
- pH: {ph}
- Nitrogen (N): {nitrogen} kg/ha
- Phosphorus (P): {phosphorus} kg/ha
- Potassium (K): {potassium} kg/ha

**Target Crop:** {targetCrop}

**Your Task:**

1.  **Analyze Nutrient Levels**: Determine if N, P, and K are low, medium, or high for the specified crop.
2.  **Provide Recommendations**: Recommend specific fertilizers (e.g., Urea, Diammonium Phosphate (DAP), Muriate of Potash (MOP), Single Super Phosphate (SSP)). For each fertilizer give the application rate in kg/ha, the best timing for application, and a simple reason.
3.  **Address pH**: If the pH is outside the ideal range for the crop, add a clear warning and suggest soil amendments (e.g., Lime for acidic soil, Gypsum for alkaline soil) with application rates.
4.  **General Advice**: Give a concluding paragraph of general advice for nutrient management for this crop in this soil type.

Ensure the recommendations are practical for a typical Indian farmer."""


def calculate_fertilizer(data: schemas.FertilizerInput, ai):
    try:
        return ai.generate_json(FERTILIZER_PROMPT.format(**data.model_dump()), schemas.FertilizerOutput)
    except AIGenerationError:
        raise AIGenerationError("AI failed to generate a fertilizer plan.")


INSURANCE_RISK_PROMPT = """You are an expert agricultural insurance underwriter AI. Your task is to assess the risk profile for a farmer's crop and provide an estimated insurance premium.

**Input Data:**
- Crop: {cropType}
- Region: {region}
- Acreage: {acreage} acres
- Historical Extreme Weather: {historicalEvents}

**Your Analysis Must Include:**

1.  **Risk Score**: Calculate a risk score from 0 to 100. High-risk crops (like cotton) or regions prone to extreme weather (like coastal areas for cyclones) should have a higher score. A history of frequent events MUST significantly increase the score.
2.  **Risk Level**: Categorize the score: 'Low' (0-25), 'Moderate' (26-50), 'High' (51-75), 'Very High' (76-100).
3.  **Premium Estimate**: Based on the risk score, provide a realistic estimated premium range per acre in Indian Rupees (₹). Higher risk must lead to a higher premium.
4.  **Risk Factors**: List the key 'Positive' and 'Negative' factors from the input that influenced your decision.
5.  **Mitigation Steps**: Provide at least two actionable recommendations the farmer could take to reduce their risk profile (e.g., "Install hail nets," "Improve field drainage systems")."""


def assess_insurance_risk(data: schemas.InsuranceRiskInput, ai):
    try:
        return ai.generate_json(INSURANCE_RISK_PROMPT.format(**data.model_dump()), schemas.InsuranceRiskOutput)
    except AIGenerationError:
        raise AIGenerationError("AI failed to generate an insurance risk assessment.")


YIELD_PREDICTION_PROMPT = """You are an agricultural data scientist AI. Your task is to predict crop yield based on provided data. Analyze the user's data AND the provided weather forecast.

**Input Data:**
- Crop: {cropType}
- Acreage: {acreage}
- Soil Type: {soilType}
- Nitrogen: {nitrogenLevel} kg/ha
- Phosphorus: {phosphorusLevel} kg/ha
- Potassium: {potassiumLevel} kg/ha
- Region: {region}
- Historical Yield: {historicalYield}
- Weather Forecast: {weatherForecast}

**Your Analysis Must Include:**
1.  **predictedYield**: A realistic range for total yield (e.g., "400-420 tons").
2.  **yieldPerAcre**: A realistic range for per-acre yield (e.g., "4.0-4.2 tons/acre").
3.  **confidenceScore**: A confidence score from 0-100. Higher confidence for stable weather and if historical data is provided.
4.  **influencingFactors**: List at least three key factors. The weather forecast MUST be one. State its impact ('Positive', 'Negative', 'Neutral') and add a brief comment.
5.  **recommendations**: Provide at least two actionable recommendations to maximize yield."""


def predict_yield(data: schemas.YieldPredictionInput, ai, weather_api_key=""):
    weather = get_weather_forecast(data.region, api_key=weather_api_key)
    combined = data.model_dump()
    combined["historicalYield"] = combined.get("historicalYield") or "Not provided"
    combined["weatherForecast"] = weather["forecast"]
    try:
        return ai.generate_json(YIELD_PREDICTION_PROMPT.format(**combined), schemas.YieldPredictionOutput)
    except AIGenerationError:
        raise AIGenerationError("AI failed to generate a yield prediction.")


# -------------------------------
# Image based
# -------------------------------
PEST_DIAGNOSIS_PROMPT = """You are an expert plant pathologist and agronomist. Analyze the provided image of a plant to identify any pests, diseases, or nutrient deficiencies.

Your diagnosis should be thorough and your recommendations practical for a farmer.

1.  **Diagnosis**: Identify the specific issue (e.g., 'Powdery Mildew,' 'Aphid Infestation,' 'Nitrogen Deficiency'). Provide both the common and scientific names if possible. Describe the signs and symptoms visible in the image that lead you to this conclusion.
2.  **Recommended Actions**: Provide a clear, step-by-step plan for the farmer to manage the issue. Include both immediate actions and long-term preventative measures. Where applicable, suggest both organic and chemical treatment options, including any safety precautions."""


def diagnose_pest_from_image(data: schemas.PhotoInput, ai):
    media = parse_data_uri(data.photoDataUri)
    return ai.generate_json(PEST_DIAGNOSIS_PROMPT, schemas.PestDiagnosisOutput, media=media)


SOIL_IMAGE_PROMPT = """You are an expert soil scientist and agronomist AI for the CropTrade platform. Analyze the provided image of a soil sample.

Based on the visual characteristics in the image (color, apparent texture, structure, moisture sheen), provide a detailed analysis.

1.  **Soil Identification**: Identify the likely soil type (e.g., Sandy Loam, Clay, Silt).
2.  **Moisture & Texture**: Estimate moisture and classify texture.
3.  **pH Estimate**: Provide a numerical pH estimate.
4.  **Nutrient Prediction**: Predict the levels for Nitrogen, Phosphorus, and Potassium as 'Low', 'Moderate', 'High'.
5.  **Fertility Score**: Calculate an overall fertility score from 0 to 100 based on all factors.
6.  **Recommendations**: Recommend at least three suitable crops and a clear, actionable fertilizer plan (e.g., "Urea @ 70kg/acre").
7.  **General Advice**: Provide a simple, summary sentence of advice for the farmer."""


def analyze_soil_from_image(data: schemas.PhotoInput, ai, model=None):
    media = parse_data_uri(data.photoDataUri)
    try:
        return ai.generate_json(SOIL_IMAGE_PROMPT, schemas.SoilImageAnalysis, model=model, media=media)
    except AIGenerationError:
        raise AIGenerationError("AI analysis failed to produce a valid output.")


SOIL_PROMPT = """You are an expert soil scientist. A farmer has provided the following description of their soil:

{soilDescription}

Based on this description, provide crop recommendations and a potential fertilizer plan."""


def analyze_soil_from_prompt(data: schemas.SoilDescriptionInput, ai):
    return ai.generate_json(SOIL_PROMPT.format(**data.model_dump()), schemas.SoilPromptAnalysis)


# -------------------------------
# Image hints
# -------------------------------
AD_IMAGE_HINT_PROMPT = """From the following crop description, extract a concise 1 or 2-word hint that can be used to search for a relevant stock photo on Unsplash. For example, if the description is "Freshly harvested, bright red Roma tomatoes", a good hint would be "red tomatoes".

Description: "{description}"

Hint:"""


def generate_ad_image(data: schemas.AdImageInput, ai):
    hint = ai.generate_text(AD_IMAGE_HINT_PROMPT.format(description=data.description))
    hint = re.sub(r"\s+", " ", hint.strip())
    return schemas.AdImageOutput(imageUrl=picsum_url(hint))


# -------------------------------
# Crop cycle simulator
# -------------------------------
STAGE_DESCRIPTION_PROMPT = """Based on this farm simulation, write a short, 1-sentence visual description of a {acreage} acre {cropType} farm in {region} at month {month} of a {simulationMonths} month cycle.
- Fertilizer: {fertilizerPlan}
- Watering: {wateringSchedule}
- Weather: {weatherScenario}
- Pests: {pestScenario}
The description should be simple and visual, e.g., "Young green shoots of wheat emerge from the soil," or "The mature corn stalks are yellowing and heavy with ears, ready for harvest." """

STAGE_HINT_PROMPT = """From the following farm scene description, extract a concise 1 or 2-word hint that can be used to search for a relevant stock photo. For example, if the description is "Young green shoots of wheat emerge from the soil," a good hint would be "wheat shoots".

Description: "{description}"

Hint:"""

SIMULATION_ANALYSIS_PROMPT = """You are a financial and agricultural analyst. Based on the following farm simulation, calculate the final yield, revenue, and ROI, and provide a detailed strategic analysis report.

**Simulation Parameters:**
- Crop: {cropType}
- Acreage: {acreage}
- Region: {region}
- Duration: {simulationMonths} months
- Fertilizer: {fertilizerPlan}
- Watering: {wateringSchedule}
- Weather: {weatherScenario}
- Pests: {pestScenario}

**Your Task:**
1.  **predictedYield**: Estimate the total yield in a range (e.g., "400-420 tons").
2.  **estimatedRevenue**: Estimate the net revenue in INR, considering typical costs and market prices for the region and crop.
3.  **roi**: Calculate the Return on Investment as a percentage.
4.  **analysis**: Provide an object with executiveSummary, riskOpportunityAnalysis, comparativeAnalysis (the chosen strategy against alternatives and whether it was optimal), and recommendations (actionable steps for improving ROI in future cycles)."""


def simulation_stage_months(simulation_months: int):
    """Month marker for each timeline stage: one stage per ~3 months, at least two."""
    stages = max(2, math.ceil(simulation_months / 3))
    months_per_stage = simulation_months / stages
    return [round_half_up((i + 1) * months_per_stage) for i in range(stages)]


def simulate_crop_cycle(data: schemas.CropSimulatorInput, ai, fast_model=None, pro_model=None):
    params = data.model_dump()
    timeline = []
    for month in simulation_stage_months(data.simulationMonths):
        description = ai.generate_text(STAGE_DESCRIPTION_PROMPT.format(month=month, **params), model=fast_model)
        hint = ai.generate_text(STAGE_HINT_PROMPT.format(description=description), model=fast_model)
        timeline.append(schemas.TimelineStage(month=month, description=description, imageUrl=picsum_url(hint)))
        logger.info("Simulated stage at month %d of %d.", month, data.simulationMonths)

    try:
        result = ai.generate_json(SIMULATION_ANALYSIS_PROMPT.format(**params), schemas.FinalAnalysis, model=pro_model)
    except AIGenerationError:
        raise AIGenerationError("Failed to generate the final analysis.")

    return schemas.CropSimulatorOutput(
        timeline=timeline,
        summary=schemas.SimulationSummary(
            predictedYield=result.predictedYield,
            estimatedRevenue=result.estimatedRevenue,
            roi=result.roi,
        ),
        analysis=result.analysis,
    )
