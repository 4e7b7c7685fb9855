# schemas.py - request validation and AI output models (pydantic)

from typing import Annotated, ClassVar, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError, field_validator

from errors import APIError, flatten_validation_error

ROLES = ("Farmer", "Buyer", "Transporter", "Admin")
ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")
SOIL_KIT_STATUSES = ("ordered", "shipped", "processing", "completed")

# passwords are hashed and length-checked exactly as typed
Password = Annotated[str, StringConstraints(strip_whitespace=False, min_length=6)]


class Form(BaseModel):
    """Base for incoming form bodies; ``messages`` overrides pydantic's wording per field."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, allow_inf_nan=False)

    messages: ClassVar[Dict[str, str]] = {}

    @classmethod
    def parse(cls, data):
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise APIError("error:Invalid form data.", errors=flatten_validation_error(e, cls.messages))


# -------------------------------
# Auth
# -------------------------------
class SignupForm(Form):
    firstName: str = Field(min_length=2)
    lastName: str = Field(min_length=2)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: Password

    messages = {
        "firstName": "First name is required.",
        "lastName": "Last name is required.",
        "email": "Invalid email address.",
        "password": "Password must be at least 6 characters.",
    }

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v):
        return v.lower()


class LoginForm(Form):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: Password

    messages = {
        "email": "Invalid email address.",
        "password": "Password must be at least 6 characters.",
    }

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v):
        return v.lower()


class RoleForm(Form):
    role: Literal["Farmer", "Buyer", "Transporter", "Admin"]

    messages = {"role": "Role must be one of Farmer, Buyer, Transporter, Admin."}


# -------------------------------
# Marketplace
# -------------------------------
class ListingForm(Form):
    cropType: str = Field(min_length=2)
    variety: str = Field(min_length=2)
    quantity: float = Field(gt=0)
    unit: str = Field(min_length=1)
    pricePerUnit: float = Field(gt=0)
    location: str = Field(min_length=3)
    harvestDate: str = Field(min_length=1)
    description: str = Field(min_length=10)
    imageUrl: Optional[str] = None

    messages = {
        "cropType": "Crop type is required.",
        "variety": "Variety is required.",
        "quantity": "Quantity must be a positive number.",
        "unit": "Unit is required.",
        "pricePerUnit": "Price must be a positive number.",
        "location": "Location is required.",
        "harvestDate": "Harvest date is required.",
        "description": "Description must be at least 10 characters.",
        "imageUrl": "Image must be a URL or an uploaded image.",
    }

    @field_validator("imageUrl")
    @classmethod
    def _image_url(cls, v):
        if not v:
            return None
        if v.startswith(("http://", "https://", "data:image")):
            return v
        raise ValueError("invalid image url")


class OrderForm(Form):
    cropListingId: str = Field(min_length=1)
    quantity: float = Field(default=1, gt=0)
    deliveryAddress: str = Field(default="123 Main St, Anytown, USA", min_length=3)

    messages = {
        "cropListingId": "Please choose a crop listing.",
        "quantity": "Quantity must be a positive number.",
        "deliveryAddress": "Delivery address is required.",
    }


class OrderStatusForm(Form):
    status: Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]

    messages = {"status": "Status must be one of " + ", ".join(ORDER_STATUSES) + "."}


class ReviewForm(Form):
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1)

    messages = {
        "rating": "Please provide a rating and a comment.",
        "comment": "Please provide a rating and a comment.",
    }


class TransportBidForm(Form):
    bidAmount: float = Field(gt=0)
    estimatedDeliveryDate: str = Field(min_length=1)

    messages = {
        "bidAmount": "Bid must be a positive number.",
        "estimatedDeliveryDate": "Please select a delivery date.",
    }


class AuctionForm(Form):
    cropListingId: str = Field(min_length=1)
    startingBid: float = Field(gt=0)
    endDate: str = Field(min_length=1)

    messages = {
        "cropListingId": "Please choose a crop listing.",
        "startingBid": "Starting bid must be a positive number.",
        "endDate": "Please select an end date.",
    }


class AuctionBidForm(Form):
    bidAmount: float = Field(gt=0)

    messages = {"bidAmount": "Please enter a bid amount."}


class SoilKitUpdateForm(Form):
    status: Literal["ordered", "shipped", "processing", "completed"]
    trackingId: Optional[str] = None

    messages = {"status": "Status must be one of " + ", ".join(SOIL_KIT_STATUSES) + "."}


class SoilReportForm(Form):
    labReportUrl: str = Field(default="https://example.com/sample-lab-report.pdf", pattern=r"^https?://")

    messages = {"labReportUrl": "Report URL must be an http(s) link."}


class TraceEventForm(Form):
    event: str = Field(min_length=1)
    location: str = Field(min_length=1)
    details: str = ""
    timestamp: Optional[str] = None

    messages = {
        "event": "Event name is required.",
        "location": "Location is required.",
    }


# -------------------------------
# AI tool inputs
# -------------------------------
class QuestionForm(Form):
    question: str = Field(min_length=1)

    messages = {"question": "Please provide a question."}


class TextForm(Form):
    text: str = Field(min_length=1)

    messages = {"text": "Please provide text."}


class CreditScoreInput(Form):
    annualRevenue: float = Field(gt=0)
    yearsFarming: int = Field(ge=0)
    loanHistory: Literal["No Loans", "Paid On Time", "Minor Delays", "Major Delays"]
    outstandingDebt: float = Field(ge=0)

    messages = {
        "annualRevenue": "Annual revenue must be a positive number.",
        "yearsFarming": "Years in farming cannot be negative.",
        "loanHistory": "Please select your loan history.",
        "outstandingDebt": "Outstanding debt cannot be negative.",
    }


class CropDescriptionInput(Form):
    cropName: str = Field(min_length=2)
    variety: str = Field(min_length=2)
    growingConditions: str = Field(min_length=10)
    yield_: str = Field(min_length=1, alias="yield")
    uniqueQualities: str = Field(min_length=10)

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, allow_inf_nan=False, populate_by_name=True)

    messages = {
        "cropName": "Please provide a crop name.",
        "variety": "Please provide a variety.",
        "growingConditions": "Please describe the growing conditions.",
        "yield": "Please provide the yield.",
        "uniqueQualities": "Please describe the unique qualities.",
    }


class CropSimulatorInput(Form):
    cropType: str = Field(min_length=2)
    acreage: float = Field(gt=0)
    region: str = Field(min_length=2)
    simulationMonths: int = Field(ge=1, le=24)
    fertilizerPlan: Literal["Standard NPK", "Organic Compost", "Minimal Application"]
    wateringSchedule: Literal["Automated (Optimal)", "Twice a week", "Rain-fed only"]
    weatherScenario: Literal["Normal", "Drought", "Excessive Rain"]
    pestScenario: Literal["None", "Minor Infestation", "Major Outbreak"]

    messages = {
        "cropType": "Crop type is required.",
        "acreage": "Acreage must be positive.",
        "region": "Region is required.",
        "simulationMonths": "Simulation length must be between 1 and 24 months.",
    }


class DemandForecastInput(Form):
    cropType: str = Field(min_length=2)
    region: str = Field(min_length=2)
    month: str = Field(min_length=1)

    messages = {
        "cropType": "Please enter a crop type.",
        "region": "Please enter a region.",
        "month": "Please select a month.",
    }


class FertilizerInput(Form):
    nitrogen: float = Field(ge=0)
    phosphorus: float = Field(ge=0)
    potassium: float = Field(ge=0)
    ph: float = Field(ge=0, le=14)
    soilType: str = Field(min_length=1)
    targetCrop: str = Field(min_length=2)

    messages = {
        "nitrogen": "Nitrogen cannot be negative.",
        "phosphorus": "Phosphorus cannot be negative.",
        "potassium": "Potassium cannot be negative.",
        "ph": "pH must be between 0 and 14.",
        "soilType": "Please select a soil type.",
        "targetCrop": "Please enter a target crop.",
    }


class AdImageInput(Form):
    description: str = Field(min_length=5)

    messages = {"description": "Please provide a more detailed description."}


class InsuranceRiskInput(Form):
    cropType: str = Field(min_length=2)
    region: str = Field(min_length=2)
    acreage: float = Field(gt=0)
    historicalEvents: Literal["None", "Rare", "Occasional", "Frequent"]

    messages = {
        "cropType": "Please enter a crop type.",
        "region": "Please enter a region.",
        "acreage": "Acreage must be positive.",
        "historicalEvents": "Please select a historical event likelihood.",
    }


class PhotoInput(Form):
    photoDataUri: str

    messages = {"photoDataUri": "Please upload a valid image file before diagnosing."}

    @field_validator("photoDataUri")
    @classmethod
    def _is_image_uri(cls, v):
        if not v.startswith("data:image"):
            raise ValueError("not an image data uri")
        return v


class SoilDescriptionInput(Form):
    soilDescription: str = Field(min_length=10)

    messages = {"soilDescription": "Please describe your soil in a bit more detail."}


class YieldPredictionInput(Form):
    cropType: str = Field(min_length=2)
    acreage: float = Field(gt=0)
    soilType: str = Field(min_length=1)
    nitrogenLevel: float = Field(ge=0)
    phosphorusLevel: float = Field(ge=0)
    potassiumLevel: float = Field(ge=0)
    region: str = Field(min_length=2)
    historicalYield: Optional[str] = None

    messages = {
        "cropType": "Please enter a crop type.",
        "acreage": "Acreage must be a positive number.",
        "soilType": "Please select a soil type.",
        "nitrogenLevel": "Nitrogen cannot be negative.",
        "phosphorusLevel": "Phosphorus cannot be negative.",
        "potassiumLevel": "Potassium cannot be negative.",
        "region": "Region is required.",
    }


# -------------------------------
# AI outputs
# -------------------------------
Level = Literal["Low", "Moderate", "High"]
Trend = Literal["Increasing", "Decreasing", "Stable"]


class CreditScoreOutput(BaseModel):
    creditScore: int = Field(ge=300, le=850)
    riskLevel: Literal["Low", "Medium", "High", "Very High"]
    analysis: str
    recommendations: List[str]


class CropDescriptionOutput(BaseModel):
    description: str


class TimelineStage(BaseModel):
    month: int
    description: str
    imageUrl: str


class FullAnalysis(BaseModel):
    executiveSummary: str
    riskOpportunityAnalysis: str
    comparativeAnalysis: str
    recommendations: List[str]


class FinalAnalysis(BaseModel):
    predictedYield: str
    estimatedRevenue: str
    roi: float
    analysis: FullAnalysis


class SimulationSummary(BaseModel):
    predictedYield: str
    estimatedRevenue: str
    roi: float


class CropSimulatorOutput(BaseModel):
    timeline: List[TimelineStage]
    summary: SimulationSummary
    analysis: FullAnalysis


class DemandTrend(BaseModel):
    trend: Trend
    reason: str


class PriceTrend(BaseModel):
    trend: Trend
    reason: str
    estimatedRange: str


class DemandForecastOutput(BaseModel):
    demand: DemandTrend
    price: PriceTrend
    analysis: str
    recommendations: List[str]


class FertilizerRecommendation(BaseModel):
    name: str
    applicationRate: str
    timing: str
    reason: str


class FertilizerOutput(BaseModel):
    recommendations: List[FertilizerRecommendation]
    warnings: List[str]
    generalAdvice: str


class AdImageOutput(BaseModel):
    imageUrl: str


class RiskFactor(BaseModel):
    impact: Literal["Positive", "Negative"]
    reason: str


class InsuranceRiskOutput(BaseModel):
    riskScore: int = Field(ge=0, le=100)
    riskLevel: Literal["Low", "Moderate", "High", "Very High"]
    premiumEstimate: str
    riskFactors: List[RiskFactor]
    mitigationSteps: List[str]


class PestDiagnosisOutput(BaseModel):
    diagnosis: str
    recommendedActions: str


class NutrientAnalysis(BaseModel):
    nitrogen: Level
    phosphorus: Level
    potassium: Level


class SoilImageAnalysis(BaseModel):
    soilType: str
    moisture: str
    texture: str
    phEstimate: float
    nutrientAnalysis: NutrientAnalysis
    fertilityScore: float = Field(ge=0, le=100)
    recommendedCrops: List[str]
    fertilizerPlan: List[str]
    generalAdvice: str


class SoilPromptAnalysis(BaseModel):
    cropRecommendations: str
    fertilizerPlan: str


class InfluencingFactor(BaseModel):
    factor: str
    impact: Literal["Positive", "Negative", "Neutral"]
    comment: str


class YieldPredictionOutput(BaseModel):
    predictedYield: str
    yieldPerAcre: str
    confidenceScore: float = Field(ge=0, le=100)
    influencingFactors: List[InfluencingFactor]
    recommendations: List[str]
