# config.py - environment-driven settings for the CropTrade backend

import os

from dotenv import load_dotenv

load_dotenv()

# Database
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017/")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "croptrade")

# Gemini
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_TEXT_MODEL = os.getenv("GEMINI_TEXT_MODEL", "gemini-1.5-flash")
GEMINI_FAST_MODEL = os.getenv("GEMINI_FAST_MODEL", "gemini-2.0-flash")  # higher quota, used per simulator stage
GEMINI_PRO_MODEL = os.getenv("GEMINI_PRO_MODEL", "gemini-2.5-pro")
GEMINI_TTS_MODEL = os.getenv("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts")
TTS_VOICE = os.getenv("TTS_VOICE", "Algenib")

AI_MAX_RETRIES = int(os.getenv("AI_MAX_RETRIES", "3"))
AI_RETRY_BASE_SECONDS = float(os.getenv("AI_RETRY_BASE_SECONDS", "2"))

# Optional WeatherAPI.com key; empty means simulated forecasts
WEATHER_API = os.getenv("WEATHER_API", "")

# Allow-list frontend origins (comma-separated)
FRONTEND_ORIGINS = [
    o.strip()
    for o in os.getenv("FRONTEND_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

# Auth
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
TOKEN_TTL_HOURS = int(os.getenv("TOKEN_TTL_HOURS", "24"))

PORT = int(os.getenv("PORT", "5000"))


def as_dict():
    """Settings as a mapping suitable for ``app.config.update``."""
    return {
        "MONGO_URI": MONGO_URI,
        "MONGO_DB_NAME": MONGO_DB_NAME,
        "GEMINI_API_KEY": GEMINI_API_KEY,
        "GEMINI_TEXT_MODEL": GEMINI_TEXT_MODEL,
        "GEMINI_FAST_MODEL": GEMINI_FAST_MODEL,
        "GEMINI_PRO_MODEL": GEMINI_PRO_MODEL,
        "GEMINI_TTS_MODEL": GEMINI_TTS_MODEL,
        "TTS_VOICE": TTS_VOICE,
        "AI_MAX_RETRIES": AI_MAX_RETRIES,
        "AI_RETRY_BASE_SECONDS": AI_RETRY_BASE_SECONDS,
        "WEATHER_API": WEATHER_API,
        "FRONTEND_ORIGINS": FRONTEND_ORIGINS,
        "JWT_SECRET_KEY": JWT_SECRET_KEY,
        "TOKEN_TTL_HOURS": TOKEN_TTL_HOURS,
    }
