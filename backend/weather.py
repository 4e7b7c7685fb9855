# weather.py - 7-day forecast tool used by the yield prediction flow

import logging

import requests

logger = logging.getLogger("croptrade.weather")

WEATHERAPI_FORECAST_URL = "http://api.weatherapi.com/v1/forecast.json"

DEFAULT_FORECAST = "Sunny with temperatures between 25-32°C. Low chance of rain (10-20%). Winds light to moderate."
REGIONAL_FORECASTS = [
    ("coastal", "Partly cloudy with a high chance of afternoon showers (60-70%). Temperatures between 28-34°C. Higher humidity."),
    ("punjab", "Hot and dry conditions expected. Temperatures ranging from 35-42°C. Almost no chance of rain (<5%)."),
    ("california", "Clear and sunny skies. Temperatures stable around 22-28°C. No precipitation expected."),
]


def simulated_forecast(region: str):
    region_lc = (region or "").lower()
    for key, forecast in REGIONAL_FORECASTS:
        if key in region_lc:
            return forecast
    return DEFAULT_FORECAST


def summarize_forecast(data):
    days = data["forecast"]["forecastday"]
    lows = [d["day"]["mintemp_c"] for d in days]
    highs = [d["day"]["maxtemp_c"] for d in days]
    rain = max(d["day"].get("daily_chance_of_rain", 0) for d in days)
    wind = max(d["day"].get("maxwind_kph", 0) for d in days)
    conditions = days[0]["day"]["condition"]["text"]
    return (
        f"{conditions} to start the week. Temperatures between {round(min(lows))}-{round(max(highs))}°C. "
        f"Chance of rain up to {rain}%. Winds up to {round(wind)} km/h."
    )


def get_weather_forecast(region: str, api_key: str = ""):
    """Return ``{"forecast": ...}`` for the next 7 days in ``region``."""
    if api_key:
        try:
            res = requests.get(
                WEATHERAPI_FORECAST_URL,
                params={"key": api_key, "q": region, "days": 7},
                timeout=10,
            )
            res.raise_for_status()
            return {"forecast": summarize_forecast(res.json())}
        except Exception as e:
            logger.warning("Weather API error for %s: %s", region, e)
    logger.info("Using simulated weather forecast for: %s", region)
    return {"forecast": simulated_forecast(region)}
