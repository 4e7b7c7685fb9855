# ai_client.py - thin wrapper around Gemini (google-generativeai) plus language helpers

import base64
import binascii
import json
import logging
import re

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from deep_translator import GoogleTranslator
from langdetect import detect
from pydantic import ValidationError
from tenacity import (
    Retrying,
    before_sleep_log,
    nap,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from errors import AIGenerationError, APIError

logger = logging.getLogger("croptrade.ai")

DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


# -------------------------------
# Helpers
# -------------------------------
def detect_lang(text: str):
    try:
        return detect(text)
    except Exception:
        return "en"


def translate_to_en(text: str):
    try:
        return GoogleTranslator(source="auto", target="en").translate(text)
    except Exception:
        return text


def translate_from_en(text: str, target_lang: str):
    if target_lang == "en":
        return text
    try:
        return GoogleTranslator(source="en", target=target_lang).translate(text)
    except Exception:
        return text


def parse_data_uri(data_uri: str):
    """Split ``data:<mime>;base64,<payload>`` into ``(mime, bytes)``."""
    match = DATA_URI_RE.match(data_uri or "")
    if not match:
        raise APIError("error:Invalid form data.", errors={"photoDataUri": ["Expected a base64 data URI."]})
    try:
        payload = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise APIError("error:Invalid form data.", errors={"photoDataUri": ["Image data is not valid base64."]})
    return match.group("mime"), payload


def is_rate_limited(exc):
    return isinstance(exc, google_exceptions.ResourceExhausted) or "429" in str(exc)


def _strip_fences(text):
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```[a-zA-Z]*\s*", "", text)
        text = re.sub(r"\s*```$", "", text)
    return text


# -------------------------------
# Client
# -------------------------------
class GeminiClient:
    def __init__(self, api_key, default_model, max_retries=3, retry_base_seconds=2.0):
        self.api_key = api_key
        self.default_model = default_model
        self.max_retries = max(1, max_retries)
        self.retry_base_seconds = retry_base_seconds
        if api_key:
            genai.configure(api_key=api_key)

    def _require_key(self):
        if not self.api_key:
            raise AIGenerationError("Gemini API key is not configured on the server.")

    def _with_retry(self, call):
        """Run ``call`` and back off on rate limits (2s, 4s, ...)."""
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_incrementing(start=self.retry_base_seconds, increment=self.retry_base_seconds),
            retry=retry_if_exception(is_rate_limited),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=nap.sleep,
            reraise=True,
        )
        return retrying(call)

    @staticmethod
    def _text_of(resp):
        try:
            return (resp.text or "").strip()
        except ValueError:
            # blocked or empty candidates
            return ""

    def generate_text(self, prompt, model=None, system=None):
        self._require_key()
        gen_model = genai.GenerativeModel(model or self.default_model, system_instruction=system)
        resp = self._with_retry(lambda: gen_model.generate_content(prompt))
        return self._text_of(resp)

    def generate_json(self, prompt, schema, model=None, media=None):
        """Ask for JSON and validate it into ``schema``; ``media`` is ``(mime, bytes)``."""
        self._require_key()
        gen_model = genai.GenerativeModel(model or self.default_model)
        instructions = (
            f"{prompt}\n\nRespond only with a JSON object that matches this JSON schema:\n"
            f"{json.dumps(schema.model_json_schema())}"
        )
        contents = [instructions]
        if media:
            mime, data = media
            contents.append({"mime_type": mime, "data": data})
        resp = self._with_retry(lambda: gen_model.generate_content(
            contents,
            generation_config={"response_mime_type": "application/json"},
        ))
        text = self._text_of(resp)
        if not text:
            raise AIGenerationError("The AI returned an empty response.")
        try:
            return schema.model_validate_json(_strip_fences(text))
        except ValidationError as e:
            logger.warning("Gemini JSON did not match %s: %s", schema.__name__, e)
            raise AIGenerationError("The AI returned data in an unexpected format.")

    def chat_with_tools(self, prompt, system, tools, model=None):
        self._require_key()
        gen_model = genai.GenerativeModel(model or self.default_model, system_instruction=system, tools=tools)
        chat = gen_model.start_chat(enable_automatic_function_calling=True)
        resp = self._with_retry(lambda: chat.send_message(prompt))
        return self._text_of(resp)

    def transcribe(self, wav_path, model=None):
        self._require_key()
        uploaded = genai.upload_file(path=wav_path)
        speech_model = genai.GenerativeModel(model or self.default_model)
        resp = self._with_retry(lambda: speech_model.generate_content(["Transcribe this audio.", uploaded]))
        return self._text_of(resp)
