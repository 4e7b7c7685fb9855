# speech.py - text-to-speech (PCM -> WAV data URI) and audio transcription

import base64
import io
import logging
import os
import tempfile

from google import genai
from google.genai import types
from pydub import AudioSegment
from pydub.utils import which

from errors import AIGenerationError

logger = logging.getLogger("croptrade.speech")

PCM_RATE = 24000
PCM_CHANNELS = 1
PCM_SAMPLE_WIDTH = 2

_audio_converter = which("ffmpeg") or which("ffmpeg.exe")
if _audio_converter:
    AudioSegment.converter = _audio_converter


def ffmpeg_available():
    return bool(_audio_converter)


def pcm_to_wav(pcm: bytes, channels=PCM_CHANNELS, rate=PCM_RATE, sample_width=PCM_SAMPLE_WIDTH):
    """Wrap raw little-endian PCM samples in a WAV container."""
    frame_width = channels * sample_width
    pcm = pcm[: len(pcm) - len(pcm) % frame_width]
    segment = AudioSegment(data=pcm, sample_width=sample_width, frame_rate=rate, channels=channels)
    out = io.BytesIO()
    segment.export(out, format="wav")
    return out.getvalue()


class SpeechSynthesizer:
    """Native Gemini speech model; returns raw PCM bytes."""

    def __init__(self, api_key, model, voice):
        self.model = model
        self.voice = voice
        self.client = genai.Client(api_key=api_key) if api_key else None

    def synthesize(self, text: str) -> bytes:
        if self.client is None:
            raise AIGenerationError("Gemini API key is not configured on the server.")
        resp = self.client.models.generate_content(
            model=self.model,
            contents=text,
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.voice),
                    )
                ),
            ),
        )
        for candidate in resp.candidates or []:
            for part in (candidate.content.parts if candidate.content else None) or []:
                if part.inline_data and part.inline_data.data:
                    return part.inline_data.data
        return b""


def text_to_speech(text: str, synthesizer):
    pcm = synthesizer.synthesize(text)
    if not pcm:
        raise AIGenerationError("No audio was returned from the model.")
    wav_b64 = base64.b64encode(pcm_to_wav(pcm)).decode()
    return {"audioUrl": "data:audio/wav;base64," + wav_b64}


def transcribe_upload(audio_file, ai_client):
    """Convert an uploaded recording to WAV with ffmpeg and have Gemini transcribe it."""
    if not _audio_converter:
        raise AIGenerationError("Server cannot convert audio: ffmpeg not found.")
    suffix = os.path.splitext(audio_file.filename or "")[1] or ".webm"
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp_in:
        audio_file.save(tmp_in)
    wav_path = tmp_in.name + ".wav"
    try:
        AudioSegment.from_file(tmp_in.name).export(wav_path, format="wav")
        text = ai_client.transcribe(wav_path)
    finally:
        for path in (tmp_in.name, wav_path):
            try:
                os.unlink(path)
            except OSError:
                pass
    if not text:
        raise AIGenerationError("Transcription failed or returned empty text.")
    return {"text": text}
