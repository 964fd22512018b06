"""
Gemini config suggestions.

Thin async wrapper around the Gemini generateContent REST endpoint that turns
a natural-language description ("a blizzard", "toxic rain") into a full,
validated ParticleConfig.

The credential comes from params.load_settings(); nothing here reads the
environment.
"""

import asyncio
import json
import logging
import queue
import threading
import time
from typing import Optional

import aiohttp

from params import (
    ConfigValidationError,
    DistributionType,
    ParticleConfig,
    ParticleShape,
    Settings,
    validate_config,
)

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """
You are a creative coder expert in particle systems.
Your task is to translate a user's natural language description (e.g., "a blizzard", "toxic rain", "matrix code") into a JSON configuration object for a particle system.

The particle system has these properties:
- color: Hex string (e.g., "#ffffff")
- count: Number of particles (500 to 10000)
- size: Particle size (0.01 to 0.5)
- speed: Animation speed multiplier (0.1 to 5.0)
- distribution: The spawn shape logic. Enum: 'SPHERE', 'CUBE', 'RING', 'EXPLOSION', 'HEART', 'FLOWER'.
- noiseStrength: How much random turbulence affects movement (0.0 to 2.0).
- shape: The geometry of the individual particle. Enum: 'SPHERE', 'CUBE', 'STAR', 'TETRAHEDRON', 'ICOSAHEDRON'.

Shape Selection Guide:
- Use 'CUBE' for: digital, matrix, tech, pixels, blocks, rigid structures.
- Use 'STAR' for: magic, cosmic, sparkles, fireworks, fantasy, energy.
- Use 'SPHERE' for: fluid, bubbles, rain, snow, organic, soft, planets.
- Use 'TETRAHEDRON' for: shards, crystals, ice, jagged, aggressive, triangles.
- Use 'ICOSAHEDRON' for: gems, complex tech, viruses, abstract low-poly.

Be creative and strictly follow the JSON schema.
"""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "color": {"type": "STRING"},
        "count": {"type": "INTEGER"},
        "size": {"type": "NUMBER"},
        "speed": {"type": "NUMBER"},
        "distribution": {"type": "STRING", "enum": [d.value for d in DistributionType]},
        "noiseStrength": {"type": "NUMBER"},
        "shape": {"type": "STRING", "enum": [s.value for s in ParticleShape]},
    },
    "required": ["color", "count", "size", "speed", "distribution", "noiseStrength", "shape"],
}


class SuggestionError(Exception):
    """Base exception for suggestion failures."""
    pass


class MissingCredentialError(SuggestionError):
    """Raised when no API key was configured at startup."""
    pass


class SuggestionAPIError(SuggestionError):
    """Raised for non-200 responses and malformed payloads."""
    def __init__(self, message: str, status_code: int, response_body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


def build_request_body(prompt: str) -> dict:
    return {
        "system_instruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def parse_response(data: dict) -> ParticleConfig:
    """Pull the JSON text out of a generateContent payload and validate it."""
    if not isinstance(data, dict):
        raise SuggestionAPIError("Malformed response: expected an object", 200, str(data))

    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        raise SuggestionAPIError("No candidates in response", 200, str(data))

    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
        raise SuggestionAPIError("Malformed response: no content parts", 200, str(data))

    text = "".join(str(p.get("text", "")) for p in parts).strip()
    if not text:
        raise SuggestionAPIError("No response text from Gemini", 200, str(data))

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise SuggestionAPIError(f"Response is not JSON: {e}", 200, text) from e

    try:
        return validate_config(raw)
    except ConfigValidationError as e:
        raise SuggestionAPIError(f"Rejected configuration: {e}", 200, text) from e


class SuggestionClient:
    """
    Async client for config suggestions.

    Usage:
        client = SuggestionClient(load_settings())
        config = await client.suggest("a blizzard")
    """

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(self, settings: Settings, timeout: float = 30.0):
        self.settings = settings
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return self.settings.has_api_key

    def _build_url(self) -> str:
        return f"{self.BASE_URL}/models/{self.settings.model}:generateContent"

    async def suggest(self, prompt: str) -> ParticleConfig:
        if not self.settings.has_api_key:
            raise MissingCredentialError("API key not found. Set GEMINI_API_KEY.")

        prompt = (prompt or "").strip()
        if not prompt:
            raise SuggestionError("Empty prompt")

        logger.info("sending prompt: %s", prompt)
        start = time.perf_counter()
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.settings.api_key}
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.post(self._build_url(), json=build_request_body(prompt), headers=headers) as resp:
                    body = await resp.text()
                    if resp.status != 200:
                        raise SuggestionAPIError(f"API error: {resp.status}", resp.status, body)
        except asyncio.TimeoutError as e:
            raise SuggestionError("Request timed out") from e
        except aiohttp.ClientError as e:
            raise SuggestionError(f"Request error: {e}") from e

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise SuggestionAPIError(f"Response is not JSON: {e}", 200, body) from e

        config = parse_response(data)
        logger.info("received config in %.0f ms: %s", (time.perf_counter() - start) * 1000, config.to_dict())
        return config


class SuggestionRunner:
    """
    Runs suggestions off the render thread.

    submit() returns immediately; pop_result() yields (config, None) on
    success or (None, message) on failure.
    """

    def __init__(self, client: SuggestionClient):
        self.client = client
        self._results = queue.Queue()
        self._busy = threading.Event()

    @property
    def busy(self) -> bool:
        return self._busy.is_set()

    def submit(self, prompt: str) -> bool:
        if self._busy.is_set():
            return False
        self._busy.set()
        threading.Thread(target=self._run, args=(prompt,), daemon=True).start()
        return True

    def _run(self, prompt: str):
        try:
            config = asyncio.run(self.client.suggest(prompt))
            self._results.put((config, None))
        except SuggestionError as e:
            logger.error("suggestion failed: %s", e)
            self._results.put((None, str(e)))
        except Exception as e:
            logger.exception("unexpected suggestion failure")
            self._results.put((None, f"Unexpected error: {e}"))
        finally:
            self._busy.clear()

    def pop_result(self):
        try:
            return self._results.get_nowait()
        except queue.Empty:
            return None
