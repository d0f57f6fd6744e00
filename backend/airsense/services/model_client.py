"""
Model Client
============

Talks to Google Gemini so a language model can review readings before we
store them.

WHAT THIS DOES:
--------------
1. Renders the prompt payload (new reading, last reading, recent history,
   weather) as JSON with instructions on how to answer
2. Sends it to Gemini with one tool available: fetchWeather(lat, lon)
3. If the model asks for weather, we run the tool and send the result back.
   At most 3 rounds - after that we take whatever the model said last.
4. Digs the JSON verdict out of the reply text

WHAT COMES BACK:
---------------
    ModelVerdict(corrected={...}, flag="no_change", reason="...")
        The model answered with usable JSON.

    ModelVerdict(corrected={"text": "..."}, flag="parse_error", reason="...")
        The model answered, but not with anything we can use.

    None
        We never got an answer (no key, timeout, auth error, network...).

The caller needs that difference: "unreachable" can fall back to the local
corrector, "unusable" is reported.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from google import genai
from google.genai import types
from pydantic import ValidationError

from airsense.models import ModelVerdict, ReadingFlag
from airsense.services.weather_service import WeatherService
from airsense.utils.json_extract import extract_json_object
from airsense.utils.validation import parse_finite

logger = logging.getLogger(__name__)


# =============================================================================
# PROMPTS & TOOLS
# =============================================================================

READING_REVIEW_INSTRUCTION = (
    "You are checking environmental sensor telemetry from an indoor/outdoor "
    "air monitor (temperature °C, humidity %, mq135 gas index, pm25 and pm10 "
    "in µg/m³). Compare the incoming reading with the last accepted reading, "
    "the recent history and the weather (if given). Correct values that are "
    "physically implausible or clearly sensor glitches; leave plausible values "
    "alone. Reply with JSON only: "
    '{"corrected": {"temperature": n, "humidity": n, "mq135": n, "pm25": n, "pm10": n}, '
    '"flag": "no_change" | "anomaly_detected" | "weather_adjusted", "reason": "..."}'
)

BATCH_REVIEW_INSTRUCTION = (
    "You are checking a batch of environmental sensor readings (temperature °C, "
    "humidity %, mq135 gas index, pm25 and pm10 in µg/m³), oldest first. Detect "
    "anomalies, fill missing values and correct implausible ones using the other "
    "readings and the weather (if given). Reply with JSON only: "
    '{"corrected": [ ...one object per reading, same order... ], '
    '"flag": "no_change" | "anomaly_detected" | "weather_adjusted", "reason": "..."}'
)

TOOL_INSTRUCTION = (
    "\n\nIMPORTANT: If you need weather data to make a decision, call the weather "
    "tool with the provided coordinates. Always include 'flag' and 'reason' "
    "fields in your response."
)

PARSE_ERROR_REASON = "Could not parse model response as JSON"

WEATHER_TOOL = {
    "function_declarations": [
        {
            "name": "fetchWeather",
            "description": "Current weather (temperature °C, humidity %, conditions) at a location.",
            "parameters": {
                "type": "OBJECT",
                "properties": {
                    "lat": {"type": "NUMBER", "description": "Latitude in degrees"},
                    "lon": {"type": "NUMBER", "description": "Longitude in degrees"},
                },
                "required": ["lat", "lon"],
            },
        }
    ]
}

WEATHER_TOOL_NAMES = ("fetchWeather", "weather")


# =============================================================================
# CONVERSATION TURNS
# =============================================================================

@dataclass
class UserTurn:
    """Prompt text we send."""
    text: str


@dataclass
class ModelTurn:
    """A model reply kept verbatim (the SDK content object) so it can be replayed."""
    content: Any


@dataclass
class ToolResultTurn:
    """Result of a tool the model asked us to run."""
    name: str
    response: dict


Turn = Union[UserTurn, ModelTurn, ToolResultTurn]


def to_contents(turns: list[Turn]) -> list[Any]:
    """Render the conversation in the shape generate_content() takes."""
    contents = []
    for turn in turns:
        if isinstance(turn, UserTurn):
            contents.append({"role": "user", "parts": [{"text": turn.text}]})
        elif isinstance(turn, ModelTurn):
            contents.append(turn.content)
        elif isinstance(turn, ToolResultTurn):
            contents.append({
                "role": "user",
                "parts": [{"function_response": {"name": turn.name, "response": turn.response}}],
            })
        else:
            raise TypeError(f"Unknown conversation turn: {turn!r}")
    return contents


def build_prompt(payload: dict[str, Any]) -> str:
    """Payload as indented JSON plus the tool instructions."""
    return json.dumps(payload, indent=2, default=str) + TOOL_INSTRUCTION


def parse_verdict(text: str) -> ModelVerdict:
    """
    Turn reply text into a verdict.

    Anything without a JSON object holding "corrected" becomes a parse_error
    verdict carrying the raw text.
    """
    parsed = extract_json_object(text)
    if parsed is not None and "corrected" in parsed:
        try:
            return ModelVerdict(
                corrected=parsed["corrected"],
                flag=str(parsed.get("flag") or ReadingFlag.NO_CHANGE.value),
                reason=str(parsed.get("reason") or ""),
            )
        except ValidationError as e:
            logger.warning(f"Model verdict has an unusable 'corrected' field: {e}")

    logger.warning("Model response was not usable JSON; wrapping as parse_error")
    return ModelVerdict(
        corrected={"text": text},
        flag=ReadingFlag.PARSE_ERROR.value,
        reason=PARSE_ERROR_REASON,
    )


def _first_content(response) -> Any:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    return getattr(candidates[0], "content", None)


def find_function_call(response) -> Any:
    """The first function call in the reply, or None."""
    content = _first_content(response)
    for part in getattr(content, "parts", None) or []:
        call = getattr(part, "function_call", None)
        if call is not None and getattr(call, "name", ""):
            return call
    return None


def response_text(response) -> str:
    """Concatenated text parts of the reply."""
    content = _first_content(response)
    texts = [getattr(part, "text", "") or "" for part in getattr(content, "parts", None) or []]
    return "".join(texts)


# =============================================================================
# THE CLIENT
# =============================================================================

class ModelClient:
    """
    Gemini wrapper with a bounded weather-tool loop.

    HOW TO USE:
    ----------
    client = ModelClient(api_key="...", weather_service=weather)
    verdict = await client.review({"instruction": ..., "incoming": {...}}, lat, lon)
    if verdict is None:
        ...  # model unreachable - fall back
    elif verdict.is_parse_error:
        ...  # model answered garbage
    """

    MAX_TOOL_ITERATIONS = 3

    GENERATION_CONFIG = types.GenerateContentConfig(
        temperature=0.2,
        top_p=0.8,
        top_k=40,
        max_output_tokens=2048,
        tools=[WEATHER_TOOL],
    )

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gemini-2.5-flash",
        request_timeout: float = 30.0,
        weather_service: Optional[WeatherService] = None,
        client: Any = None,
    ):
        """
        Set up the client.

        Args:
            api_key: Gemini API key. None leaves the client unconfigured.
            model_name: Which Gemini model to use
            request_timeout: Seconds per model call
            weather_service: Runs the fetchWeather tool
            client: Pre-built genai.Client (tests pass a fake)
        """
        self.model_name = model_name
        self.request_timeout = request_timeout
        self.weather_service = weather_service
        self.client = client

        if self.client is None and api_key:
            try:
                self.client = genai.Client(api_key=api_key)
                logger.info(f"Gemini client initialized with model: {model_name}")
            except Exception as e:
                logger.warning(f"Failed to init Gemini client: {e}")
                self.client = None
        elif self.client is None:
            logger.warning("GOOGLE_API_KEY not set; model correction disabled")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def _generate(self, turns: list[Turn]):
        return await asyncio.wait_for(
            self.client.aio.models.generate_content(
                model=self.model_name,
                contents=to_contents(turns),
                config=self.GENERATION_CONFIG,
            ),
            timeout=self.request_timeout,
        )

    async def run_tool(
        self,
        name: str,
        args: dict,
        lat: Optional[float],
        lon: Optional[float],
    ) -> Optional[dict]:
        """
        Execute a tool call from the model.

        The model's lat/lon win; the request's coordinates fill the gaps.
        """
        if name not in WEATHER_TOOL_NAMES:
            logger.warning(f"Unknown tool: {name}")
            return None
        if self.weather_service is None:
            return None

        tool_lat = parse_finite(args.get("lat"))
        tool_lon = parse_finite(args.get("lon"))
        tool_lat = lat if tool_lat is None else tool_lat
        tool_lon = lon if tool_lon is None else tool_lon
        if tool_lat is None or tool_lon is None:
            logger.warning("Weather tool called without usable coordinates")
            return None

        logger.info(f"Weather tool called: fetchWeather({tool_lat}, {tool_lon})")
        snapshot = await self.weather_service.fetch_current(tool_lat, tool_lon)
        return snapshot.model_dump() if snapshot else None

    async def review(
        self,
        payload: dict[str, Any],
        lat: Optional[float] = None,
        lon: Optional[float] = None,
    ) -> Optional[ModelVerdict]:
        """
        Ask the model for a verdict on the payload.

        Returns:
            A ModelVerdict (possibly flagged parse_error), or None if the
            model couldn't be reached
        """
        if self.client is None:
            logger.warning("Gemini client not initialized")
            return None

        turns: list[Turn] = [UserTurn(build_prompt(payload))]
        logger.info(f"Calling Gemini (lat: {lat}, lon: {lon})...")

        try:
            response = await self._generate(turns)

            iterations = 0
            while True:
                call = find_function_call(response)
                if call is None:
                    break
                if iterations >= self.MAX_TOOL_ITERATIONS:
                    logger.warning("Max function call iterations reached")
                    break
                iterations += 1

                args = dict(getattr(call, "args", None) or {})
                logger.info(f"Function call detected (iteration {iterations}): {call.name} {args}")
                result = await self.run_tool(call.name, args, lat, lon)

                turns.append(ModelTurn(_first_content(response)))
                turns.append(ToolResultTurn(call.name, result or {"error": "Tool execution failed"}))
                response = await self._generate(turns)

        except asyncio.TimeoutError:
            logger.error(f"Gemini call timed out after {self.request_timeout}s")
            return None
        except Exception as e:
            logger.error(f"Gemini call failed: {e}")
            return None

        text = response_text(response)
        verdict = parse_verdict(text)
        logger.info(f"Gemini verdict: flag={verdict.flag} reason={verdict.reason!r}")
        return verdict
