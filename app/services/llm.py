import json
import logging
import pathlib
import re
from typing import Any
from uuid import uuid4

import httpx
import jinja2
from openai import AsyncOpenAI
from openai import OpenAIError
from tenacity import AsyncRetrying
from tenacity import RetryCallState
from tenacity import stop_after_attempt
from tenacity import wait_exponential

from app.core.config import Settings

# Configure module logger
logger = logging.getLogger(__name__)


# Custom exceptions for better error handling
class LLMError(Exception):
    """Raised when LLM call fails"""


class JSONParsingError(Exception):
    """Raised when JSON parsing fails"""


# --- Reusable Jinja2 Environment ---
PROMPT_DIR = pathlib.Path(__file__).parent / "prompt_templates"
env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(PROMPT_DIR),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
)


def render_prompt(template_name: str, **context: Any) -> str:
    """Render a prompt template from PROMPT_DIR."""
    try:
        template = env.get_template(template_name)
    except jinja2.TemplateNotFound:
        logger.error("Template not found: %s", template_name)
        raise LLMError(f"Internal configuration error: Template '{template_name}' not found.") from None
    return template.render(**context).strip()


# ---------------------------------------------------------------
# Helper predicate for tenacity retry
# ---------------------------------------------------------------


def _should_retry_llm_call(retry_state: RetryCallState) -> bool:
    """Determines if a retry should occur based on the exception in RetryCallState."""
    if not retry_state.outcome:
        return False

    exc = retry_state.outcome.exception()
    if not exc:
        return False

    # Unwrap our custom LLMError to get to the original cause (e.g., OpenAIError)
    actual_exception = exc.__cause__ if isinstance(exc, LLMError) and exc.__cause__ else exc

    status = getattr(actual_exception, "status", None) or getattr(actual_exception, "status_code", None)
    if status in {429, 500, 502, 503, 504}:
        logger.debug("Retryable API error status %s detected. Retrying...", status)
        return True
    return False


# ---------------------------------------------------------------
# OpenRouter-compatible generation provider
# ---------------------------------------------------------------
class OpenAIGenerationProvider:
    """``generate(system, user) -> text`` over an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1",
        max_tokens: int = 16384,
        connect_timeout: float = 10.0,
        read_timeout: float = 600.0,
        max_attempts: int = 3,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.max_attempts = max_attempts
        self.timeout_config = httpx.Timeout(connect_timeout, read=read_timeout)
        self.client = client or AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            default_headers={"X-Title": "research-engine"},
            timeout=self.timeout_config,
            max_retries=0,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIGenerationProvider":
        return cls(
            api_key=settings.llm_api_key,
            model=settings.model_id,
            base_url=settings.llm_base_url,
            max_tokens=settings.llm_max_tokens,
            connect_timeout=settings.LLM_CONNECT_TIMEOUT,
            read_timeout=settings.LLM_READ_TIMEOUT,
        )

    async def generate(self, system: str, user: str) -> str:
        """Single generation call; transport-level 429/5xx failures are retried, empty output is not."""
        retrying = AsyncRetrying(
            wait=wait_exponential(multiplier=1, min=2, max=10),
            stop=stop_after_attempt(self.max_attempts),
            retry=_should_retry_llm_call,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._call(system, user)
        raise LLMError("LLM call did not run")  # pragma: no cover

    async def _call(self, system: str, user: str) -> str:
        request_id = str(uuid4())
        logger.info("[%s] Making LLM API call with model: %s", request_id, self.model)

        try:
            rsp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                max_tokens=self.max_tokens,
                temperature=0.4,
                timeout=self.timeout_config,
            )
        except OpenAIError as e:
            logger.error("[%s] OpenAI API error: %s", request_id, str(e))
            raise LLMError(f"OpenAI API error: {str(e)}") from e

        if not rsp or not getattr(rsp, "choices", None):
            logger.error("[%s] Invalid response structure from LLM API: %s", request_id, str(rsp))
            raise LLMError("No textual content in LLM response: missing choices")

        message = rsp.choices[0].message
        content = (message.content or "").strip() if message is not None else ""
        if not content:
            logger.error("[%s] No textual content in LLM response: %s", request_id, str(message))
            raise LLMError("No textual content in LLM response")

        usage = getattr(rsp, "usage", None)
        if usage is not None:
            logger.info(
                "[%s] LLM response received: %d chars, %s prompt / %s completion tokens",
                request_id,
                len(content),
                usage.prompt_tokens,
                usage.completion_tokens,
            )
        else:
            logger.info("[%s] LLM response received, length: %d chars", request_id, len(content))
        return content


# ---------------------------------------------------------------
# JSON extractor helper
# ---------------------------------------------------------------
def extract_json(text: str) -> Any:
    """Attempts to robustly extract and parse JSON from LLM responses, handling markdown fences and extraneous text."""
    request_id = str(uuid4())
    logger.debug("[%s] Attempting to parse JSON response, length: %d", request_id, len(text))

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.debug("[%s] Initial JSON parse failed, attempting extraction strategies...", request_id)

    # Strategy 1: Markdown Code Fence Extraction
    match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text, re.DOTALL)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            logger.warning("[%s] Failed to parse JSON from fenced block, trying next strategy...", request_id)

    # Strategy 2: Use JSONDecoder().raw_decode for first object/array
    decoder = json.JSONDecoder()
    starts = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    if not starts:
        raise JSONParsingError("No JSON object or array marker found in response")
    try:
        obj, _ = decoder.raw_decode(text, min(starts))
        return obj
    except json.JSONDecodeError as e:
        logger.warning("[%s] Failed to parse JSON using raw_decode: %s", request_id, str(e))
    raise JSONParsingError("All strategies to parse JSON from LLM response failed.")
