"""Anthropic client used by the optional AI-enhancement layer."""
import asyncio
import json
import os

from anthropic import AsyncAnthropic
from dotenv import load_dotenv


load_dotenv()
DEFAULT_MODEL = os.getenv("FEEDBACK_AI_MODEL", "claude-haiku-4-5")


class APIClient:
    """Wrapper around the Anthropic API with retry and timeout handling."""

    def __init__(self, model: str = DEFAULT_MODEL, max_retries: int = 3, api_key: str | None = None):
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required")
        self.client = AsyncAnthropic(api_key=api_key)
        self.model = model
        self.max_retries = max_retries

    async def _create(self, prompt: str, max_tokens: int, timeout: float):
        return await asyncio.wait_for(
            self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}]
            ),
            timeout=timeout
        )

    async def call(
        self,
        prompt: str,
        max_tokens: int = 512,
        timeout: float = 60.0,
        semaphore: asyncio.Semaphore | None = None
    ) -> str:
        """Call the API, retrying with exponential backoff before re-raising."""
        for attempt in range(self.max_retries):
            try:
                if semaphore:
                    async with semaphore:
                        response = await self._create(prompt, max_tokens, timeout)
                else:
                    response = await self._create(prompt, max_tokens, timeout)
                return response.content[0].text.strip()

            except Exception:
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                    continue
                raise


def _strip_code_fence(content: str) -> str:
    if not content.startswith("```"):
        return content
    parts = content.split("```")
    if len(parts) < 2:
        return content
    body = parts[1]
    if body[:4].lower() == "json":
        body = body[4:]
    return body.strip()


def parse_json(content: str) -> dict:
    """Parse the first JSON object in a model response.

    Handles fenced code blocks and leading or trailing prose around the object.
    """
    content = _strip_code_fence(content.strip())

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        data = None

    if data is None:
        start = content.find("{")
        if start >= 0:
            decoder = json.JSONDecoder()
            try:
                data, _ = decoder.raw_decode(content[start:])
            except json.JSONDecodeError:
                data = None

    if not isinstance(data, dict):
        raise json.JSONDecodeError(
            f"Could not parse a JSON object. Last 200 chars: {content[-200:]}",
            content,
            max(0, len(content) - 1)
        )
    return data
