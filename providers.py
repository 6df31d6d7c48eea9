"""
ChatScribe — Remote Endpoints
Chat summaries through an OpenAI-compatible API, plus the HTTP prompt,
web-content and markdown-to-PDF endpoints used by the !q / !cb / !w commands.
"""

import asyncio
import logging
import re
import unicodedata
from dataclasses import dataclass

import httpx

from config import Config

log = logging.getLogger("scribe.providers")

SUMMARY_SYSTEM_PROMPT = (
    "You are summarizing a group chat log. Write a detailed, well-organized summary "
    "of the provided messages: the main topics, who said what that matters, "
    "decisions made, and open questions."
)

# Per-command request parameters for the prompt endpoint.
PROMPT_PARAMS = {
    "ask": {"temperature": 0.3, "tokens": 3000, "version": "v2"},
    "banter": {"temperature": 0.92, "tokens": 4000, "format": "fun", "model": "openai-next", "version": "v2"},
}


class EndpointError(RuntimeError):
    """An outbound HTTP or LLM call failed."""


def slugify(text: str) -> str:
    """Lowercase ASCII slug used to name fetched documents."""
    normalized = unicodedata.normalize("NFD", text)
    ascii_text = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    slug = ascii_text.lower().strip()
    slug = re.sub(r"[^a-z0-9 -]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    return re.sub(r"-+", "-", slug) or "page"


@dataclass
class WebDocument:
    name: str
    markdown: str

    @property
    def data(self) -> bytes:
        return self.markdown.encode("utf-8")


class SummaryClient:
    """Summarizes chat transcripts via an OpenAI-compatible chat-completions API."""

    def __init__(self, config: Config):
        self.config = config
        self.model = config.summary_model
        self._client = None

    def _get_client(self):
        if self._client is None:
            import openai

            if not self.config.openai_api_key and not self.config.summary_base_url:
                raise EndpointError("OPENAI_API_KEY or SUMMARY_BASE_URL is required for summaries")
            kwargs = {"api_key": self.config.openai_api_key or "not-needed"}
            if self.config.summary_base_url:
                kwargs["base_url"] = self.config.summary_base_url
            self._client = openai.OpenAI(**kwargs)
            log.info(f"Initialized summary client (model: {self.model})")
        return self._client

    async def summarize(self, transcript: str) -> str:
        client = self._get_client()
        try:
            response = await asyncio.to_thread(
                client.chat.completions.create,
                model=self.model,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": transcript},
                ],
                max_tokens=800,
                temperature=0.6,
            )
        except Exception as e:
            log.error(f"Summary request failed ({self.model}): {e}")
            raise EndpointError(str(e)) from e
        return (response.choices[0].message.content or "").strip()


class EndpointClient:
    """Thin async wrapper around the prompt, web-content and PDF endpoints."""

    def __init__(self, config: Config):
        self.config = config
        self.timeout = float(config.http_timeout_sec)

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPError as e:
            log.error(f"POST {url} failed: {e}")
            raise EndpointError(str(e)) from e

    async def ask(self, command: str, question: str, context: str = "") -> str:
        """Send a prompt for ``ask``/``banter`` and return the assistant text."""
        if not self.config.command_base_url:
            raise EndpointError("COMMAND_BASE_URL is not configured")

        params = dict(PROMPT_PARAMS.get(command, PROMPT_PARAMS["ask"]))
        if self.config.prompt_model and "model" not in params:
            params["model"] = self.config.prompt_model
        payload = {"question": question, "context": context, **params}

        response = await self._post(f"{self.config.command_base_url}/q", json=payload)
        try:
            data = response.json()
        except ValueError as e:
            raise EndpointError(f"invalid JSON from prompt endpoint: {e}") from e
        answer = data.get("assistant") if isinstance(data, dict) else None
        if not isinstance(answer, str):
            raise EndpointError("prompt endpoint returned no assistant text")
        return answer

    async def fetch_markdown(self, url: str) -> WebDocument:
        if not self.config.web_content_url:
            raise EndpointError("WEB_CONTENT_URL is not configured")

        response = await self._post(
            self.config.web_content_url,
            json={"url": url},
            headers={"X-API-KEY": self.config.web_content_api_key},
        )
        try:
            markdown = response.json().get("markdown")
        except (ValueError, AttributeError) as e:
            raise EndpointError(f"invalid JSON from web-content endpoint: {e}") from e
        if not isinstance(markdown, str):
            raise EndpointError("web-content endpoint returned no markdown")
        return WebDocument(name=slugify(url), markdown=markdown)

    async def markdown_to_pdf(self, markdown: str) -> bytes:
        response = await self._post(self.config.md_to_pdf_url, data={"markdown": markdown})
        return response.content
