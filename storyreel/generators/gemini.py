"""Google Gemini image generation.

Calls ``generateContent`` on a Gemini image model and stores the inline
base64 image it returns. Reference images (the previous scene in the
recursive fold) are sent as inline parts so the model matches their
style; only models in ``REFERENCE_MODELS`` accept them.
"""

import base64
import os
from typing import Any

import httpx

from ..config import ImageConfig
from ..models import StoryboardScene
from ..storage import LocalStorage, content_type
from .base import GeneratedImage, ImageGenerator


ORIENTATION_INSTRUCTION = (
    "IMPORTANT: Create a VERTICAL PORTRAIT composition (9:16 aspect ratio) where "
    "subjects are upright and properly oriented for vertical viewing."
)

STYLE_REFERENCE_INSTRUCTION = (
    "Match ONLY the visual style of the reference image(s): art style, color palette, "
    "lighting and rendering. Do NOT copy their subjects, characters or composition; "
    "the scene description is the source of content."
)

BLOCKED_FINISH_REASONS = {"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST"}

EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


class GeminiImageGenerator(ImageGenerator):
    """Image generator backed by the Gemini ``generateContent`` API."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    REFERENCE_MODELS = {"gemini-3-pro-image-preview"}

    def __init__(
        self,
        storage: LocalStorage,
        config: ImageConfig | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        namespace: str = "images",
    ):
        self.storage = storage
        self.config = config or ImageConfig()
        self.api_key = api_key or os.environ.get(self.config.api_key_env)
        if not self.api_key:
            raise ValueError(
                f"Gemini API key required. Set {self.config.api_key_env} "
                "environment variable or pass api_key parameter."
            )
        self.namespace = namespace
        self._transport = transport

    def model_for(self, provider: str) -> str:
        return self.config.models.get(provider, provider)

    async def generate_image(
        self,
        scene: StoryboardScene,
        provider: str,
        reference_urls: list[str] | None = None,
    ) -> GeneratedImage:
        """Generate and store one scene image.

        A request rejected because of its reference images is retried once
        without them.
        """
        model = self.model_for(provider)
        references = list(reference_urls or [])
        if references and model not in self.REFERENCE_MODELS:
            print(f"[Images] ⚠️  {model} does not accept reference images, ignoring them")
            references = []

        async with httpx.AsyncClient(timeout=180.0, transport=self._transport, follow_redirects=True) as client:
            try:
                data, mime_type = await self._request(client, scene, model, references)
            except (httpx.HTTPError, _ReferenceRejected) as e:
                if not references:
                    raise
                print(f"[Images] ⚠️  Scene {scene.order}: reference images failed ({e}), retrying without them")
                references = []
                data, mime_type = await self._request(client, scene, model, references)

        extension = EXTENSIONS.get(mime_type, "png")
        stored = self.storage.save_bytes(data, f"scene_{scene.order}.{extension}", self.namespace)
        return GeneratedImage(url=stored.url, provider=provider, reference_image_count=len(references))

    async def _request(
        self,
        client: httpx.AsyncClient,
        scene: StoryboardScene,
        model: str,
        references: list[str],
    ) -> tuple[bytes, str]:
        prompt = f"{scene.image_prompt}. {ORIENTATION_INSTRUCTION}"
        if references:
            prompt += f" {STYLE_REFERENCE_INSTRUCTION}"

        parts: list[dict[str, Any]] = [{"text": prompt}]
        for url in references:
            parts.append(await self._inline_part(client, url))

        image_config: dict[str, str] = {"aspectRatio": self.config.aspect_ratio}
        if model in self.REFERENCE_MODELS:
            image_config["imageSize"] = self.config.resolution

        print(f"[Images] Scene {scene.order} with {model}" + (f" ({len(references)} reference)" if references else ""))
        response = await client.post(
            f"{self.BASE_URL}/models/{model}:generateContent",
            headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
            json={
                "contents": [{"role": "user", "parts": parts}],
                "generationConfig": {"responseModalities": ["IMAGE"], "imageConfig": image_config},
            },
        )
        if response.status_code >= 400:
            message = _error_message(response)
            if references and "INVALID_ARGUMENT" in response.text:
                raise _ReferenceRejected(message)
            raise RuntimeError(message)

        return _extract_image(response.json())

    async def _inline_part(self, client: httpx.AsyncClient, url: str) -> dict[str, Any]:
        """Encode a reference image as an inline part (stored files are read locally)."""
        local = self.storage.resolve(url)
        if local is not None:
            data, mime_type = local.read_bytes(), content_type(local.name)
        else:
            response = await client.get(url)
            response.raise_for_status()
            data = response.content
            mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0]
        return {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode("ascii")}}


class _ReferenceRejected(Exception):
    """The provider refused the request because of its reference images."""


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error", {})
    except ValueError:
        error = {}
    detail = error.get("message") or response.text
    if response.status_code == 429 or error.get("status") == "RESOURCE_EXHAUSTED":
        return f"Gemini API error: quota exceeded ({detail})"
    return f"Gemini API error: {response.status_code} {detail}"


def _extract_image(result: dict[str, Any]) -> tuple[bytes, str]:
    block_reason = result.get("promptFeedback", {}).get("blockReason")
    if block_reason:
        raise RuntimeError(f"Image generation blocked by content filters ({block_reason})")

    candidates = result.get("candidates") or []
    if not candidates:
        raise RuntimeError("Gemini API did not return an image in the response")
    candidate = candidates[0]
    if candidate.get("finishReason") in BLOCKED_FINISH_REASONS:
        raise RuntimeError(f"Image generation blocked by content filters ({candidate['finishReason']})")

    for part in candidate.get("content", {}).get("parts", []):
        inline = part.get("inlineData") or {}
        mime_type = inline.get("mimeType", "")
        if inline.get("data") and mime_type.startswith("image/"):
            return base64.b64decode(inline["data"]), mime_type
    raise RuntimeError("Gemini API did not return an image in the response")
