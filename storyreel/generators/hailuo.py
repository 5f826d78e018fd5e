"""MiniMax Hailuo image-to-video animation.

Animates a still scene image into a short clip (6s at 768P by default).
Jobs are asynchronous on the provider side: submit, poll every
``poll_interval`` seconds until ``max_wait_seconds``, then resolve the
download URL of the finished file.

Pricing: $0.045 per second of generated video (768P).
"""

import asyncio
import os
import time

import httpx

from ..config import AnimationConfig
from .base import AnimationResult, Animator


# base_resp.status_code values with dedicated messages
ERROR_MESSAGES = {
    1008: "Insufficient balance. Please check your account credits.",
    2049: "Invalid API key. Please verify the MiniMax API key.",
}


class HailuoAnimator(Animator):
    """Animator backed by the MiniMax video generation API."""

    BASE_URL = "https://api.minimax.io/v1"

    def __init__(
        self,
        config: AnimationConfig | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the animator.

        Args:
            config: Animation configuration (model, polling, pricing)
            api_key: MiniMax API key (defaults to the env var named in config)
            transport: Optional httpx transport, used by tests
        """
        self.config = config or AnimationConfig()
        self.api_key = api_key or os.environ.get(self.config.api_key_env)
        if not self.api_key:
            raise ValueError(
                f"MiniMax API key required. Set {self.config.api_key_env} "
                "environment variable or pass api_key parameter."
            )
        self._transport = transport

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def estimate_cost(self, seconds: int | None = None) -> float:
        """Estimated cost of one clip in USD."""
        seconds = seconds or self.config.clip_seconds
        return seconds * self.config.price_per_second

    async def animate(self, image_url: str, prompt: str) -> AnimationResult:
        """Submit, poll and resolve one animation job."""
        start_time = time.time()

        task_id = await self._submit(image_url, prompt)
        print(f"[Hailuo] generation started: {task_id}")

        file_id = await self._wait_for_completion(task_id)
        video_url = await self._retrieve_download_url(file_id)

        generation_time = time.time() - start_time
        print(f"[Hailuo] animation complete in {generation_time:.1f}s")

        return AnimationResult(
            video_url=video_url,
            generation_time_seconds=generation_time,
            clip_seconds=self.config.clip_seconds,
        )

    async def _submit(self, image_url: str, prompt: str) -> str:
        """Start a generation job and return its task id."""
        payload = {
            "model": self.config.model,
            "prompt": prompt,
            "first_frame_image": image_url,
            "duration": self.config.clip_seconds,
            "resolution": self.config.resolution.upper(),
        }

        async with self._client(timeout=60.0) as client:
            response = await client.post(
                f"{self.BASE_URL}/video_generation",
                headers=self._get_headers(),
                json=payload,
            )
            if response.status_code >= 400:
                raise RuntimeError(f"MiniMax Hailuo API error: {response.status_code} {response.text}")
            data = response.json()

        base_resp = data.get("base_resp") or {}
        code = base_resp.get("status_code", 0)
        if code != 0:
            message = ERROR_MESSAGES.get(code, f"({code}) {base_resp.get('status_msg', 'Unknown error')}")
            raise RuntimeError(f"MiniMax API error: {message}")

        task_id = data.get("task_id") or data.get("id")
        if not task_id:
            raise RuntimeError(f"MiniMax API returned no task id. Response: {data}")
        return task_id

    async def _wait_for_completion(self, task_id: str) -> str:
        """Poll for task completion and return the generated file id.

        ``max_wait_seconds`` is a wall-clock limit: time spent inside status
        requests counts as well as the sleeps between them.

        Raises:
            TimeoutError: If the task doesn't complete in time
            RuntimeError: If the task fails
        """
        max_wait_seconds = self.config.max_wait_seconds
        try:
            return await asyncio.wait_for(self._poll(task_id), timeout=max_wait_seconds)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Hailuo generation timed out after {max_wait_seconds:g}s") from None

    async def _poll(self, task_id: str) -> str:
        start_time = time.monotonic()

        async with self._client(timeout=30.0) as client:
            while True:
                response = await client.get(
                    f"{self.BASE_URL}/query/video_generation",
                    headers=self._get_headers(),
                    params={"task_id": task_id},
                )
                if response.status_code >= 400:
                    raise RuntimeError(f"MiniMax status query error: {response.status_code} {response.text}")
                data = response.json()

                status = str(data.get("status", "")).lower()
                print(f"  [{time.monotonic() - start_time:.0f}s] Status: {status or 'unknown'}")

                if status == "success":
                    file_id = data.get("file_id")
                    if not file_id:
                        raise RuntimeError(f"Task completed but no file id found. Response: {data}")
                    return file_id
                if status == "fail" or status == "failed":
                    message = (data.get("base_resp") or {}).get("status_msg", "Unknown error")
                    raise RuntimeError(f"Hailuo generation failed: {message}")

                await asyncio.sleep(self.config.poll_interval)

    async def _retrieve_download_url(self, file_id: str) -> str:
        async with self._client(timeout=30.0) as client:
            response = await client.get(
                f"{self.BASE_URL}/files/retrieve",
                headers=self._get_headers(),
                params={"file_id": file_id},
            )
            if response.status_code >= 400:
                raise RuntimeError(f"MiniMax file retrieval error: {response.status_code} {response.text}")
            data = response.json()

        download_url = (data.get("file") or {}).get("download_url")
        if not download_url:
            raise RuntimeError(f"No download URL found for file_id: {file_id}")
        return download_url
