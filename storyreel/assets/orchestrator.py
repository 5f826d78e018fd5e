"""
Asset generation - images, optional animation, partial-failure policy.

Per-scene work fans out (bounded by the scene count, at most 10) and joins
with ``asyncio.gather(return_exceptions=True)``: one scene failing never
cancels the others. The stage succeeds if at least one scene produced an
asset; every failure is kept and surfaced alongside the result.

Style-continuity ("recursive") images are the exception. Each image is
conditioned on the previous one, so they are produced by a left fold over
the scene list instead of in parallel.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from ..config import Config
from ..errors import (
    AssetGenerationError,
    ContentPolicyError,
    ErrorKind,
    ProviderQuotaError,
    classify_error,
    user_message,
)
from ..generators.base import Animator, GeneratedImage, ImageGenerator, scene_prompt
from ..models import MAX_SCENES, Asset, AssetSet, AssetType, StoryboardScene


T = TypeVar("T")


@dataclass
class SceneFailure:
    """A scene that produced no asset (or lost its animation)."""

    order: int
    error: BaseException
    fatal: bool = True

    @property
    def kind(self) -> ErrorKind:
        return classify_error(self.error)

    def describe(self) -> str:
        prefix = f"Scene {self.order}"
        if not self.fatal:
            return f"{prefix}: animation failed, using static image ({self.error})"
        return f"{prefix}: {self.error}"


@dataclass
class FoldState:
    """Accumulator of the recursive image fold."""

    previous_url: Optional[str] = None
    images: dict[int, GeneratedImage] = field(default_factory=dict)
    failures: list[SceneFailure] = field(default_factory=list)


async def bounded_gather(
    items: Sequence,
    worker: Callable[..., Awaitable[T]],
    limit: int,
) -> list:
    """Run ``worker(item)`` for every item, at most ``limit`` at a time.

    Exceptions are returned in place of results, never raised.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(item):
        async with semaphore:
            return await worker(item)

    return await asyncio.gather(*(run(item) for item in items), return_exceptions=True)


def estimate_image_cost(scene_count: int, provider: str, config: Config) -> float:
    """Flat per-image cost for ``scene_count`` images."""
    return scene_count * config.image_price(provider)


def estimate_animation_cost(scene_count: int, config: Config, seconds_per_scene: int | None = None) -> float:
    """Per-second animation cost for ``scene_count`` clips."""
    seconds = seconds_per_scene or config.animation.clip_seconds
    return scene_count * seconds * config.animation.price_per_second


class AssetOrchestrator:
    """Generates one visual asset per storyboard scene."""

    name = "Assets"

    def __init__(
        self,
        images: ImageGenerator,
        config: Config,
        animator: Optional[Animator] = None,
    ):
        """
        Args:
            images: Image generator collaborator
            config: Application config; ``config.animation.enabled`` is read
                here once and never re-derived from the environment
            animator: Animation collaborator, used only when enabled
        """
        self.images = images
        self.config = config
        self.animator = animator if config.animation.enabled else None

    def log(self, message: str) -> None:
        print(f"[{self.name}] {message}")

    @property
    def recursive(self) -> bool:
        return self.config.images.recursive

    def provider_for(self, position: int) -> str:
        """Image provider for the scene at ``position`` (0-based)."""
        if self.recursive and position == 0:
            return self.config.images.first_image_provider
        return self.config.images.provider

    async def generate(
        self,
        scenes: Sequence[StoryboardScene],
        prompt_overrides: dict[int, str] | None = None,
        revision_notes: str | None = None,
    ) -> AssetSet:
        """Generate assets for every scene.

        Args:
            scenes: Storyboard scenes, in order
            prompt_overrides: Replacement image prompts keyed by scene order
            revision_notes: Notes from a rejected asset set, appended to every prompt

        Returns:
            AssetSet with the successful assets and all failure messages.

        Raises:
            ContentPolicyError: If every scene was blocked by content filters.
            ProviderQuotaError: If nothing succeeded and a provider refused on
                auth/quota grounds.
            AssetGenerationError: If nothing succeeded for any other reason.
        """
        scenes = list(scenes)[:MAX_SCENES]
        if prompt_overrides:
            scenes = [
                s.model_copy(update={"image_prompt": prompt_overrides[s.order]})
                if s.order in prompt_overrides else s
                for s in scenes
            ]
        if revision_notes and revision_notes.strip():
            scenes = [
                s.model_copy(update={"image_prompt": f"{s.image_prompt}, {revision_notes.strip()}"})
                for s in scenes
            ]

        self.log(
            f"Generating assets for {len(scenes)} scenes "
            f"(provider: {self.config.images.provider}, recursive: {'yes' if self.recursive else 'no'}, "
            f"animation: {'hailuo' if self.animator else 'static'})"
        )

        if self.recursive:
            state = await self._fold_images(scenes)
        else:
            state = await self._gather_images(scenes)

        assets = [self._image_asset(scene, state.images[scene.order]) for scene in scenes if scene.order in state.images]
        failures = list(state.failures)

        if self.animator is not None and assets:
            assets, animation_failures = await self._animate(assets, scenes)
            failures += animation_failures

        failures.sort(key=lambda f: f.order)
        messages = [f.describe() for f in failures]
        for message in messages:
            self.log(f"⚠️  {message}")

        if not assets:
            raise self._stage_error(failures)

        if failures:
            self.log(f"Partial success: {len(assets)} of {len(scenes)} scenes have assets")

        result = AssetSet(assets=assets, failures=messages)
        self.log(f"Asset generation complete: {len(assets)} assets, ${result.total_cost:.4f}")
        return result

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def _fold_step(self, state: FoldState, item: tuple[int, StoryboardScene]) -> FoldState:
        position, scene = item
        references = [state.previous_url] if state.previous_url and position > 0 else []
        try:
            image = await self.images.generate_image(scene, self.provider_for(position), references)
        except Exception as e:
            return FoldState(state.previous_url, state.images, state.failures + [SceneFailure(scene.order, e)])
        return FoldState(image.url, {**state.images, scene.order: image}, state.failures)

    async def _fold_images(self, scenes: list[StoryboardScene]) -> FoldState:
        """Left fold: each image references the previous successful one."""
        state = FoldState()
        for item in enumerate(scenes):
            state = await self._fold_step(state, item)
        return state

    async def _gather_images(self, scenes: list[StoryboardScene]) -> FoldState:
        provider = self.config.images.provider

        async def one(scene: StoryboardScene) -> GeneratedImage:
            return await self.images.generate_image(scene, provider, [])

        results = await bounded_gather(scenes, one, min(len(scenes), self.config.images.max_parallel))

        state = FoldState()
        for scene, result in zip(scenes, results):
            if isinstance(result, BaseException):
                state.failures.append(SceneFailure(scene.order, result))
            else:
                state.images[scene.order] = result
        return state

    def _image_asset(self, scene: StoryboardScene, image: GeneratedImage) -> Asset:
        image_cost = self.config.image_price(image.provider)
        return Asset(
            scene_order=scene.order,
            type=AssetType.IMAGE,
            url=image.url,
            cost=image_cost,
            image_cost=image_cost,
            image_provider=image.provider,
            animation_provider="static",
            prompt=scene.image_prompt,
            reference_image_count=image.reference_image_count,
        )

    # ------------------------------------------------------------------
    # Animation
    # ------------------------------------------------------------------

    async def _animate(
        self,
        assets: list[Asset],
        scenes: list[StoryboardScene],
    ) -> tuple[list[Asset], list[SceneFailure]]:
        """Animate every image; a failed or timed-out job keeps the still."""
        by_order = {s.order: s for s in scenes}
        animation_cost = self.config.animation.clip_seconds * self.config.animation.price_per_second

        async def one(asset: Asset):
            return await self.animator.animate(asset.url, scene_prompt(by_order[asset.scene_order]))

        results = await bounded_gather(assets, one, min(len(assets), self.config.images.max_parallel))

        animated: list[Asset] = []
        failures: list[SceneFailure] = []
        for asset, result in zip(assets, results):
            if isinstance(result, BaseException):
                failures.append(SceneFailure(asset.scene_order, result, fatal=False))
                animated.append(asset)
                continue
            animated.append(
                asset.model_copy(update={
                    "type": AssetType.VIDEO_CLIP,
                    "url": result.video_url,
                    "image_url": asset.url,
                    "animation_provider": "hailuo",
                    "animation_cost": animation_cost,
                    "cost": asset.image_cost + animation_cost,
                    "generation_time": result.generation_time_seconds,
                })
            )
        return animated, failures

    # ------------------------------------------------------------------
    # Failure policy
    # ------------------------------------------------------------------

    def _stage_error(self, failures: list[SceneFailure]) -> Exception:
        details = [f.describe() for f in failures]
        kinds = [f.kind for f in failures]

        if kinds and all(kind == ErrorKind.CONTENT_POLICY for kind in kinds):
            return ContentPolicyError(
                "All image prompts were blocked by content filters. " + user_message(ErrorKind.CONTENT_POLICY),
                details=details,
            )
        if ErrorKind.QUOTA in kinds:
            return ProviderQuotaError(user_message(ErrorKind.QUOTA), details=details)

        first = str(failures[0].error) if failures else "Unknown error"
        return AssetGenerationError(
            f"Failed to generate all {len(failures)} assets: {first}",
            details=details,
        )
