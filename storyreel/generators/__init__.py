"""Generator collaborators: analysis, script, storyboard, images, animation, speech."""

import os

from ..config import Config
from ..storage import LocalStorage
from .base import (
    AnimationResult,
    Animator,
    CharacterAlignment,
    GeneratedImage,
    GeneratorSuite,
    ImageGenerator,
    ScenePlanner,
    ScriptWriter,
    SpeechResult,
    SpeechSynthesizer,
    StoryAnalyzer,
)
from .elevenlabs import ElevenLabsSynthesizer, get_speech_synthesizer
from .gemini import GeminiImageGenerator
from .hailuo import HailuoAnimator
from .llm import GeminiLLMProvider, LLMError, LLMProvider, get_llm_provider
from .mock import (
    MockImageGenerator,
    MockScenePlanner,
    MockScriptWriter,
    MockSpeechSynthesizer,
    MockStoryAnalyzer,
)
from .text import LLMScenePlanner, LLMScriptWriter, LLMStoryAnalyzer


def _use_mock(mock: bool, provider: str, api_key_env: str, what: str) -> bool:
    """Fall back to the offline generator when a provider key is missing."""
    if mock or provider.lower() == "mock":
        return True
    if not os.environ.get(api_key_env):
        print(f"[Generators] ⚠️  {api_key_env} not set, using mock {what}")
        return True
    return False


def build_generators(config: Config, storage: LocalStorage, mock: bool = False) -> GeneratorSuite:
    """Assemble the collaborators named in configuration.

    Each provider falls back to its offline generator when its API key is
    not set. ``mock`` forces every generator offline and skips animation.

    Args:
        config: Application config (feature flags already resolved)
        storage: Storage that generated media is written to
        mock: Use offline generators everywhere
    """
    if _use_mock(mock, config.llm.provider, config.llm.api_key_env, "text generation"):
        analyzer, writer, planner = MockStoryAnalyzer(), MockScriptWriter(), MockScenePlanner()
    else:
        llm = get_llm_provider(config)
        analyzer, writer, planner = LLMStoryAnalyzer(llm), LLMScriptWriter(llm), LLMScenePlanner(llm)

    images: ImageGenerator
    if _use_mock(mock, config.images.provider, config.images.api_key_env, "images"):
        images = MockImageGenerator(storage)
    else:
        images = GeminiImageGenerator(storage, config.images)

    if _use_mock(mock, config.tts.provider, config.tts.api_key_env, "speech"):
        speech: SpeechSynthesizer = MockSpeechSynthesizer()
    else:
        speech = get_speech_synthesizer(config)

    animator = None
    if config.animation.enabled and not mock:
        animator = HailuoAnimator(config.animation)

    return GeneratorSuite(
        analyzer=analyzer,
        writer=writer,
        planner=planner,
        images=images,
        speech=speech,
        animator=animator,
    )


__all__ = [
    "AnimationResult",
    "Animator",
    "CharacterAlignment",
    "ElevenLabsSynthesizer",
    "GeminiImageGenerator",
    "GeminiLLMProvider",
    "GeneratedImage",
    "GeneratorSuite",
    "HailuoAnimator",
    "ImageGenerator",
    "LLMError",
    "LLMProvider",
    "LLMScenePlanner",
    "LLMScriptWriter",
    "LLMStoryAnalyzer",
    "MockImageGenerator",
    "MockScenePlanner",
    "MockScriptWriter",
    "MockSpeechSynthesizer",
    "MockStoryAnalyzer",
    "ScenePlanner",
    "ScriptWriter",
    "SpeechResult",
    "SpeechSynthesizer",
    "StoryAnalyzer",
    "build_generators",
    "get_llm_provider",
    "get_speech_synthesizer",
]
