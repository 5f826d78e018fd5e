"""LLM-backed story analysis, script writing and scene planning.

Each generator asks the configured :class:`LLMProvider` for a JSON object
shaped like the target model and validates it with pydantic. Validation
errors propagate so the workflow can report an invalid artifact.
"""

from typing import Any

from ..models import Language, Script, StoryAnalysis, Storyboard
from .base import ScenePlanner, ScriptWriter, StoryAnalyzer
from .llm import LLMProvider


LANGUAGE_NAMES = {"zh": "Chinese (Mandarin)", "en": "English", "fr": "French"}

DURATION_GUIDANCE = {
    30: "Very simple story - 1-2 characters, single key moment or scene",
    60: "Simple story - 2-3 characters, 2-3 scenes with clear beginning/middle/end",
    90: "Richer story - 3-5 characters, 3-5 scenes with fuller narrative arc",
}

WORD_TARGETS = {30: "70-80", 60: "140-160", 90: "210-240"}
SCENE_TARGETS = {30: "2-3", 60: "3-5", 90: "5-7"}

VERTICAL_SUFFIX = ", vertical portrait orientation, 9:16 aspect ratio, portrait framing"


ANALYSIS_SYSTEM_PROMPT = """You are a creative story analyst for short-form video content.

Analyze story topics and develop narrative concepts for 30-90 second vertical videos.
Focus on visual storytelling that works with still images and narration, and keep
the narrative simple enough for the duration. Consider the target language and
its cultural context.

Respond with a JSON object:
{
  "concept": "2-3 sentence narrative arc with beginning, middle and end",
  "themes": ["1 to 5 core themes"],
  "characters": ["0 to 5 characters or key elements"],
  "mood": "single word or short phrase"
}"""


SCRIPT_SYSTEM_PROMPT = """You are an expert script writer for short-form video voice-over.

Write narration in the TARGET LANGUAGE, in present tense, with short sentences that
are easy to voice. Visual descriptions are always in English.

Timing rules:
- The first scene starts at 0
- Each scene starts exactly where the previous one ends (no gaps, no overlaps)
- The last scene ends at the target duration
- Word count follows ~150 words per minute

Respond with a JSON object:
{
  "text": "complete narration",
  "word_count": 150,
  "estimated_duration": 60,
  "scenes": [
    {
      "order": 1,
      "narration": "text spoken during this scene",
      "start_time": 0,
      "end_time": 12,
      "visual_description": "what the viewer sees"
    }
  ]
}"""


STORYBOARD_SYSTEM_PROMPT = """You are a storyboard artist for vertical (1080x1920) short-form video.

Create one storyboard scene per script scene, with the same order numbers.
Image prompts must be specific and production-ready (200-300 characters): subject,
action, setting, mood, lighting and art style. Keep one consistent visual style,
color palette and character design across scenes.

Vertical composition is required: frame subjects from top to bottom, never use
wide, panoramic, landscape or horizontal framing, and avoid text in images.
Keep content family-friendly: no violence, weapons, injuries, adult content,
hateful symbols or real public figures. Use symbolic imagery for sensitive topics.

Respond with a JSON object:
{
  "title": "storyboard title",
  "description": "overall description",
  "visual_style": "e.g. digital illustration",
  "color_palette": ["#hex or color names"],
  "scenes": [
    {
      "order": 1,
      "description": "what happens visually",
      "image_prompt": "image generation prompt",
      "camera_angle": "close-up",
      "composition": "rule of thirds",
      "lighting": "golden hour",
      "transition": "fade",
      "duration": 12
    }
  ]
}"""


def _feedback(revision_notes: str | None) -> str:
    if not revision_notes:
        return ""
    return f"User feedback (refine based on this): {revision_notes.strip()}\n\n"


class LLMStoryAnalyzer(StoryAnalyzer):
    """Turns a topic into a story concept with an LLM."""

    def __init__(self, llm: LLMProvider):
        self.llm = llm

    async def analyze(
        self,
        topic: str,
        language: Language,
        revision_notes: str | None = None,
    ) -> StoryAnalysis:
        language_name = LANGUAGE_NAMES[language]
        prompt = (
            f"Analyze this story topic for a short vertical video in {language_name}:\n\n"
            f'Topic: "{topic}"\n\n'
            f"{_feedback(revision_notes)}"
            "Provide a story concept with:\n"
            "1. A clear narrative arc suitable for 30-90 seconds\n"
            f"2. Themes that resonate in {language_name} culture\n"
            "3. Visual storytelling focus (works well with images and narration)\n"
        )
        print(f"[Analyzer] Analyzing topic ({language})")
        data = await self.llm.generate_json(prompt, ANALYSIS_SYSTEM_PROMPT)
        return StoryAnalysis.model_validate(data)


class LLMScriptWriter(ScriptWriter):
    """Writes the timed narration script with an LLM."""

    def __init__(self, llm: LLMProvider):
        self.llm = llm

    async def write_script(
        self,
        analysis: StoryAnalysis,
        language: Language,
        duration: int,
        revision_notes: str | None = None,
    ) -> Script:
        language_name = LANGUAGE_NAMES[language]
        lines = [
            f"Write a {duration}-second video script in {language_name}.",
            "",
            f"STORY CONCEPT:\n{analysis.concept}",
            "",
            f"THEMES: {', '.join(analysis.themes)}",
        ]
        if analysis.characters:
            lines.append(f"CHARACTERS: {', '.join(analysis.characters)}")
        lines += [
            f"MOOD: {analysis.mood}",
            f"STORY SHAPE: {DURATION_GUIDANCE.get(duration, DURATION_GUIDANCE[60])}",
            "",
            f"TARGET WORD COUNT: {WORD_TARGETS.get(duration, '150')} words",
            f"TARGET SCENES: {SCENE_TARGETS.get(duration, '3-5')} scenes",
            f"Scenes must cover exactly 0 to {duration} seconds without gaps.",
            "",
        ]
        prompt = "\n".join(lines) + "\n" + _feedback(revision_notes)

        print(f"[Writer] Writing {duration}s script in {language}")
        data = await self.llm.generate_json(prompt, SCRIPT_SYSTEM_PROMPT)
        text = data.get("text") or " ".join(
            str(scene.get("narration", "")) for scene in data.get("scenes", [])
        )
        data["text"] = text
        data.setdefault("word_count", len(text.split()))
        data.setdefault("estimated_duration", float(duration))
        return Script.model_validate(data)


class LLMScenePlanner(ScenePlanner):
    """Plans the vertical storyboard with an LLM."""

    def __init__(self, llm: LLMProvider):
        self.llm = llm

    async def plan_scenes(
        self,
        script: Script,
        analysis: StoryAnalysis,
        revision_notes: str | None = None,
    ) -> Storyboard:
        scene_lines = [
            f"{s.order}. [{s.start_time:g}s-{s.end_time:g}s] {s.visual_description or s.narration}"
            for s in script.scenes
        ]
        prompt = (
            f"Create a storyboard for this {analysis.mood} story: {analysis.concept}\n\n"
            "SCRIPT SCENES:\n" + "\n".join(scene_lines) + "\n\n"
            f"Produce exactly {len(script.scenes)} scenes with orders "
            f"1 to {len(script.scenes)}.\n\n"
            f"{_feedback(revision_notes)}"
        )

        print(f"[Planner] Planning {len(script.scenes)} scenes")
        data = await self.llm.generate_json(prompt, STORYBOARD_SYSTEM_PROMPT)
        return Storyboard.model_validate(self._normalize(data, script))

    @staticmethod
    def _normalize(data: dict[str, Any], script: Script) -> dict[str, Any]:
        """Fill durations from the script and force vertical image prompts."""
        palette = data.get("color_palette")
        if isinstance(palette, str):
            data["color_palette"] = [c.strip() for c in palette.split(",") if c.strip()]

        durations = {s.order: s.duration for s in script.scenes}
        for scene in data.get("scenes", []):
            if not scene.get("duration") and scene.get("order") in durations:
                scene["duration"] = durations[scene["order"]]
            prompt = scene.get("image_prompt")
            if prompt and "9:16" not in prompt:
                scene["image_prompt"] = prompt.rstrip(" .,") + VERTICAL_SUFFIX
        return data
