"""Narration timing: word-level transcript and scene-level subtitles.

Both come from the same single TTS call over the concatenated narration,
but they are independent. Subtitles use the scenes' own start/end times and
never look at the word timings.
"""

from typing import Optional, Sequence

from .generators.base import CharacterAlignment
from .models import Language, SceneScript, Transcript, WordTimestamp


def words_from_alignment(alignment: CharacterAlignment) -> list[WordTimestamp]:
    """Accumulate aligned characters into words at whitespace boundaries.

    A word starts at its first character's start time and ends at its last
    character's end time.
    """
    words: list[WordTimestamp] = []
    current = ""
    start = 0.0
    end = 0.0

    for char, char_start, char_end in zip(
        alignment.characters, alignment.start_times, alignment.end_times
    ):
        if char.isspace():
            if current:
                words.append(WordTimestamp(word=current, start=start, end=end))
                current = ""
            continue
        if not current:
            start = char_start
        current += char
        end = char_end

    if current:
        words.append(WordTimestamp(word=current, start=start, end=end))
    return words


def placeholder_words(text: str, duration: float) -> list[WordTimestamp]:
    """Uniform-duration words, one per whitespace-delimited token."""
    tokens = text.split()
    if not tokens:
        return []
    step = duration / len(tokens)
    return [
        WordTimestamp(word=token, start=round(i * step, 3), end=round((i + 1) * step, 3))
        for i, token in enumerate(tokens)
    ]


def build_transcript(
    text: str,
    language: Language,
    duration: float,
    alignment: Optional[CharacterAlignment] = None,
) -> Transcript:
    """Word-level transcript of the narration track."""
    if alignment is not None and alignment.characters:
        words = words_from_alignment(alignment)
    else:
        words = placeholder_words(text, duration)
    return Transcript(text=text, words=words, language=language, duration=duration)


def format_srt_time(seconds: float) -> str:
    """Format seconds as an SRT timestamp (HH:MM:SS,mmm)."""
    total_ms = int(round(seconds * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def build_subtitles(scenes: Sequence[SceneScript]) -> str:
    """One SRT cue per scene, timed by the scene itself."""
    cues = []
    for index, scene in enumerate(scenes, start=1):
        cues.append(
            f"{index}\n"
            f"{format_srt_time(scene.start_time)} --> {format_srt_time(scene.end_time)}\n"
            f"{scene.narration.strip()}"
        )
    return "\n\n".join(cues) + "\n"

