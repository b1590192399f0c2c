import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import OpenAI

from clipforge.config.constants import DEFAULT_TEMPLATE_ID, MAX_VIRAL_SCORE, MIN_VIRAL_SCORE
from clipforge.config.settings import settings
from clipforge.models.project import Clip, StoryMeta, Transcription, TranscriptSegment
from clipforge.utils.exceptions import ConfigError, ParseError, UpstreamError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)

HIGHLIGHT_SYSTEM_PROMPT = """You are a viral content analyst AND storytelling architect. Analyze the transcript and identify 3-8 compelling short-form clips (30-90 seconds each).

For each clip, evaluate:
- Hook potential: Does it start with something attention-grabbing?
- Emotional arc: Is there tension, surprise, humor, or insight?
- Standalone value: Can it be understood without full context?
- Shareability: Would someone share this?

Rate each clip 1-10 for viral potential.

STORYTELLING DNA - For EACH clip, also generate story_meta:
- hook: One punchy sentence that makes someone STOP scrolling. It is read aloud as narration over a title card. Write in the video's language.
- context: 2-3 sentences of background/buildup narration. Why does this moment matter? Write in the video's language.
- payoff_frame: One sentence describing the climax moment. Write in the video's language.
- emotional_arc: One of "triumph", "surprise", "heartbreak", "humor", "tension"
- share_hook: A short punchy line someone would say when sharing this clip. Write in the video's language.

CRITICAL RULES:
- Timestamps are in SECONDS (42.0 means 42 seconds, NOT 0 minutes 42 seconds)
- start_sec and end_sec must be plain numbers of seconds (42.0, 125.5, ...)
- Each clip should be 30-90 seconds long (min 20s, max 120s)
- Avoid overlapping segments
- Prefer segments with clear beginning and end points
- hook and context are read aloud, keep them CONCISE (hook ~3s, context ~6s)

Respond ONLY with valid JSON:
{
  "clips": [
    {
      "title": "short catchy title",
      "description": "1-sentence description of what happens",
      "start_sec": 42.0,
      "end_sec": 102.5,
      "viral_score": 8,
      "reason": "why this segment is compelling",
      "tags": ["tag1", "tag2"],
      "story_meta": {
        "hook": "one-sentence hook",
        "context": "2-3 sentences of background",
        "payoff_frame": "the climax in one sentence",
        "emotional_arc": "triumph",
        "share_hook": "what you'd say when sharing"
      }
    }
  ]
}"""


def build_transcript_digest(segments: Sequence[TranscriptSegment]) -> str:
    """One line per segment with decimal-second bounds, e.g. `[12.0s-15.5s] text`"""
    return "\n".join(f"[{s.start:.1f}s-{s.end:.1f}s] {s.text}" for s in segments)


def strip_code_fences(content: str) -> str:
    return _FENCE_RE.sub("", content or "").replace("```", "").strip()


def clamp_score(value: Any) -> int:
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise ParseError(f"viral_score is not a number: {value!r}")
    if math.isnan(score):
        raise ParseError(f"viral_score is not a number: {value!r}")
    # clamp before rounding: round() overflows on inf
    return round(max(MIN_VIRAL_SCORE, min(MAX_VIRAL_SCORE, score)))


def _as_float(item: Dict[str, Any], key: str, index: int) -> float:
    try:
        value = float(item[key])
    except KeyError:
        raise ParseError(f"Clip {index + 1} is missing {key}")
    except (TypeError, ValueError):
        raise ParseError(f"Clip {index + 1} has a non-numeric {key}: {item[key]!r}")
    if not math.isfinite(value):
        raise ParseError(f"Clip {index + 1} has a non-finite {key}: {item[key]!r}")
    return value


def parse_highlight_response(content: str, project_id: str, video_duration: float) -> List[Clip]:
    """Turn the model's JSON into Clip records.

    Scores are clamped into [1, 10]. Clips with start >= end, a negative start, or an
    end past the video (when its duration is known) are rejected. Overlaps and
    duplicates are passed through as-is.
    """
    try:
        result = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as e:
        raise ParseError(f"AI response is not valid JSON: {e}")

    raw_clips = result.get("clips") if isinstance(result, dict) else None
    if not isinstance(raw_clips, list):
        raise ParseError("AI response has no clips list")

    clips: List[Clip] = []
    for i, item in enumerate(raw_clips):
        if not isinstance(item, dict):
            raise ParseError(f"Clip {i + 1} is not an object")

        start = _as_float(item, "start_sec", i)
        end = _as_float(item, "end_sec", i)
        if start < 0 or start >= end:
            raise ParseError(f"Clip {i + 1} has an invalid range {start}s-{end}s")
        if video_duration > 0 and end > video_duration:
            raise ParseError(f"Clip {i + 1} ends at {end}s, past the video end ({video_duration}s)")

        story_meta = None
        raw_meta = item.get("story_meta")
        if isinstance(raw_meta, dict) and (raw_meta.get("hook") or raw_meta.get("context")):
            story_meta = StoryMeta(
                hook=str(raw_meta.get("hook") or ""),
                context=str(raw_meta.get("context") or ""),
                payoff_frame=str(raw_meta.get("payoff_frame") or ""),
                emotional_arc=raw_meta.get("emotional_arc"),
                share_hook=str(raw_meta.get("share_hook") or ""),
            )

        tags = item.get("tags") or []
        clips.append(Clip(
            id=f"{project_id}-clip-{i + 1}",
            project_id=project_id,
            title=str(item.get("title") or f"Clip {i + 1}"),
            description=str(item.get("description") or ""),
            start_sec=start,
            end_sec=end,
            viral_score=clamp_score(item.get("viral_score", MIN_VIRAL_SCORE)),
            reason=str(item.get("reason") or ""),
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            template_id=DEFAULT_TEMPLATE_ID,
            story_meta=story_meta,
            status="pending",
        ))
    return clips


class HighlightService:
    """Highlight picker backed by any OpenAI-compatible chat completion endpoint"""

    def __init__(self, client: Optional[OpenAI] = None):
        self._client = client

    def _get_client(self) -> OpenAI:
        if not self._client:
            if not settings.LLM_API_KEY:
                raise ConfigError("LLM_API_KEY not set")
            self._client = OpenAI(
                api_key=settings.LLM_API_KEY,
                base_url=settings.LLM_BASE_URL or None,
                timeout=settings.LLM_TIMEOUT_SEC,
                max_retries=0,
            )
        return self._client

    def complete(self, system_prompt: str, user_prompt: str,
                 temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=settings.LLM_MODEL,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=settings.LLM_TEMPERATURE if temperature is None else temperature,
                max_tokens=max_tokens or settings.LLM_MAX_TOKENS,
            )
        except openai.APIStatusError as e:
            raise UpstreamError(f"AI API error: {e.status_code} {e.message}", status_code=e.status_code)
        except openai.APIError as e:
            raise UpstreamError(f"AI API request failed: {e}")

        if not response.choices:
            raise UpstreamError("AI API returned no choices")
        return response.choices[0].message.content or ""

    def select_highlights(
        self,
        transcription: Transcription,
        video_title: str,
        video_duration: float,
        project_id: str,
    ) -> List[Clip]:
        user_prompt = (
            f'Video: "{video_title}" ({video_duration:g} seconds total)\n\n'
            f"Transcript:\n{build_transcript_digest(transcription.segments)}"
        )
        logger.info(f"🤖 Selecting highlights for {project_id} ({len(transcription.segments)} segments)")
        content = self.complete(HIGHLIGHT_SYSTEM_PROMPT, user_prompt)
        clips = parse_highlight_response(content, project_id, video_duration)
        logger.info(f"✅ AI picked {len(clips)} clips for {project_id}")
        return clips
