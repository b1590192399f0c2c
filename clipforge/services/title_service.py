import json
import logging
from typing import List, Optional

from clipforge.services.highlight_service import HighlightService, strip_code_fences
from clipforge.utils.exceptions import ParseError

logger = logging.getLogger(__name__)

MAX_TITLE_CHARS = 60


def _system_prompt(count: int) -> str:
    return (
        f"Generate {count} catchy, hook-style titles for a YouTube Short clip. Titles should be:\n"
        f"- Under {MAX_TITLE_CHARS} characters\n"
        "- Attention-grabbing and curiosity-inducing\n"
        "- Suitable for YouTube Shorts\n\n"
        'Return ONLY a JSON array of strings. Example: ["Title 1", "Title 2"]'
    )


class TitleService:
    def __init__(self, llm: Optional[HighlightService] = None):
        self.llm = llm or HighlightService()

    def generate_titles(self, clip_description: str, original_title: str, count: int = 5) -> List[str]:
        user_prompt = f'Original video: "{original_title}"\nClip content: {clip_description}'
        content = self.llm.complete(_system_prompt(count), user_prompt, temperature=0.7, max_tokens=1024)

        try:
            titles = json.loads(strip_code_fences(content) or "[]")
        except json.JSONDecodeError as e:
            raise ParseError(f"AI titles are not valid JSON: {e}")
        if not isinstance(titles, list) or not all(isinstance(t, str) for t in titles):
            raise ParseError("AI titles must be a JSON array of strings")

        titles = [t.strip() for t in titles if t.strip()]
        logger.info(f"📝 Generated {len(titles)} titles for '{original_title}'")
        return titles[:count]
