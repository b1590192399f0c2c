from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union
import unicodedata

from clipforge.models.project import CaptionEdit, TranscriptSegment, TranscriptWord
from clipforge.models.template import CaptionStyle

_ALIGNMENT = {"top": 8, "center": 5, "bottom": 2}
_DEFAULT_BACK_COLOUR = "&H80000000"
_BREAK_SEPARATORS = (". ", "! ", "? ", ", ", " ")
_MIN_BREAK_RATIO = 0.3

_EVENTS_FORMAT = "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"


@dataclass
class SubtitleLine:
    start: float
    end: float
    text: str


def hex_to_ass(hex_color: str) -> str:
    """#RRGGBB or #RRGGBBAA -> &HAABBGGRR"""
    clean = hex_color.strip().lstrip("#")
    if clean.lower().startswith("0x"):
        clean = clean[2:]
    r, g, b = clean[0:2], clean[2:4], clean[4:6]
    a = clean[6:8] if len(clean) == 8 else "00"
    return f"&H{a}{b}{g}{r}".upper()


def format_ass_time(seconds: float) -> str:
    total_cs = int(round(max(0.0, seconds) * 100))
    cs = total_cs % 100
    total_s = total_cs // 100
    s = total_s % 60
    total_m = total_s // 60
    m = total_m % 60
    h = total_m // 60
    return f"{h}:{m:02d}:{s:02d}.{cs:02d}"


def _sanitize_text(text: str) -> str:
    if not text:
        return ""
    t = unicodedata.normalize("NFC", text)
    t = t.translate({
        0x200B: None,  # ZERO WIDTH SPACE
        0x200C: None,  # ZERO WIDTH NON-JOINER
        0x200D: None,  # ZERO WIDTH JOINER
        0x2060: None,  # WORD JOINER
        0xFEFF: None,  # ZERO WIDTH NO-BREAK SPACE
    })
    return t.replace("\r\n", " ").replace("\n", " ")


def escape_ass_text(text: str) -> str:
    t = _sanitize_text(text)
    return t.replace("\\", "\\\\").replace("{", "\\{").replace("}", "\\}")


def smart_split(text: str, max_chars: int) -> List[str]:
    """Split at the last sentence/comma/space break past 30% of the line width,
    falling back to a hard cut at max_chars."""
    text = text.strip()
    if not text:
        return []
    if len(text) <= max_chars:
        return [text]

    lines: List[str] = []
    remaining = text
    while len(remaining) > max_chars:
        break_idx = -1
        for sep in _BREAK_SEPARATORS:
            idx = remaining.rfind(sep, 0, max_chars + len(sep))
            if idx > max_chars * _MIN_BREAK_RATIO:
                break_idx = idx + (0 if sep == " " else len(sep) - 1)
                break
        if break_idx <= 0:
            break_idx = max_chars

        head = remaining[:break_idx].strip()
        if head:
            lines.append(head)
        remaining = remaining[break_idx:].strip()

    if remaining:
        lines.append(remaining)
    return lines


def distribute_words_to_lines(words: Sequence[TranscriptWord], max_chars: int) -> List[SubtitleLine]:
    """Greedy packing: flush the current line when the next word would overflow.
    Each line spans [first word start, last word end]."""
    lines: List[SubtitleLine] = []
    current: List[TranscriptWord] = []
    current_text = ""

    for word in words:
        token = word.word.strip()
        if not token:
            continue
        candidate = f"{current_text} {token}" if current_text else token
        if len(candidate) > max_chars and current:
            lines.append(SubtitleLine(current[0].start, current[-1].end, current_text))
            current = [word]
            current_text = token
        else:
            current.append(word)
            current_text = candidate

    if current:
        lines.append(SubtitleLine(current[0].start, current[-1].end, current_text))
    return lines


def _segment_lines(segment: TranscriptSegment, max_chars: int) -> List[SubtitleLine]:
    if segment.words:
        return distribute_words_to_lines(segment.words, max_chars)

    parts = smart_split(segment.text, max_chars)
    total_len = sum(len(p) for p in parts)
    if not parts or total_len == 0:
        return []

    lines = []
    cursor = segment.start
    span = max(0.0, segment.end - segment.start)
    for part in parts:
        duration = span * (len(part) / total_len)
        lines.append(SubtitleLine(cursor, cursor + duration, part))
        cursor += duration
    return lines


def build_subtitle_lines(segments: Sequence[TranscriptSegment], style: CaptionStyle) -> List[SubtitleLine]:
    lines: List[SubtitleLine] = []
    for segment in segments:
        lines.extend(_segment_lines(segment, style.max_chars_per_line))
    return lines


def apply_caption_edits(lines: List[SubtitleLine], edits: Sequence[CaptionEdit]) -> List[SubtitleLine]:
    """Replace generated lines by index; edits past the end are appended."""
    result = list(lines)
    for edit in sorted(edits, key=lambda e: e.index):
        replacement = SubtitleLine(edit.start_sec, edit.end_sec, edit.text)
        if edit.index < len(result):
            result[edit.index] = replacement
        else:
            result.append(replacement)
    return [line for line in result if line.text.strip() and line.end > line.start]


def _ass_header(width: int, height: int, style: CaptionStyle) -> str:
    primary = hex_to_ass(style.font_color)
    outline = hex_to_ass(style.outline_color)
    back = hex_to_ass(style.background_color) if style.background_color else _DEFAULT_BACK_COLOUR
    border_style = 3 if style.background_color else 1
    alignment = _ALIGNMENT.get(style.position, 2)

    return (
        "[Script Info]\n"
        "ScriptType: v4.00+\n"
        f"PlayResX: {width}\n"
        f"PlayResY: {height}\n"
        "WrapStyle: 0\n"
        "\n"
        "[V4+ Styles]\n"
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, "
        "Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, "
        "Alignment, MarginL, MarginR, MarginV, Encoding\n"
        f"Style: Default,{style.font_family},{style.font_size},{primary},&H000000FF,{outline},{back},"
        f"-1,0,0,0,100,100,0,0,{border_style},{style.outline_width:g},{style.shadow_offset or 0:g},"
        f"{alignment},40,40,{style.margin_bottom},1\n"
    )


def render_subtitle_track(
    segments: Sequence[TranscriptSegment],
    width: int,
    height: int,
    style: CaptionStyle,
    caption_edits: Optional[Sequence[CaptionEdit]] = None,
) -> str:
    lines = build_subtitle_lines(segments, style)
    if caption_edits:
        lines = apply_caption_edits(lines, caption_edits)

    dialogues = [
        f"Dialogue: 0,{format_ass_time(line.start)},{format_ass_time(line.end)},Default,,0,0,0,,{escape_ass_text(line.text)}"
        for line in lines
    ]
    return _ass_header(width, height, style) + "\n[Events]\n" + _EVENTS_FORMAT + "\n" + "".join(d + "\n" for d in dialogues)


def write_subtitle_track(
    path: Union[str, Path],
    segments: Sequence[TranscriptSegment],
    width: int,
    height: int,
    style: CaptionStyle,
    caption_edits: Optional[Sequence[CaptionEdit]] = None,
) -> Path:
    path = Path(path)
    path.write_text(render_subtitle_track(segments, width, height, style, caption_edits), encoding="utf-8")
    return path
