"""
App Constants - Central location for fixed pipeline values
Tunables that operators change live in settings.py; these do not change per deploy.
"""

# Output Format
OUTPUT_WIDTH = 1080
OUTPUT_HEIGHT = 1920
OUTPUT_FPS = 30

# Encoder Parameters
VIDEO_CODEC = "libx264"
RENDER_PRESET = "medium"
STORY_PRESET = "fast"
VIDEO_CRF = "22"
AUDIO_CODEC = "aac"
AUDIO_BITRATE = "192k"

# Audio extraction (16kHz mono, what whisper expects)
TRANSCRIBE_SAMPLE_RATE = 16000
TRANSCRIBE_CHANNELS = 1

# Silence Detection
SILENCE_NOISE_THRESHOLD_DB = -30
SILENCE_MIN_DURATION_SEC = 0.5
MIN_GAP_TO_REMOVE_SEC = 0.8

# Highlight Selection
MIN_VIRAL_SCORE = 1
MAX_VIRAL_SCORE = 10
DEFAULT_TEMPLATE_ID = "sandpaper"
DEFAULT_EMOTIONAL_ARC = "surprise"
EMOTIONAL_ARCS = ("triumph", "surprise", "heartbreak", "humor", "tension")

# Story Composition
ACT1_TARGET_SEC = 4.0
ACT2_TARGET_SEC = 4.0
ACT2_MAX_SEC = 8.0
ACT_MARGIN_SEC = 0.5
NARRATION_HOOK_RATIO = 0.4
NARRATION_SEPARATOR = ". ... "
NARRATION_SAMPLE_RATE = 44100
STORY_TITLE_FONT = "Pretendard-Bold.otf"
STORY_TEXT_FONT = "NotoSansKR-Bold.ttf"
ACT1_BACKGROUND = "0x0a0e1a"
ACT2_BACKGROUND = "0x0f1525"
BGM_VOLUME = 0.08
CONTEXT_PREVIEW_CHARS = 60

# Emotional arc -> accent color (must cover every arc)
ARC_COLORS = {
    "triumph": "0xfbbf24",     # amber
    "surprise": "0x8b5cf6",    # purple
    "heartbreak": "0xef4444",  # red
    "humor": "0x22d3ee",       # cyan
    "tension": "0xf97316",     # orange
}
DEFAULT_ARC_COLOR = "0x8b5cf6"

# Hook prepend
HOOK_FREEZE_FPS = 25

# Process output
STDERR_TAIL_CHARS = 500

# Download
SUPPORTED_VIDEO_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "youtu.be"}
DOWNLOAD_FORMAT = "bestvideo[height<=1080][ext=mp4]+bestaudio[ext=m4a]/best[height<=1080][ext=mp4]/best"
DOWNLOAD_SOCKET_TIMEOUT_SEC = 30
DOWNLOAD_RETRIES = 3
DOWNLOAD_FRAGMENT_RETRIES = 5
METADATA_DESCRIPTION_CHARS = 500

# YouTube upload
YOUTUBE_DEFAULT_CATEGORY = "22"  # People & Blogs
YOUTUBE_DEFAULT_PRIVACY = "private"
YOUTUBE_UPLOAD_CHUNK_SIZE = 8 * 1024 * 1024

# HTTP Response Constants
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_CONFLICT = 409
HTTP_STATUS_INTERNAL_ERROR = 500
HTTP_STATUS_BAD_GATEWAY = 502
HTTP_STATUS_GATEWAY_TIMEOUT = 504
