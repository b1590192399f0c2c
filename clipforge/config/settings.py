import os
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # API Configuration
    API_TITLE: str = "ClipForge API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Long-form video to vertical short clips"

    # Server Configuration
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")  # comma separated

    # Workspace
    WORKSPACE_DIR: str = os.getenv("WORKSPACE_DIR", "./workspace")
    FONTS_DIR: str = os.getenv("FONTS_DIR", "./fonts")
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")

    # FFmpeg Configuration
    FFMPEG_PATH: Optional[str] = os.getenv("FFMPEG_PATH")
    FFPROBE_PATH: Optional[str] = os.getenv("FFPROBE_PATH")
    FFMPEG_TIMEOUT_SEC: int = int(os.getenv("FFMPEG_TIMEOUT_SEC", "3600"))
    DOWNLOAD_TIMEOUT_SEC: int = int(os.getenv("DOWNLOAD_TIMEOUT_SEC", "3600"))

    # Transcription Configuration
    WHISPER_BACKEND: str = os.getenv("WHISPER_BACKEND", "auto")  # auto, whisper-cpp, openai-whisper, assemblyai
    WHISPER_CPP_BINARY: str = os.getenv("WHISPER_CPP_BINARY", "whisper-cli")
    WHISPER_CPP_MODEL_DIR: str = os.getenv("WHISPER_CPP_MODEL_DIR", "")
    WHISPER_MODEL: str = os.getenv("WHISPER_MODEL", "base")
    WHISPER_LANGUAGE: str = os.getenv("WHISPER_LANGUAGE", "auto")
    TRANSCRIBE_TIMEOUT_SEC: int = int(os.getenv("TRANSCRIBE_TIMEOUT_SEC", "1800"))  # 30 minutes
    ASSEMBLYAI_API_KEY: str = os.getenv("ASSEMBLYAI_API_KEY", "")

    # Highlight AI (any OpenAI-compatible chat completion endpoint)
    LLM_API_KEY: str = os.getenv("LLM_API_KEY", os.getenv("FIREWORKS_API_KEY", ""))
    LLM_BASE_URL: str = os.getenv("LLM_BASE_URL", "https://api.fireworks.ai/inference/v1")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "accounts/fireworks/models/deepseek-v3p1")
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.3"))
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "4096"))
    LLM_TIMEOUT_SEC: float = float(os.getenv("LLM_TIMEOUT_SEC", "120"))

    # Speech synthesis
    TTS_PROVIDER: str = os.getenv("TTS_PROVIDER", "http")  # http, elevenlabs
    TTS_URL: str = os.getenv("TTS_URL", "http://localhost:8000/tts")
    TTS_LANGUAGE: str = os.getenv("TTS_LANGUAGE", "Korean")
    TTS_TIMEOUT_SEC: int = int(os.getenv("TTS_TIMEOUT_SEC", "120"))
    ELEVENLABS_API_KEY: str = os.getenv("ELEVENLABS_API_KEY", "")
    ELEVENLABS_VOICE_ID: str = os.getenv("ELEVENLABS_VOICE_ID", "JBFqnCBsd6RMkjVDRZzb")
    ELEVENLABS_MODEL_ID: str = os.getenv("ELEVENLABS_MODEL_ID", "eleven_multilingual_v2")

    # Story composition
    STORY_ACT3_SOURCE: str = os.getenv("STORY_ACT3_SOURCE", "rendered")  # rendered, source

    # YouTube upload
    YOUTUBE_CLIENT_SECRET_PATH: str = os.getenv("YOUTUBE_CLIENT_SECRET_PATH", "client_secret.json")
    YOUTUBE_TOKEN_PATH: str = os.getenv("YOUTUBE_TOKEN_PATH", "youtube_token.json")

    model_config = {"env_file": ".env", "case_sensitive": True, "extra": "ignore"}

# Global settings instance
settings = Settings()
