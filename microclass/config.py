from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Groq (lecture summaries)
    groq_api_key: str = "gsk_placeholder"
    default_model: str = "llama-3.3-70b-versatile"

    # Whisper
    whisper_model: str = "small"
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"

    # Capture
    sample_rate: int = 16000
    blocksize: int = 1024
    channels: int = 1

    # Live session heuristics
    speech_threshold: float = 0.1
    level_gain: float = 10.0
    hebrew_pause_seconds: float = 2.0
    paragraph_pause_seconds: float = 3.0
    default_language: str = "he-IL"

    # Recognition stream
    recognition_window_seconds: float = 55.0
    partial_interval_seconds: float = 2.0
    restart_delay_seconds: float = 0.5

    # Storage
    db_path: str = "microclass.db"
    audio_root: str = "lectures_audio"
    temp_root: str = "tmp_audio"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
