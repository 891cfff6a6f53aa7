"""Configuration loader that reads from config files."""

import base64
import binascii
import logging
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomllib

from .exceptions import SigningError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "endpoint": {
        "address": "api.tinkoff.ai:443",
        "method": "/tinkoff.cloud.stt.v1.SpeechToText/StreamingRecognize",
    },
    "token": {
        "issuer": "recog",
        "subject": "akmitrich",
        "audience": "tinkoff.cloud.stt",
        "ttl_seconds": 60,
    },
    "session": {
        "encoding": "LINEAR16",
        "sample_rate_hz": 16000,
        "language_code": "ru-RU",
        "max_alternatives": 1,
        "automatic_punctuation": True,
        "profanity_filter": False,
        "model": "",
        "num_channels": 1,
        "denormalization": False,
        "sentiment_analysis": False,
        "gender_identification": False,
        "single_utterance": False,
        "interim_results": {"enabled": True, "interval_seconds": 0.5},
        "vad": {
            "min_speech_duration": 0.0,
            "max_speech_duration": 0.0,
            "silence_duration_threshold": 0.6,
            "silence_prob_threshold": 0.2,
            "aggressiveness": 0.0,
            "silence_max": 0.0,
            "silence_min": 0.0,
        },
    },
    "pacing": {
        "chunk_size": 4096,
        "chunk_interval": 0.1,
        "warmup_chunks": 0,
        "warmup_interval": 0.1,
        "warmup_chunk_size": 3200,
        "keep_alive": False,
        "keep_alive_interval": 0.01,
        "keep_alive_chunk_size": 320,
        "queue_size": 8,
    },
    "no_input": {"threshold_seconds": 3.0, "first_result_only": True},
    "tools": {
        "audio": {
            "linux": "arecord -q -f S16_LE -c {channels} -r {sample_rate} -t raw",
            "darwin": "ffmpeg -loglevel quiet -f avfoundation -i :0 -ac {channels} -ar {sample_rate} -f s16le -",
            "windows": "ffmpeg -loglevel quiet -f dshow -i audio=default -ac {channels} -ar {sample_rate} -f s16le -",
        }
    },
}


@dataclass(frozen=True)
class Credentials:
    """API key pair used to sign session tokens.

    Built once at startup and handed to the token issuer explicitly.
    """

    api_key_id: str
    secret_key: bytes

    def __repr__(self) -> str:
        return f"Credentials(api_key_id={self.api_key_id!r}, secret_key=<{len(self.secret_key)} bytes>)"

    @classmethod
    def from_base64(cls, api_key_id: str, secret_b64: str) -> "Credentials":
        """Decode a base64 secret as handed out by the service console."""
        try:
            secret_key = base64.b64decode(secret_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise SigningError(f"Secret key is not valid base64: {e}") from e
        return cls(api_key_id=api_key_id, secret_key=secret_key)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Credentials":
        """Load credentials from TCS_APIKEY and TCS_SECRET."""
        env = os.environ if environ is None else environ
        api_key_id = env.get("TCS_APIKEY", "")
        secret_b64 = env.get("TCS_SECRET", "")
        if not api_key_id or not secret_b64:
            raise SigningError("TCS_APIKEY and TCS_SECRET must both be set")
        return cls.from_base64(api_key_id, secret_b64)


class ConfigLoader:
    """Load configuration from config files."""

    def __init__(self, config_path: str | Path | None = None) -> None:
        if config_path is None:
            config_path = self._default_config_path()

        self.config_file = str(config_path)
        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path, "rb") as f:
                full_config = tomllib.load(f)
            recog_config = full_config.get("recog", {})
        else:
            recog_config = {}

        self._config = self._merge_dicts(DEFAULT_CONFIG, recog_config)

        env_endpoint = os.environ.get("RECOG_ENDPOINT")
        if env_endpoint:
            self._config["endpoint"] = {**self._config["endpoint"], "address": env_endpoint}

        self._platform = platform.system().lower()

    def _default_config_path(self) -> Path:
        env_path = os.environ.get("RECOG_CONFIG")
        if env_path:
            return Path(env_path)
        return Path.home() / ".recog" / "config.toml"

    def _merge_dicts(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        merged = base.copy()
        for key, value in override.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_dicts(merged[key], value)
            else:
                merged[key] = value
        return merged

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a value using dot notation (e.g., 'endpoint.address')"""
        keys = key_path.split(".")
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    @property
    def endpoint_address(self) -> str:
        return str(self.get("endpoint.address", "api.tinkoff.ai:443"))

    @property
    def endpoint_method(self) -> str:
        return str(self.get("endpoint.method"))

    @property
    def token_settings(self) -> dict[str, Any]:
        return dict(self.get("token", {}))

    @property
    def session_settings(self) -> dict[str, Any]:
        return dict(self.get("session", {}))

    @property
    def pacing_settings(self) -> dict[str, Any]:
        return dict(self.get("pacing", {}))

    @property
    def no_input_settings(self) -> dict[str, Any]:
        return dict(self.get("no_input", {}))

    def capture_command(self, sample_rate: int, channels: int) -> list[str]:
        """Recorder command line for live capture on this platform."""
        template = str(self.get(f"tools.audio.{self._platform}", self.get("tools.audio.linux")))
        return template.format(sample_rate=sample_rate, channels=channels).split()


_config: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = ConfigLoader()
        logger.debug(f"Configuration loaded from {_config.config_file}")
    return _config


__all__ = ["DEFAULT_CONFIG", "ConfigLoader", "Credentials", "get_config"]
