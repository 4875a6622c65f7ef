from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class ArenaConfig:
    """Runtime configuration handed to the judge, session and battle components.

    - judge_api_key: empty means the external judge is never called and
      every verdict comes from the rating fallback.
    - session_secret: empty means no session token can be issued or verified.
    - debug_logging: mirrors ARENA_DEBUG_LOG; the LOGGING dict already uses
      it, components may add extra detail when it is set.
    """

    judge_api_key: str = ""
    judge_base_url: str = "https://api.openai.com/v1"
    judge_model: str = "gpt-4o-mini"
    judge_timeout: float = 20.0
    judge_max_tokens: int = 300
    judge_temperature: float = 0.4
    session_secret: str = ""
    session_max_age: int = 7 * 24 * 60 * 60
    debug_logging: bool = False
    cooldown_seconds: int = 60
    k_factor: int = 32
    lock_timeout: int = 5
    self_registration: bool = False
    default_password: str = "Neuron"

    @property
    def judge_enabled(self) -> bool:
        return bool(self.judge_api_key)

    @classmethod
    def from_settings(cls) -> "ArenaConfig":
        return cls(
            judge_api_key=getattr(settings, "LLM_API_KEY", "") or "",
            judge_base_url=getattr(settings, "LLM_BASE_URL", cls.judge_base_url),
            judge_model=getattr(settings, "LLM_MODEL", cls.judge_model),
            judge_timeout=float(getattr(settings, "LLM_TIMEOUT", cls.judge_timeout)),
            judge_max_tokens=int(getattr(settings, "LLM_MAX_TOKENS", cls.judge_max_tokens)),
            judge_temperature=float(getattr(settings, "LLM_TEMPERATURE", cls.judge_temperature)),
            session_secret=getattr(settings, "ARENA_SESSION_SECRET", "") or "",
            session_max_age=int(getattr(settings, "ARENA_SESSION_MAX_AGE", cls.session_max_age)),
            debug_logging=bool(getattr(settings, "ARENA_DEBUG_LOG", False)),
            cooldown_seconds=int(getattr(settings, "ARENA_COOLDOWN_SECONDS", cls.cooldown_seconds)),
            k_factor=int(getattr(settings, "ARENA_K_FACTOR", cls.k_factor)),
            lock_timeout=int(getattr(settings, "ARENA_LOCK_TIMEOUT", cls.lock_timeout)),
            self_registration=bool(getattr(settings, "ARENA_SELF_REGISTRATION", False)),
            default_password=getattr(settings, "ARENA_DEFAULT_PASSWORD", cls.default_password),
        )
