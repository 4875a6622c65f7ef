"""
Battle verdicts.

Two strategies are tried in order: the language model judge and the
rating fallback. ``decide_battle`` always returns a winner and a
narrative; the judge only ever reports itself unavailable.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from arena_backend.config import ArenaConfig
from arena_backend.llm_client import call_llm

from .models import Character

logger = logging.getLogger(__name__)

REASON_JUDGE = "judge"
REASON_FALLBACK = "fallback"

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

JUDGE_SYSTEM_PROMPT = (
    "You are a commentator narrating imaginary fights between two characters. "
    "You answer with a single JSON object and nothing else."
)

JUDGE_PROMPT_TEMPLATE = """\
Two characters are about to fight. Their names and backgrounds:
- "{name_a}": "{desc_a}"
- "{name_b}": "{desc_b}"

Rules:
1) Narrate an exciting fight between them in about 100 characters.
2) Choose the winner: exactly "{name_a}" or "{name_b}".
3) Judge on creativity, how each can counter the other, and internal consistency of the backgrounds.
4) No harmful, illegal, hateful or sexual content.
5) Reply only with JSON in this shape, no extra text:
{{
  "winner": "{name_a}" | "{name_b}",
  "log": "narration"
}}"""


@dataclass(frozen=True, slots=True)
class Verdict:
    winner: Character
    loser: Character
    log: str
    reason: str


@dataclass(frozen=True, slots=True)
class JudgeOutcome:
    """Tagged result of one strategy: a verdict, or why there is none."""

    verdict: Optional[Verdict] = None
    unavailable_reason: str = ""

    @property
    def available(self) -> bool:
        return self.verdict is not None


def build_prompt(a: Character, b: Character) -> str:
    return JUDGE_PROMPT_TEMPLATE.format(
        name_a=a.name,
        desc_a=a.description,
        name_b=b.name,
        desc_b=b.description,
    )


def _first_json_object(text: str) -> Optional[Dict[str, Any]]:
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            candidate, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict):
            return candidate
        start = text.find("{", start + 1)
    return None


def extract_json_object(text: Any) -> Optional[Dict[str, Any]]:
    """Recover a JSON object from free-form model output.

    Tries, in order: the raw text, the text without code fences, and the
    first brace-delimited object that decodes. Returns None when all fail.
    """

    if not isinstance(text, str) or not text.strip():
        return None

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    return _first_json_object(cleaned)


def _validate_payload(payload: Dict[str, Any]) -> Optional[tuple[str, str]]:
    winner = payload.get("winner")
    log = payload.get("log")
    if not isinstance(winner, str) or not winner:
        return None
    if not isinstance(log, str) or not log.strip():
        return None
    return winner, log.strip()


class LanguageModelJudge:
    """Asks the configured chat-completions model to pick the winner."""

    name = REASON_JUDGE

    def __init__(self, config: ArenaConfig):
        self.config = config

    def _unavailable(self, reason: str, detail: Any = "") -> JudgeOutcome:
        logger.warning("Judge unavailable [%s] %s", reason, detail)
        return JudgeOutcome(unavailable_reason=reason)

    def judge(self, a: Character, b: Character) -> JudgeOutcome:
        if not self.config.judge_enabled:
            return self._unavailable("missing_credential")

        llm_response = call_llm(
            [
                {"role": "system", "content": JUDGE_SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(a, b)},
            ],
            config=self.config,
            response_format={"type": "json_object"},
            temperature=self.config.judge_temperature,
            max_tokens=self.config.judge_max_tokens,
        )
        if not llm_response.get("success"):
            return self._unavailable("request_failed", llm_response.get("error", ""))

        content = llm_response.get("content", "")
        if self.config.debug_logging:
            logger.debug("Judge raw output for %s vs %s: %.300s", a.name, b.name, content)

        payload = extract_json_object(content)
        if payload is None:
            return self._unavailable("unparseable", content[:300])

        fields = _validate_payload(payload)
        if fields is None:
            return self._unavailable("schema_mismatch", payload)

        winner_name, log = fields
        if winner_name == a.name:
            winner, loser = a, b
        elif winner_name == b.name:
            winner, loser = b, a
        else:
            return self._unavailable(
                "invalid_winner", f"{winner_name!r} not in ({a.name!r}, {b.name!r})"
            )

        return JudgeOutcome(verdict=Verdict(winner=winner, loser=loser, log=log, reason=self.name))


class RatingFallback:
    """Higher rating wins; equal ratings go to the smaller id."""

    name = REASON_FALLBACK

    def judge(self, a: Character, b: Character) -> JudgeOutcome:
        if a.elo != b.elo:
            winner, loser = (a, b) if a.elo > b.elo else (b, a)
        else:
            winner, loser = (a, b) if a.id < b.id else (b, a)
        log = (
            f"{a.name} and {b.name} clashed with no commentator in the booth. "
            f"{winner.name} ({winner.elo}) outlasted {loser.name} ({loser.elo}) on rating."
        )
        return JudgeOutcome(verdict=Verdict(winner=winner, loser=loser, log=log, reason=self.name))


def decide_battle(a: Character, b: Character, config: Optional[ArenaConfig] = None) -> Verdict:
    """Ask the judge first and fall back to ratings when it gives no verdict."""

    config = config or ArenaConfig.from_settings()
    outcome = LanguageModelJudge(config).judge(a, b)
    if outcome.available:
        return outcome.verdict

    logger.info(
        "Judge gave no verdict for %s vs %s (%s); using rating fallback",
        a.name,
        b.name,
        outcome.unavailable_reason,
    )
    return RatingFallback().judge(a, b).verdict
