from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from tnb_core.errors import InvalidInput, ParseFailure
from tnb_core.evaluator import EvaluationResult, Mode, evaluate
from tnb_core.history import RANKED, HistoryEntry, HistoryLog, now_ms
from tnb_core.parsing import format_number, parse_query
from tnb_core.settings import BotSettings, SettingsStore
from tnb_core.verification_id import VerificationIdGenerator

logger = logging.getLogger(__name__)

BOT_NAME = "TinyNumberBot"
INITIAL_NOTE = "Send a number and I will find the closest reference."
CLEARED_NOTE = "Cleared. Try another number."
EXAMPLE_QUERIES: tuple[str, ...] = ("2", "-30")

REPLY_DELAY_BASE = 0.6
REPLY_DELAY_JITTER = 0.4


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    body: str
    title: Optional[str] = None
    tags: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {"role": self.role.value, "title": self.title, "body": self.body, "tags": list(self.tags)}

    def as_text(self) -> str:
        who = "You" if self.role == Role.USER else (BOT_NAME if self.role == Role.ASSISTANT else "--")
        parts = [p for p in (self.title, self.body) if p]
        text = "\n".join(parts)
        if self.tags:
            text += "\n" + " | ".join(self.tags)
        return f"[{who}] {text}"


@dataclass
class Transcript:
    messages: List[ChatMessage] = field(default_factory=lambda: [ChatMessage(Role.SYSTEM, INITIAL_NOTE)])

    def append(self, msg: ChatMessage) -> None:
        self.messages.append(msg)

    def clear(self) -> None:
        self.messages = [ChatMessage(Role.SYSTEM, CLEARED_NOTE)]

    def render_text(self) -> str:
        return "\n\n".join(m.as_text() for m in self.messages)


@dataclass(frozen=True)
class ChatTurn:
    """Assistant side of one exchange. `entry` is None when the query was rejected."""
    reply: ChatMessage
    result: Optional[EvaluationResult] = None
    entry: Optional[HistoryEntry] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


def reply_delay(
    rng: Optional[random.Random] = None,
    *,
    base: float = REPLY_DELAY_BASE,
    jitter: float = REPLY_DELAY_JITTER,
) -> float:
    """Seconds of artificial "typing" before a reply is shown."""
    r = rng or random
    return max(0.0, base) + r.random() * max(0.0, jitter)


def error_message(text: str) -> ChatMessage:
    return ChatMessage(Role.ASSISTANT, text, title="Error")


def build_reply(result: EvaluationResult, dv: str) -> ChatMessage:
    q = format_number(result.query)
    conf_tag = f"Confidence: {result.confidence}%"
    dv_tag = f"Data Verified: {dv}"

    if result.mode == Mode.RANK:
        lines = [f"{format_number(r.reference)} (dist {format_number(r.distance)})" for r in result.ranking or ()]
        return ChatMessage(
            Role.ASSISTANT,
            "\n".join(lines),
            title=f"{q} — Ranked references",
            tags=(conf_tag, dv_tag),
        )

    if result.mode == Mode.RANGE:
        lo, hi = result.bounds or (result.best, result.best)
        return ChatMessage(
            Role.ASSISTANT,
            f"Closest distance: {format_number(result.distance)}",
            title=f"{q} is closest to {format_number(result.best)}",
            tags=(f"Region: {format_number(lo)} → {format_number(hi)}", conf_tag, dv_tag),
        )

    return ChatMessage(
        Role.ASSISTANT,
        "Have a nice day ☺️",
        title=f"{q} is closer to {format_number(result.best)}!",
        tags=(conf_tag, dv_tag),
    )


class NumberBot:
    """
    Send flow behind every front end: parse, evaluate, reply, record history.

    The id generator and clock are injected so tests can pin them; neither
    feeds into the evaluation itself.
    """

    def __init__(
        self,
        settings: SettingsStore,
        history: HistoryLog,
        *,
        id_gen: Optional[Callable[[], str]] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings
        self.history = history
        self.id_gen = id_gen or VerificationIdGenerator()
        self.clock = clock

    def respond(self, raw: str, settings: Optional[BotSettings] = None) -> ChatTurn:
        s = settings or self.settings.load()
        text = (raw or "").strip()
        try:
            value = parse_query(text)
            result = evaluate(query=value, refs=s.refs, mode=s.mode, formula=s.conf, scale=s.scale)
        except ParseFailure as e:
            return ChatTurn(reply=error_message(str(e)))
        except InvalidInput as e:
            logger.info("Rejected query %r: %s", text, e)
            return ChatTurn(reply=error_message(str(e)))

        dv = self.id_gen()
        entry = HistoryEntry(
            input=result.query,
            output=RANKED if result.mode == Mode.RANK else result.best,
            confidence=result.confidence,
            dv=dv,
            time=self.clock(),
        )
        self.history.append(entry)
        return ChatTurn(reply=build_reply(result, dv), result=result, entry=entry)

    def send(
        self,
        raw: str,
        transcript: Transcript,
        *,
        settings: Optional[BotSettings] = None,
        wait: Optional[Callable[[], None]] = None,
    ) -> Optional[ChatTurn]:
        """Blank input is ignored (returns None); otherwise both sides land in the transcript."""
        text = (raw or "").strip()
        if not text:
            return None
        transcript.append(ChatMessage(Role.USER, text))
        if wait is not None:
            wait()
        turn = self.respond(text, settings)
        transcript.append(turn.reply)
        return turn

    def run_examples(
        self,
        transcript: Transcript,
        *,
        settings: Optional[BotSettings] = None,
        wait: Optional[Callable[[], None]] = None,
    ) -> list[ChatTurn]:
        turns = []
        for q in EXAMPLE_QUERIES:
            turn = self.send(q, transcript, settings=settings, wait=wait)
            if turn is not None:
                turns.append(turn)
        return turns
