from __future__ import annotations

import os
import random
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional

import streamlit as st
from dotenv import load_dotenv

from tnb_app.config import AppConfig, load_app_config
from tnb_core.chat import BOT_NAME, EXAMPLE_QUERIES, ChatMessage, NumberBot, Role, Transcript, reply_delay
from tnb_core.errors import InvalidInput
from tnb_core.evaluator import ConfidenceFormula, Mode
from tnb_core.history import EXPORT_FILENAME, HistoryLog, format_history_line
from tnb_core.parsing import format_refs, parse_refs
from tnb_core.run_artifacts import build_session_artifact, write_session_artifact
from tnb_core.settings import BotSettings, SettingsStore
from tnb_core.store import JsonFileStore

MODES = [m.value for m in Mode]
FORMULAS = [c.value for c in ConfidenceFormula]


@st.cache_resource
def _config() -> AppConfig:
    load_dotenv(dotenv_path=Path(__file__).with_name(".env"))
    return load_app_config(os.environ.get("TNB_CONFIG"))


def _services(cfg: AppConfig) -> tuple[SettingsStore, HistoryLog, NumberBot]:
    store = JsonFileStore(cfg.state_dir)
    settings = SettingsStore(store, default_refs=cfg.default_refs)
    history = HistoryLog(store, limit=cfg.history_limit)
    return settings, history, NumberBot(settings, history)


def _init_state(settings: SettingsStore) -> None:
    if "transcript" in st.session_state:
        return
    s = settings.load()
    st.session_state["transcript"] = Transcript()
    st.session_state["refs_text"] = format_refs(s.refs)
    st.session_state["mode"] = s.mode.value
    st.session_state["conf"] = s.conf.value
    st.session_state["scale"] = float(s.scale)
    st.session_state["pending"] = []


def _current_settings(settings: SettingsStore) -> BotSettings:
    # The refs box is used as typed, saved or not.
    return replace(
        settings.load(),
        refs=tuple(parse_refs(st.session_state["refs_text"])),
        mode=Mode(st.session_state["mode"]),
        conf=ConfidenceFormula(st.session_state["conf"]),
        scale=float(st.session_state["scale"]),
    )


def _render_message(msg: ChatMessage) -> None:
    if msg.role == Role.SYSTEM:
        st.caption(msg.body)
        return
    with st.chat_message(msg.role.value):
        if msg.title:
            st.markdown(f"### {msg.title}")
        if msg.body:
            st.text(msg.body)
        if msg.tags:
            st.caption("  ·  ".join(msg.tags))


def _reset_refs(settings: SettingsStore) -> None:
    # widget-backed key: only writable from a callback
    st.session_state["refs_text"] = format_refs(settings.reset_refs().refs)


def _sidebar(settings: SettingsStore, history: HistoryLog) -> None:
    with st.sidebar:
        st.header("References")
        st.text_input("Comma-separated", key="refs_text")
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Save refs", use_container_width=True):
                try:
                    settings.save_refs(parse_refs(st.session_state["refs_text"]))
                    st.toast("Saved refs")
                except InvalidInput as e:
                    st.warning(str(e))
        with c2:
            st.button("Reset", use_container_width=True, on_click=_reset_refs, args=(settings,))

        st.header("Options")
        st.selectbox(
            "Mode",
            MODES,
            key="mode",
            on_change=lambda: settings.update(mode=st.session_state["mode"]),
        )
        st.selectbox(
            "Confidence",
            FORMULAS,
            key="conf",
            on_change=lambda: settings.update(conf=st.session_state["conf"]),
        )
        st.number_input(
            "Scale (exp)",
            min_value=0.0,
            step=1.0,
            key="scale",
            help="Distance at which exp confidence drops to ~37%. 0 means the default (10).",
            on_change=lambda: settings.update(scale=st.session_state["scale"]),
        )

        st.header("History")
        entries = history.newest_first()
        if entries:
            st.download_button(
                "Export CSV",
                data=history.export_csv(),
                file_name=EXPORT_FILENAME,
                mime="text/csv",
                use_container_width=True,
            )
            st.dataframe(history.to_frame(), use_container_width=True, hide_index=True)
            for e in entries[:20]:
                st.write(format_history_line(e))
        else:
            st.caption("No history")


def main() -> None:
    st.set_page_config(page_title=BOT_NAME, layout="wide")
    cfg = _config()
    settings, history, bot = _services(cfg)
    _init_state(settings)

    transcript: Transcript = st.session_state["transcript"]

    st.title(BOT_NAME)
    c1, c2, c3, _ = st.columns([1, 1, 1.2, 4])
    with c1:
        if st.button("Examples", use_container_width=True):
            st.session_state["pending"] = list(EXAMPLE_QUERIES)
    with c2:
        if st.button("Clear", use_container_width=True):
            transcript.clear()
    with c3:
        if st.button("Save session", use_container_width=True):
            artifact = build_session_artifact(
                run_source="tnb_gui.py",
                settings=settings.load(),
                history=history.load(),
                transcript=transcript.messages,
            )
            st.toast(f"Wrote {write_session_artifact(artifact, runs_dir=cfg.runs_dir)}")

    _sidebar(settings, history)

    for msg in transcript.messages:
        _render_message(msg)

    typed: Optional[str] = st.chat_input("Type a number")
    queue = list(st.session_state["pending"]) + ([typed] if typed else [])
    st.session_state["pending"] = []
    if not queue:
        return

    rng = random.Random()
    for raw in queue:
        start = len(transcript.messages)

        def wait() -> None:
            _render_message(transcript.messages[-1])
            with st.spinner(f"{BOT_NAME} is typing..."):
                time.sleep(reply_delay(rng, base=cfg.reply_delay_base, jitter=cfg.reply_delay_jitter))

        turn = bot.send(raw, transcript, settings=_current_settings(settings), wait=wait)
        if turn is not None:
            for msg in transcript.messages[start + 1:]:
                _render_message(msg)

    # refresh the sidebar history
    st.rerun()


if __name__ == "__main__":
    main()
