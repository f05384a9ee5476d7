from pathlib import Path
import os

from dotenv import load_dotenv

from tnb_app.config import load_app_config
from tnb_core.chat import NumberBot, Transcript
from tnb_core.history import HistoryLog, format_history_line
from tnb_core.run_artifacts import build_session_artifact, write_session_artifact
from tnb_core.settings import SettingsStore
from tnb_core.store import MemoryStore


def main() -> None:
    load_dotenv(dotenv_path=Path(__file__).with_name(".env"))
    cfg = load_app_config(os.environ.get("TNB_CONFIG"))

    # Throwaway state: the demo never touches saved settings/history.
    store = MemoryStore()
    settings = SettingsStore(store, default_refs=cfg.default_refs)
    history = HistoryLog(store, limit=cfg.history_limit)
    bot = NumberBot(settings, history)
    transcript = Transcript()

    print("=== Example queries ===")
    turns = bot.run_examples(transcript)
    print(transcript.render_text())

    artifact = build_session_artifact(
        run_source="run.py",
        settings=settings.load(),
        history=history.load(),
        transcript=transcript.messages,
        results=[t.result for t in turns if t.result is not None],
        extra={"cwd": str(Path().resolve())},
    )
    out_path = write_session_artifact(artifact, runs_dir=cfg.runs_dir)
    print("\nWrote session artifact:", out_path)

    print("\n=== History (newest first) ===")
    for e in history.newest_first():
        print(f"- {format_history_line(e)} [{e.dv}]")


if __name__ == "__main__":
    main()
