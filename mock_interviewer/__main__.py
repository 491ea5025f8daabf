#!/usr/bin/env python3
"""
Main entry point for the mock interviewer.
Allows running the package with: python -m mock_interviewer
"""
import asyncio
import os
import sys
import threading
import uuid
from dataclasses import replace
from typing import Tuple

from .config import get_config, USER_NAME, INTERVIEW_TYPE
from .interview import (
    InterviewOrchestrator, InterviewSetup, AsyncioScheduler,
    EventType, SessionState, StatusKind
)
from .utils import setup_logging

# Suppress Google Cloud warnings
os.environ.setdefault("GRPC_VERBOSITY", "ERROR")
os.environ.setdefault("GLOG_minloglevel", "2")

USAGE = """Usage: python -m mock_interviewer [options]

  --name=NAME         Candidate name
  --type=TYPE         Interview type, e.g. "backend engineering"
  --question=TEXT     Candidate question (repeatable)
  --text, --no-tts    Print interviewer lines instead of speaking them
  --tts, --speech     Speak interviewer lines (overrides ENABLE_TTS in config.py)
  --tap               Tap mode: press Enter before each answer
"""

STATUS_ICONS = {
    StatusKind.CONNECTING: "🔌",
    StatusKind.SPEAKING: "🔊",
    StatusKind.LISTENING: "🎙️ ",
    StatusKind.THINKING: "🤔",
    StatusKind.READY: "👉",
    StatusKind.RETRY: "🔁",
    StatusKind.INTERRUPTED: "⏹️ ",
    StatusKind.ERROR: "⚠️ ",
    StatusKind.FATAL: "❌",
    StatusKind.FINISHED: "🏁",
}


def parse_args(argv):
    """Parse `--key=value` command-line flags."""
    options = {
        "name": USER_NAME,
        "type": INTERVIEW_TYPE,
        "questions": [],
        "text_mode": None,
        "tap": False,
    }
    for arg in argv:
        if arg in ("-h", "--help"):
            print(USAGE)
            sys.exit(0)
        elif arg.startswith("--name="):
            options["name"] = arg.split("=", 1)[1]
        elif arg.startswith("--type="):
            options["type"] = arg.split("=", 1)[1]
        elif arg.startswith("--question="):
            options["questions"].append(arg.split("=", 1)[1])
        elif arg in ("--text", "--no-tts"):
            options["text_mode"] = True
        elif arg in ("--tts", "--speech"):
            options["text_mode"] = False
        elif arg == "--tap":
            options["tap"] = True
        else:
            print(f"❌ Unknown option: {arg}")
            print(USAGE)
            sys.exit(1)
    return options


def build_orchestrator(config, options, scheduler) -> Tuple[InterviewOrchestrator, bool]:
    """Wire the real Google collaborators into an orchestrator."""
    from .infrastructure.llm import VertexRestClient
    from .infrastructure.data import HttpFeedbackClient, JsonTranscriptStore
    from .infrastructure.speech import (
        GoogleStreamingCapture, GoogleTTSPlayback, ConsolePlayback, MicrophonePermission
    )

    text_mode = options["text_mode"] if options["text_mode"] is not None else not config.enable_tts
    if text_mode:
        playback = ConsolePlayback()
    else:
        playback = GoogleTTSPlayback(
            voice=config.tts_voice,
            speaking_rate=config.tts_speaking_rate,
            language_code=config.language_code,
        )

    setup = InterviewSetup(
        session_id=uuid.uuid4().hex[:12],
        user_id=os.getenv("USER", "local-user"),
        user_name=options["name"],
        interview_type=options["type"],
        questions=options["questions"],
    )

    return InterviewOrchestrator(
        setup=setup,
        capture_service=GoogleStreamingCapture(language_code=config.language_code),
        playback_service=playback,
        permission_acquirer=MicrophonePermission(),
        generator=VertexRestClient(
            project=config.google_cloud_project,
            location=config.vertex_location,
            model=config.model_name,
            credentials_json=config.google_application_credentials,
        ),
        feedback_service=HttpFeedbackClient(config.feedback_service_url),
        transcript_store=JsonTranscriptStore(config.workdir),
        scheduler=scheduler,
        policy=replace(config.policy, auto_listen=not options["tap"]),
        persona=config.get_persona(),
    ), text_mode


def _start_stdin_reader(loop, queue: asyncio.Queue) -> None:
    """Forward stdin lines to the loop; None marks end of input."""
    def reader():
        for line in sys.stdin:
            loop.call_soon_threadsafe(queue.put_nowait, line.strip())
        loop.call_soon_threadsafe(queue.put_nowait, None)

    threading.Thread(target=reader, name="stdin-reader", daemon=True).start()


async def run_session(config, options) -> int:
    loop = asyncio.get_running_loop()
    scheduler = AsyncioScheduler(loop)
    orchestrator, text_mode = build_orchestrator(config, options, scheduler)
    done = asyncio.Event()

    def on_status(event):
        kind = StatusKind(event.data["kind"])
        print(f"{STATUS_ICONS.get(kind, '•')} {event.data['message']}")
        if kind is StatusKind.FATAL and orchestrator.state.session is SessionState.IDLE:
            done.set()

    def on_turn(event):
        if event.data["speaker"] == "user":
            print(f"🗣️  You: {event.data['text']}")
        elif not text_mode:
            print(f"🤖 {event.data['text']}")

    def on_finished(event):
        done.set()

    console_handlers = [
        (EventType.STATUS_CHANGED, on_status),
        (EventType.TURN_APPENDED, on_turn),
        (EventType.SESSION_FINISHED, on_finished),
    ]
    for event_type, handler in console_handlers:
        orchestrator.event_bus.subscribe(event_type, handler)

    print(f"\n🎙️  Starting {options['type']} mock interview for {options['name']}")
    print(f"📝 Detailed logs: {config.log_file}")
    if options["tap"]:
        print("   Press Enter to answer, 'q' + Enter to end the interview")
    else:
        print("   Listening starts automatically. 'q' + Enter ends the interview")
    print("=" * 50)

    lines: asyncio.Queue = asyncio.Queue()
    _start_stdin_reader(loop, lines)
    orchestrator.start()

    while not done.is_set():
        line_task = asyncio.ensure_future(lines.get())
        done_task = asyncio.ensure_future(done.wait())
        finished, _ = await asyncio.wait({line_task, done_task}, return_when=asyncio.FIRST_COMPLETED)
        if done_task not in finished:
            done_task.cancel()
        if line_task not in finished:
            line_task.cancel()
            break

        line = line_task.result()
        if line is None or line.lower() in ("q", "quit", "exit"):
            orchestrator.end()
            if orchestrator.state.session is not SessionState.FINISHED:
                break
            continue
        if line.lower() == "r" and orchestrator.state.capture.permission_revoked:
            orchestrator.request_permission()
            continue

        rejection = orchestrator.begin_listening()
        if rejection is not None:
            print(f"⏳ Can't listen yet: {rejection.value}")

    await scheduler.drain()
    for event_type, handler in console_handlers:
        orchestrator.event_bus.unsubscribe(event_type, handler)

    state = orchestrator.state
    if state.feedback is None:
        return 1

    print("=" * 50)
    print(f"📊 Turns: {len(state.transcript)} | Metrics: {orchestrator.metrics.get_metrics()}")
    if state.feedback.success:
        print(f"✅ Feedback ready: {state.feedback.new_session_id}")
        return 0
    print(f"❌ Feedback failed: {state.feedback.error}")
    return 1


def main():
    """Command-line interface for the mock interviewer."""

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    options = parse_args(sys.argv[1:])
    setup_logging(config.log_file, config.log_level)

    try:
        exit_code = asyncio.run(run_session(config, options))
    except KeyboardInterrupt:
        print("\n👋 Interview cancelled")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
