"""
Command-line entry point for the Ascend interview client.
Allows running the package with: python -m ascend_interview
"""
import sys
import asyncio
import functools
import threading

from .config import get_config
from .errors import TranscriptLockedError
from .infrastructure.api import AscendApiClient
from .infrastructure.media import MediaCapture
from .infrastructure.speech import AudioPlayer, StreamingRecognizer
from .interview.controller import InterviewController
from .interview.services import SpeechCaptureService
from .interview.events import EventType
from .interview.messages import SessionMessages
from .interview.models import SessionStatus
from .interview.report import format_report
from .utils import setup_logging

HELP = (
    "   Enter = submit answer | /record | /stop | /replay | /retry | /quit\n"
    "   Any other text replaces your answer (only while not recording)"
)


def _subscribe_display(controller: InterviewController, voice: bool):
    """Print session events as they happen."""
    bus = controller.event_bus

    def prompt(event):
        d = event.data
        if d["follow_up_index"] is None:
            total = controller.session.question_count
            print(f"\n❓ Question {d['question_index'] + 1}/{total}: {d['text']}")
        else:
            print(f"\n🔁 Follow-up {d['follow_up_index'] + 1}: {d['text']}")

    def narration_finished(event):
        if voice:
            print("🎧 Listening... speak your answer")
        else:
            print("⌨️  Type your answer, then press Enter on an empty line to submit")

    def countdown(event):
        print(f"⏱️  Auto-submitting in {event.data['seconds']}s (press Enter to submit now)")

    def transcript(event):
        print(f"💬 \"{event.data['live_text']}\"")

    def scores(event):
        s = event.data["scores"]
        print(f"📊 Score {s['overall']}% | communication {s['communication']} | technical {s['technical']} "
              f"| problem solving {s['problemSolving']} | confidence {s['confidence']}")
        print(f"🧠 {event.data['analysis']}")

    def transition(event):
        kind = event.data["kind"]
        if kind == "finalize":
            print("🏁 All questions answered. Generating your assessment...")
        else:
            print("➡️  Moving on...")

    def violation(event):
        print(f"⚠️  Security violation ({event.data['violation_count']}): {event.data['description']}")

    def error(event):
        if event.data["component"] != "analysis":
            print(f"❌ {event.data['error_message']}")

    bus.subscribe(EventType.PROMPT_PRESENTED, prompt)
    bus.subscribe(EventType.NARRATION_FINISHED, narration_finished)
    bus.subscribe(EventType.COUNTDOWN_STARTED, countdown)
    bus.subscribe(EventType.TRANSCRIPT_UPDATED, transcript)
    bus.subscribe(EventType.SCORES_UPDATED, scores)
    bus.subscribe(EventType.TRANSITION_DECIDED, transition)
    bus.subscribe(EventType.SECURITY_VIOLATION, violation)
    bus.subscribe(EventType.ERROR_OCCURRED, error)


def _stdin_lines(loop: asyncio.AbstractEventLoop) -> asyncio.Queue:
    """Feed stdin lines into a queue from a daemon thread; None marks EOF."""
    queue: asyncio.Queue = asyncio.Queue()

    def pump():
        for line in sys.stdin:
            loop.call_soon_threadsafe(queue.put_nowait, line.rstrip("\n"))
        loop.call_soon_threadsafe(queue.put_nowait, None)

    threading.Thread(target=pump, name="stdin", daemon=True).start()
    return queue


async def _handle_line(controller: InterviewController, line: str):
    command = line.strip()
    if command == "":
        await controller.submit()
    elif command == "/record":
        await controller.start_recording()
    elif command == "/stop":
        controller.stop_recording()
    elif command == "/replay":
        if not controller.replay():
            print("🔊 Narration is already playing")
    elif command == "/retry":
        await controller.retry()
    elif command == "/quit":
        controller.quit()
    else:
        try:
            controller.edit_transcript(line)
            print("✏️  Answer updated. Press Enter to submit.")
        except TranscriptLockedError:
            print(f"🔒 {SessionMessages.TRANSCRIPT_LOCKED}")


async def _interact(controller: InterviewController, interview_id):
    lines = _stdin_lines(asyncio.get_running_loop())
    session = asyncio.create_task(controller.run(interview_id))

    while not session.done():
        next_line = asyncio.create_task(lines.get())
        done, _ = await asyncio.wait({session, next_line}, return_when=asyncio.FIRST_COMPLETED)
        if next_line not in done:
            next_line.cancel()
            break
        line = next_line.result()
        if line is None:
            controller.quit()
            break
        await _handle_line(controller, line)

    return await session


def _display_outcome(outcome, controller: InterviewController, log_file: str):
    print()
    if outcome.status == SessionStatus.COMPLETED and outcome.report is not None:
        print(format_report(outcome.report))
    elif outcome.status == SessionStatus.REDIRECTED:
        print(f"🔐 Cannot start the interview here. Continue at: {outcome.route}")
    elif outcome.status == SessionStatus.TERMINATED:
        print("=" * 50)
        print("🚫 INTERVIEW TERMINATED")
        print("=" * 50)
        for description in outcome.violations:
            print(f"   • {description}")
        print(f"🛑 Redirected to: {outcome.route}")
    else:
        print("👋 Interview ended")

    print(f"📁 Full details logged to: {log_file}")
    print(f"📈 Session metrics: {controller.metrics.get_metrics()}")


def main():
    """Command-line interface for the interview client."""

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    interview_id = None
    text_mode = "--text" in sys.argv or "--no-tts" in sys.argv
    for arg in sys.argv[1:]:
        if arg.startswith("--interview-id="):
            interview_id = arg.split("=", 1)[1] or None
        elif arg.startswith("--countdown="):
            try:
                config.countdown_seconds = max(1, int(arg.split("=", 1)[1]))
            except ValueError:
                print("❌ Invalid countdown value. Use --countdown=<seconds>")
                sys.exit(1)
        elif arg == "--strict":
            config.security_level = "strict"
        elif arg == "--relaxed":
            config.security_level = "off"

    log_file = setup_logging(config.log_file, config.log_level)

    api = AscendApiClient(config.auth_token, base_url=config.api_base_url)
    media = MediaCapture(camera_index=config.camera_index, enable_audio=not text_mode)

    if text_mode:
        config.enable_tts = False
        speech = None
        player = None
        print("📝 Text Mode: Questions are displayed as text and answers are typed")
    else:
        recognizer_factory = functools.partial(
            StreamingRecognizer,
            language_code=config.language_code,
            credentials_json=config.google_application_credentials,
        )
        speech = SpeechCaptureService(media, recognizer_factory)
        player = AudioPlayer()
        print("🔊 Voice Mode: Questions are read aloud and answers are transcribed")
        print("   (Use --text to type answers instead)")

    print(f"🛡️  Proctoring: {config.security_level}")
    print(f"⏱️  Auto-submit countdown: {config.countdown_seconds}s")
    print(HELP)

    controller = InterviewController(
        api,
        media=media,
        speech=speech,
        player=player,
        config=config,
    )
    _subscribe_display(controller, voice=not text_mode)

    try:
        outcome = asyncio.run(_interact(controller, interview_id))
    except KeyboardInterrupt:
        print("\n👋 Interview cancelled")
        sys.exit(130)

    _display_outcome(outcome, controller, log_file)
    if outcome.status == SessionStatus.REDIRECTED:
        sys.exit(2)


if __name__ == "__main__":
    main()
