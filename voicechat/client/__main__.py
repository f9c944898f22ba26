"""
Command-line voice client.

Usage:
    python -m voicechat.client [--server URL] [--voice VOICE] [--device INDEX]
                               [--duration SECONDS] [--push-to-talk]
    python -m voicechat.client --list-devices
"""

import argparse
import asyncio
import sys
import threading

from voicechat.client.negotiation import NegotiationController, default_peer_connection_factory
from voicechat.client.presentation import ConsolePresentation
from voicechat.client.signaling import SignalingClient
from voicechat.config.constants import AVAILABLE_VOICES
from voicechat.config.logging_config import configure_logging
from voicechat.config.settings import ClientSettings
from voicechat.models.session import SessionState


def parse_args(argv=None):
    """Parse command line arguments."""
    defaults = ClientSettings.from_env()
    parser = argparse.ArgumentParser(description="Realtime voice chat client")
    parser.add_argument(
        "--server",
        default=defaults.server_url,
        help=f"Voice chat server URL (default: {defaults.server_url} or VOICECHAT_SERVER env var)",
    )
    parser.add_argument("--model", default=defaults.model, help="Realtime model to request")
    parser.add_argument(
        "--voice", default=defaults.voice, choices=AVAILABLE_VOICES, help="AI voice to use"
    )
    parser.add_argument("--device", type=int, default=None, help="Input device index")
    parser.add_argument("--list-devices", action="store_true", help="List input devices and exit")
    parser.add_argument(
        "--no-reconnect", action="store_true", help="Do not reconnect when the connection drops"
    )
    parser.add_argument("--max-retries", type=int, default=defaults.max_retries)
    parser.add_argument("--retry-delay", type=float, default=defaults.retry_delay)
    parser.add_argument(
        "--duration", type=float, default=0, help="Seconds to stay connected (default: until Ctrl+C)"
    )
    parser.add_argument("--no-speaker", action="store_true", help="Discard the AI audio instead of playing it")
    parser.add_argument(
        "--push-to-talk", action="store_true", help="Press Enter to start and stop each spoken turn"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    return parser.parse_args(argv)


def print_devices():
    from voicechat.client.media import list_input_devices

    devices = list_input_devices()
    if not devices:
        print("No microphone found")
        return
    for index, name in devices:
        print(f"{index}: {name}")


def build_controller(args, settings: ClientSettings) -> NegotiationController:
    sink_factory = None
    if not args.no_speaker:
        from voicechat.client.media import SpeakerSink

        sink_factory = SpeakerSink

    return NegotiationController(
        SignalingClient(args.server, timeout=settings.request_timeout),
        ConsolePresentation(),
        model=args.model,
        voice=args.voice,
        device=args.device,
        auto_reconnect=not args.no_reconnect,
        max_retries=args.max_retries,
        retry_delay=args.retry_delay,
        peer_connection_factory=lambda: default_peer_connection_factory(settings.ice_server),
        sink_factory=sink_factory,
    )


def _read_stdin(loop, queue: asyncio.Queue):
    for line in sys.stdin:
        loop.call_soon_threadsafe(queue.put_nowait, line)
    loop.call_soon_threadsafe(queue.put_nowait, "")


async def push_to_talk(controller: NegotiationController):
    """Toggle user turns on each Enter; 'q' ends the conversation."""
    print("Press Enter to talk, Enter again to send, 'q' to quit")
    lines: asyncio.Queue = asyncio.Queue()
    # Daemon thread so a blocked read never holds up interpreter exit
    threading.Thread(target=_read_stdin, args=(asyncio.get_running_loop(), lines), daemon=True).start()
    while True:
        line = await lines.get()
        if not line or line.strip().lower() == "q":
            return
        if controller.turn_open:
            controller.end_user_turn()
        elif not controller.begin_user_turn():
            print("Not connected yet")


async def run(args) -> int:
    settings = ClientSettings.from_env()
    controller = build_controller(args, settings)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.duration if args.duration > 0 else None

    ptt_task = asyncio.create_task(push_to_talk(controller)) if args.push_to_talk else None
    try:
        await controller.start()
        while True:
            if deadline is not None and loop.time() >= deadline:
                break
            if ptt_task is not None and ptt_task.done():
                break
            if controller.state == SessionState.FAILED and controller.pending_retry is None:
                break
            await asyncio.sleep(0.5)
    finally:
        if ptt_task is not None and not ptt_task.done():
            ptt_task.cancel()
        failed = controller.state == SessionState.FAILED
        await controller.stop()

    for line in controller.transcript:
        print(line.format())
    return 1 if failed else 0


def main(argv=None):
    """Main entry point for the voice client."""
    args = parse_args(argv)
    configure_logging(args.log_level)

    if args.list_devices:
        print_devices()
        return 0

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nStopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
