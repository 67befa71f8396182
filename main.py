"""
GigaChat client — command-line entry point.

Run with:
    python main.py "Tell me a joke"
    python main.py --stream "Tell me a joke"
"""

import argparse
import logging
import sys

# Require Python 3.10+ for the union-type hints used throughout the package.
if sys.version_info < (3, 10):
    sys.exit(
        "Python 3.10 or later is required.\n"
        f"You are running Python {sys.version_info.major}.{sys.version_info.minor}."
    )

from gigachat_client.client import EventPump, GigaChatClient  # noqa: E402
from gigachat_client.config import load_settings  # noqa: E402
from gigachat_client.errors import GigaChatError  # noqa: E402

log = logging.getLogger("gigachat_client")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="gigachat")
    parser.add_argument("prompt", type=str, help="Prompt sent as a single user message")
    parser.add_argument("--stream", action="store_true",
                        help="Print the reply as it is generated")
    parser.add_argument("--model", type=str, default=None,
                        help="Model identifier (default: GIGACHAT_MODEL or 'GigaChat')")
    parser.add_argument("--temperature", type=float, default=None)
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Print detailed auth & API debug logs")
    return parser.parse_args(argv)


def _run_streaming(client: GigaChatClient, prompt: str) -> int:
    pump = EventPump()
    failed: list[str] = []

    def on_partial(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    def on_complete(_text: str) -> None:
        sys.stdout.write("\n")

    def on_error(kind: str, message: str) -> None:
        failed.append(kind)
        print(f"\n{kind}: {message}", file=sys.stderr)

    handle = client.chat_streaming(prompt, on_partial, on_complete, on_error,
                                   dispatch=pump)
    try:
        pump.run_until_done(handle)
    except KeyboardInterrupt:
        handle.cancel()
        pump.run_until_done(handle)
    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        settings = load_settings(model=args.model, temperature=args.temperature)
    except GigaChatError as exc:
        print(f"{exc.kind}: {exc}", file=sys.stderr)
        return 1

    with GigaChatClient(settings) as client:
        if args.stream:
            return _run_streaming(client, args.prompt)
        try:
            reply = client.chat(args.prompt)
        except GigaChatError as exc:
            log.debug("[CLI] Chat failed", exc_info=True)
            print(f"{exc.kind}: {exc}", file=sys.stderr)
            return 1
    if reply is None:
        print("(no reply)", file=sys.stderr)
        return 1
    print(reply)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
