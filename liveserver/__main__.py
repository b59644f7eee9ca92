import argparse
import asyncio
import logging
import os
import re
import signal
import sys

from . import __version__
from .config import DEFAULT_PORT, ServerConfig, Verbosity, default_host, load_config_file
from .exceptions import LiveServerError
from .log import configure_logging
from .server import start

logger = logging.getLogger("liveserver")


def _split(value):
    return [p for p in value.split(",") if p]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="live-server",
        description="Serve a directory and reload the browser when files change",
    )
    parser.add_argument("root", nargs="?", help="directory to serve (default: current directory)")
    parser.add_argument("--host", help="address to bind to (default: $IP or 0.0.0.0)")
    parser.add_argument("--port", type=int, help=f"port to listen on, 0 for any (default: {DEFAULT_PORT})")
    parser.add_argument("--watch", type=_split, help="comma-separated paths to watch instead of ROOT")
    parser.add_argument("--ignore", type=_split, help="comma-separated paths to ignore")
    parser.add_argument("--ignore-pattern", dest="ignore_pattern", help="regular expression of paths to ignore")
    parser.add_argument("--wait", type=int, help="milliseconds to gather changes into one reload")
    parser.add_argument("--poll", action="store_true", default=None, help="poll for changes instead of OS notifications")
    parser.add_argument("-q", "--quiet", dest="log_level", action="store_const", const=Verbosity.QUIET)
    parser.add_argument("-V", "--verbose", dest="log_level", action="store_const", const=Verbosity.VERBOSE)
    parser.add_argument("-v", "--version", action="version", version=f"live-server {__version__}")
    return parser


def config_from_args(args, defaults=None) -> ServerConfig:
    """Merge command line arguments over config-file defaults."""
    defaults = defaults or {}

    def pick(value, key, fallback):
        if value is not None:
            return value
        return defaults.get(key, fallback)

    root = os.path.abspath(pick(args.root, "root", os.getcwd()) or os.getcwd())
    watch = pick(args.watch, "watch", None)
    ignore = [os.path.join(root, p) for p in pick(args.ignore, "ignore", [])]
    pattern = pick(args.ignore_pattern, "ignorePattern", None)
    if pattern:
        ignore.append(re.compile(pattern))

    return ServerConfig(
        host=pick(args.host, "host", default_host()),
        port=pick(args.port, "port", DEFAULT_PORT),
        root=root,
        watch=[os.path.join(root, p) for p in watch] if watch else None,
        ignore=ignore,
        poll=bool(pick(args.poll, "poll", False)),
        verbosity=Verbosity(pick(args.log_level, "logLevel", Verbosity.INFO)),
        debounce=pick(args.wait, "wait", 0) / 1000.0,
    )


async def serve(config: ServerConfig) -> None:
    handle = await start(config)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: KeyboardInterrupt still ends asyncio.run().
            pass
    try:
        await stop.wait()
    finally:
        await handle.shutdown()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = config_from_args(args, load_config_file())
    except (LiveServerError, ValueError, re.error) as e:
        print(f"live-server: {e}", file=sys.stderr)
        return 1
    configure_logging(config.verbosity)
    try:
        asyncio.run(serve(config))
    except LiveServerError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
