"""Container entrypoint for the Brand Visibility Tracker API.

Creates the result history directory, then hands the process over to
uvicorn so it receives signals from the container runtime directly.
Host and port come from API_HOST and PORT (or API_PORT).
"""

import os
import signal
import sys

# Add project root to path
sys.path.insert(0, ".")

from api.config import get_settings  # noqa: E402


def ensure_history_dir() -> None:
    """Make sure the result history file can be created."""
    settings = get_settings()
    settings.results_file.parent.mkdir(parents=True, exist_ok=True)
    print(f"Result history: {settings.results_file.resolve()}")


def exec_uvicorn() -> None:
    """Replace this process with uvicorn serving the app."""
    settings = get_settings()
    argv = [
        "uvicorn",
        "api.main:app",
        f"--host={settings.api_host}",
        f"--port={settings.api_port}",
        "--workers=1",  # history is one JSON file; no cross-process locking
        f"--log-level={settings.log_level.lower()}",
        "--proxy-headers",
        "--forwarded-allow-ips=*",
    ]
    print(f"Serving on {settings.api_host}:{settings.api_port} ({settings.env})")
    os.execvp(argv[0], argv)


def _exit_on_signal(signum: int, _frame: object) -> None:
    print(f"Received signal {signum} before startup, exiting")
    sys.exit(0)


def main() -> None:
    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, _exit_on_signal)

    ensure_history_dir()
    exec_uvicorn()


if __name__ == "__main__":
    main()
