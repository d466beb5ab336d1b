from argparse import ArgumentParser
from collections.abc import Sequence

import uvicorn


def main(argv: Sequence[str] | None = None) -> None:
    """
    Entry point for the `spamzero-api` command.

    Serves `spamzero.api.main:app` with uvicorn. Application settings still
    come from the `SPAMZERO_*` environment; only the listening address and
    reload mode are taken from the command line.
    """
    parser = ArgumentParser("spamzero-api")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", "-p", type=int, default=8000, help="Bind port")
    parser.add_argument(
        "--reload", action="store_true", help="Restart on code changes (development)"
    )

    args = parser.parse_args(argv)

    uvicorn.run(
        "spamzero.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        # The app installs its own JSON logging in the lifespan.
        log_config=None,
    )


if __name__ == "__main__":
    main()
