from __future__ import annotations

import sys

import uvicorn

from storefront.adapters.inbound.cli import run_cli
from storefront.bootstrap import build_usecases
from storefront.config import Settings

USAGE = "usage: storefront serve | storefront place '<json>'"


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(USAGE)
        return 2

    settings = Settings.load_from_env()
    command, rest = argv[0], argv[1:]

    if command == "serve":
        uvicorn.run(
            "storefront.asgi:create_app",
            factory=True,
            host=settings.host,
            port=settings.port,
            reload=False,
        )
        return 0

    if command == "place" and len(rest) == 1:
        return run_cli(build_usecases(settings).place_order, rest[0])

    print(USAGE)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
