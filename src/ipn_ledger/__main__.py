"""Run the donations server: ``python -m ipn_ledger``."""

import uvicorn

from ipn_ledger.app import create_app
from ipn_ledger.logging_config import setup_logging
from ipn_ledger.settings import Settings


def main() -> None:
    settings = Settings()
    setup_logging(settings)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
