# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

import sys

import uvicorn
from pydantic import ValidationError

from coreason_auth.api import create_app
from coreason_auth.config import CoreasonAuthConfig
from coreason_auth.exceptions import InvalidConfigError
from coreason_auth.server import AuthServer
from coreason_auth.utils.logger import configure_logging, logger


def main() -> None:
    configure_logging()
    try:
        config = CoreasonAuthConfig()  # type: ignore[call-arg]
        server = AuthServer.from_config(config)
    except (ValidationError, InvalidConfigError) as e:
        logger.critical(f"Invalid coreason-auth configuration, halting: {e}")
        sys.exit(1)

    uvicorn.run(create_app(server), host=config.host, port=config.port, log_config=None)


if __name__ == "__main__":
    main()
