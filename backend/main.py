import logging

import sys
import os

sys.path.append(os.path.dirname(__file__))

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)

from app.main import app  # noqa: E402

__all__ = ["app"]
