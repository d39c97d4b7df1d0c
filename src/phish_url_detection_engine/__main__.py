"""Module entrypoint: ``python -m phish_url_detection_engine``."""

from __future__ import annotations

import sys

from phish_url_detection_engine.cli import main

if __name__ == "__main__":
    sys.exit(main())
