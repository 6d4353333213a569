"""!
@brief Allow ``python -m cygwin_janitor``.
"""
from __future__ import annotations

import sys

from .main import main

if __name__ == "__main__":  # pragma: no cover - module execution
    sys.exit(main())
