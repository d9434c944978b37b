"""Legal case lifecycle workflow engine."""

import os

__version__ = "0.1.0"

# Build identity stamped on audit records and history exports
ENGINE_VERSION = os.environ.get("CASEFLOW_ENGINE_VERSION") or __version__
