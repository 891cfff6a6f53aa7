"""
Pytest configuration shared by all test suites.

Keeps session logs out of the user's home directory.
"""

import os
import tempfile

os.environ.setdefault("RECOG_LOG_DIR", tempfile.mkdtemp(prefix="recog-logs-"))
os.environ.pop("RECOG_ENDPOINT", None)
