from __future__ import annotations

import os
import tempfile

# Settings are read at import time, so point storage at a scratch directory first.
os.environ.setdefault('STORAGE_ROOT', tempfile.mkdtemp(prefix='pixelcut-tests-'))
os.environ.setdefault('RATE_LIMIT_PER_MINUTE', '100000')
