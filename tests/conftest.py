import os
import tempfile

# Quiet, file-less logging and no error internals in responses
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="provider_match_logs_"))
