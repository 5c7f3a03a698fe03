import os
import tempfile

# keep config.env lookups and log files out of the real home directory;
# must run before brewplan is imported
os.environ.setdefault("BP_HOME_DIR", tempfile.mkdtemp(prefix="brewplan-test-"))
