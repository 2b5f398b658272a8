# volhedge/verification/harness_version.py
# Harness version constants. Single authoritative definition.
# Referenced by run_harness.py and the run record serializer.

HARNESS_VERSION: str = "1.0.0"

# Storage format version for serialized run records.
STORAGE_FORMAT_VERSION: str = "1.0.0"
