"""Constants for prebuilt.

Index file names, default locations and the limits applied to untrusted
index content.
"""

DEFAULT_INDEX = "https://github.com/cargo-prebuilt/index"

# Files published for every release on an index
INFO_FILE = "info.json"
HASHES_FILE = "hashes.json"
SIGNATURE_SUFFIX = ".minisig"
ARCHIVE_SUFFIX = ".tar.gz"
REPORT_SUFFIX = ".report"

# gh-pub index: tag holding one "latest version" asset per package
GH_STABLE_INDEX_TAG = "stable-index"

# cuhttp index: file holding the latest version of a package
CUHTTP_LATEST_FILE = "latest"

EVENT_VERSION = "1"

BIN_MODE = 0o755
"""Mode of installed binaries: rwx for the owner, r-x for group and others."""

DEFAULT_TIMEOUT_SECONDS = 30.0

MAX_BLOB_BYTES = 512 * 1024 * 1024
"""Upper bound on a buffered archive. Archives are held fully in memory."""

MAX_DOCUMENT_BYTES = 4 * 1024 * 1024
"""Upper bound on info/hashes documents, signatures and reports."""

MAX_EXTRACTED_BYTES = 2 * 1024 * 1024 * 1024
"""Upper bound on the bytes written while extracting one archive."""

PACKAGE_ID_PATTERN = r"^[A-Za-z0-9_-]+$"
VERSION_PATTERN = r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
TARGET_PATTERN = r"^[A-Za-z0-9_-]+(?:\.[A-Za-z0-9_-]+)*$"
