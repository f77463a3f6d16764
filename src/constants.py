"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    CONNECTION_ERROR = 2
    CLI_ERROR = 101


class DepKind(Enum):
    """Dependency kinds as declared in a package manifest.

    Args:
        Enum (string): Manifest section a dependency was declared in.
    """

    NORMAL = "normal"
    BUILD = "build"
    DEV = "dev"


class SourceKind(Enum):
    """Kinds of places packages can be retrieved from.

    Args:
        Enum (string): Prefix used in lock-file source strings.
    """

    REGISTRY = "registry"
    SPARSE = "sparse"
    LOCAL_REGISTRY = "local-registry"
    DIRECTORY = "directory"
    PATH = "path"
    GIT = "git"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    CRATES_IO_REGISTRY = "crates-io"
    CRATES_IO_INDEX = "https://github.com/rust-lang/crates.io-index"
    CRATES_IO_HTTP_INDEX = "https://index.crates.io/"
    CRATES_IO_URL = "https://crates.io/crates"
    DOCS_RS_URL = "https://docs.rs"

    MANIFEST_FILE = "Cargo.toml"
    LOCK_FILE = "Cargo.lock"
    CONFIG_DIR = ".cargo"
    CONFIG_FILES = ["config.toml", "config"]
    CREDENTIALS_FILES = ["credentials.toml", "credentials"]
    PACKAGE_CACHE_LOCK = ".package-cache"
    INDEX_CONFIG_FILE = "config.json"
    DEFAULT_FEATURE = "default"

    ENV_CARGO_HOME = "CARGO_HOME"
    ENV_REGISTRY_TOKEN = "CARGO_REGISTRY_TOKEN"
    ENV_REGISTRIES_PREFIX = "CARGO_REGISTRIES_"
    ENV_LOG_LEVEL = "CRATEINFO_LOG_LEVEL"
    ENV_RUSTC = "RUSTC"

    DL_TEMPLATE_MARKERS = ["{crate}", "{version}", "{prefix}", "{lowerprefix}", "{sha256-checksum}"]
    INDEX_NOT_FOUND_STATUSES = [404, 410, 451]

    MAX_FEATURE_PRINTS = 30
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    USER_AGENT = "crateinfo (package inspection)"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    RUSTC_TIMEOUT = 10
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
