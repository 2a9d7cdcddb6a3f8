import os

from dotenv import find_dotenv, load_dotenv

from statement_importer.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "RULE_STORE",
    "DATABASE_URL",
    "READY_THRESHOLD",
    "FUZZY_MATCH_THRESHOLD",
    "SIGN_CONVENTION",
    "HOST",
    "PORT",
)

DEFAULT_READY_THRESHOLD = 0.9
DEFAULT_FUZZY_MATCH_THRESHOLD = 0.0
DEFAULT_RULE_STORE = "json"
DEFAULT_SIGN_CONVENTION = "card"
RULES_FILENAME = "import_rules.json"

RULE_STORE_BACKENDS = ("json", "sql")
SIGN_CONVENTIONS = ("card", "bank")


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    resolved = find_dotenv(usecwd=True)
    return resolved or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    cwd = os.getcwd()
    candidate = os.path.join(cwd, "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, CONFIG_FILENAME)


def _strip_inline_comment(raw_value: str) -> str:
    in_single = False
    in_double = False
    escaped = False
    for index, char in enumerate(raw_value):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"' and not in_single:
            in_double = not in_double
            continue
        if char == "'" and not in_double:
            in_single = not in_single
            continue
        if char == "#" and not in_single and not in_double:
            return raw_value[:index].rstrip()
    return raw_value


def _unquote_value(raw_value: str) -> str:
    if len(raw_value) < 2:
        return raw_value
    if raw_value[0] == raw_value[-1] == '"':
        value = raw_value[1:-1]
        return value.replace('\\"', '"').replace("\\\\", "\\")
    if raw_value[0] == raw_value[-1] == "'":
        value = raw_value[1:-1]
        return value.replace("\\'", "'").replace("\\\\", "\\")
    return raw_value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat ``KEY: value`` pairs from a YAML-ish config file."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            if not key:
                continue
            cleaned = _strip_inline_comment(raw_value).strip()
            if not cleaned:
                continue
            value = _unquote_value(cleaned)
            if value:
                values[key] = value
    return values


def load_environment() -> None:
    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    config_values = read_config_file(_resolve_config_path())

    # Real environment variables win over the config file
    for key in _CONFIG_KEYS:
        if key not in os.environ and key in config_values:
            os.environ[key] = config_values[key]


def ensure_dir(path: str | None) -> None:
    if path and path not in {".", "./"}:
        os.makedirs(path, exist_ok=True)


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    return value


def get_env_float(
    name: str,
    default: float = 0.0,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    if max_value is not None and value > max_value:
        logger.warning(
            "[ENV] %s='%s' above maximum %s, using default %s.",
            name,
            raw,
            max_value,
            default,
        )
        return default
    return value


def get_env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value not in choices:
        logger.warning(
            "[ENV] Invalid %s='%s' (expected one of %s), using default %s.",
            name,
            raw,
            ", ".join(choices),
            default,
        )
        return default
    return value


def get_ready_threshold() -> float:
    return get_env_float("READY_THRESHOLD", DEFAULT_READY_THRESHOLD, min_value=0.0, max_value=1.0)


def get_fuzzy_match_threshold() -> float:
    # rapidfuzz scale (0-100); 0 disables fuzzy rule matching
    return get_env_float(
        "FUZZY_MATCH_THRESHOLD",
        DEFAULT_FUZZY_MATCH_THRESHOLD,
        min_value=0.0,
        max_value=100.0,
    )


def get_rule_store_backend() -> str:
    return get_env_choice("RULE_STORE", DEFAULT_RULE_STORE, RULE_STORE_BACKENDS)


def get_sign_convention() -> str:
    return get_env_choice("SIGN_CONVENTION", DEFAULT_SIGN_CONVENTION, SIGN_CONVENTIONS)


def get_data_dir() -> str:
    return os.getenv("DATA_DIR", ".")


def get_database_url() -> str | None:
    return os.getenv("DATABASE_URL") or None


_SENSITIVE_ENV_KEYS = (
    "KEY",
    "TOKEN",
    "SECRET",
    "PASSWORD",
    "PASS",
    "AUTH",
    "BEARER",
    "PRIVATE",
)

_ENV_KEYS_TO_LOG = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "RULE_STORE",
    "DATABASE_URL",
    "READY_THRESHOLD",
    "FUZZY_MATCH_THRESHOLD",
    "SIGN_CONVENTION",
)


def _should_mask_env_value(name: str, value: str) -> bool:
    upper_name = name.upper()
    if any(marker in upper_name for marker in _SENSITIVE_ENV_KEYS):
        return True
    # Connection strings with inline credentials
    if "://" in value and "@" in value:
        return True
    if value.startswith("Bearer ") or value.startswith("bearer "):
        return True
    return False


def _mask_env_value(name: str, value: str) -> str:
    sanitized = value.replace("\r", "\\r").replace("\n", "\\n")
    if not _should_mask_env_value(name, sanitized):
        return sanitized
    if len(sanitized) <= 4:
        return "****"
    return f"{sanitized[:2]}...{sanitized[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables (masked where needed).")
    for key in _ENV_KEYS_TO_LOG:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else _mask_env_value(key, raw_value)
        logger.info("[ENV] %s=%s", key, value)


load_environment()
