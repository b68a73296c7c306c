import logging
import os
import time
from typing import Any, Dict, List, Optional, Tuple, Union

from stackscript.constants import (
    ALIASES_FILE_NAME,
    DEFAULT_AWS_REGION,
    DEFAULT_CONFIG_DIR,
    FALSE_STRINGS,
    HISTORY_FOLDER_NAME,
    LOG_LEVELS,
    TRACE_LOG_LEVELS,
    TRUE_STRINGS,
)

# keep track of start time, for performance debugging
load_start_time = time.time()


def eval_log_type(env_var_name: str) -> Union[str, bool]:
    """Get the log type from environment variable"""
    ss_log = os.environ.get(env_var_name, "").lower().strip()
    return ss_log if ss_log in LOG_LEVELS else False


def parse_boolean_env(env_var_name: str) -> Optional[bool]:
    """Parse the value of the given env variable and return True/False, or None if it is not a boolean value."""
    value = os.environ.get(env_var_name, "").lower().strip()
    if value in TRUE_STRINGS:
        return True
    if value in FALSE_STRINGS:
        return False
    return None


def is_env_true(env_var_name: str) -> bool:
    """Whether the given environment variable has a truthy value."""
    return os.environ.get(env_var_name, "").lower().strip() in TRUE_STRINGS


def is_env_not_false(env_var_name: str) -> bool:
    """Whether the given environment variable is empty or has a truthy value."""
    return os.environ.get(env_var_name, "").lower().strip() not in FALSE_STRINGS


def load_environment(profiles: str = None, env=os.environ) -> List[str]:
    """Loads the environment variables from ~/.stackscript/{profile}.env, for each profile listed in the profiles.
    :param env: environment to load profile to. Defaults to `os.environ`
    :param profiles: a comma separated list of profiles to load (defaults to "default")
    :returns str: the list of the actually loaded profiles (might be the fallback)
    """
    if not profiles:
        profiles = "default"

    profiles = [profile.strip() for profile in profiles.split(",")]
    environment = {}
    import dotenv

    for profile in profiles:
        path = os.path.join(CONFIG_DIR, f"{profile}.env")
        if not os.path.exists(path):
            continue
        environment.update(dotenv.dotenv_values(path))

    for k, v in environment.items():
        # we do not want to override the environment
        if k not in env and v is not None:
            env[k] = v

    return profiles


def load_aliases(path: str = None) -> Dict[str, str]:
    """
    Loads the alias mapping (alias name -> resource identifier) from the given dotenv-style file.

    :param path: the alias file, defaults to ``ALIASES_FILE``
    :return: the alias mapping, empty if the file does not exist
    """
    import dotenv

    path = path or ALIASES_FILE
    if not path or not os.path.isfile(path):
        return {}
    return {k: v for k, v in dotenv.dotenv_values(path).items() if v}


# CLI specific: the configuration profile to load
CONFIG_PROFILE = os.environ.get("CONFIG_PROFILE", "").strip()

# CLI specific: host configuration directory
CONFIG_DIR = os.environ.get("CONFIG_DIR", DEFAULT_CONFIG_DIR)

# keep this on top to populate environment
LOADED_PROFILES = load_environment(CONFIG_PROFILE)

# whether to enable verbose debug logging
SS_LOG = eval_log_type("SS_LOG")
DEBUG = is_env_true("DEBUG") or SS_LOG in TRACE_LOG_LEVELS

# directory holding one JSON file per template execution
HISTORY_DIR = os.environ.get("HISTORY_DIR", "").strip() or os.path.join(
    CONFIG_DIR, HISTORY_FOLDER_NAME
)

# file with `alias=identifier` lines used to resolve @alias values
ALIASES_FILE = os.environ.get("ALIASES_FILE", "").strip() or os.path.join(
    CONFIG_DIR, ALIASES_FILE_NAME
)

# region and (optional) custom endpoint for the AWS clients used by the drivers
AWS_REGION = (
    os.environ.get("AWS_REGION", "").strip()
    or os.environ.get("AWS_DEFAULT_REGION", "").strip()
    or DEFAULT_AWS_REGION
)
AWS_ENDPOINT_URL = os.environ.get("AWS_ENDPOINT_URL", "").strip() or None

# whether declaring the same identifier twice in one template is an error (default: last one wins)
STRICT_DECLARATIONS = is_env_true("STRICT_DECLARATIONS")

# whether executions should be persisted to HISTORY_DIR
SAVE_HISTORY = is_env_not_false("SAVE_HISTORY")

CONFIG_ENV_VARS = [
    "AWS_ENDPOINT_URL",
    "AWS_REGION",
    "ALIASES_FILE",
    "CONFIG_DIR",
    "CONFIG_PROFILE",
    "DEBUG",
    "HISTORY_DIR",
    "SAVE_HISTORY",
    "SS_LOG",
    "STRICT_DECLARATIONS",
]


def is_trace_logging_enabled():
    if SS_LOG:
        log_level = str(SS_LOG).upper()
        return log_level.lower() in TRACE_LOG_LEVELS
    return False


def collect_config_items() -> List[Tuple[str, Any]]:
    """Returns a list of key-value tuples of stackscript configuration values."""
    result = []
    for key in sorted(CONFIG_ENV_VARS):
        result.append((key, globals().get(key)))
    return result


# set log levels immediately, but will be overwritten later by setup_logging
if DEBUG:
    logging.getLogger("").setLevel(logging.DEBUG)
    logging.getLogger("stackscript").setLevel(logging.DEBUG)

LOG = logging.getLogger(__name__)
if is_trace_logging_enabled():
    load_end_time = time.time()
    LOG.debug(
        "Initializing the configuration took %s ms", int((load_end_time - load_start_time) * 1000)
    )
