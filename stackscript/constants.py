import os

import stackscript

# stackscript version
VERSION = stackscript.__version__

# default folder for profiles, aliases and the execution history
DEFAULT_CONFIG_DIR = os.path.expanduser("~/.stackscript")

# name of the history folder inside the config folder
HISTORY_FOLDER_NAME = "history"

# name of the default alias file inside the config folder
ALIASES_FILE_NAME = "aliases.env"

# default AWS region, if neither the profile nor the environment define one
DEFAULT_AWS_REGION = "us-east-1"

# strings to indicate truthy/falsy values
TRUE_STRINGS = ("1", "true", "True")
FALSE_STRINGS = ("0", "false", "False")
# strings with valid log levels for SS_LOG
LOG_LEVELS = ("trace", "debug", "info", "warn", "error", "warning")

# trace log level, configurable via $SS_LOG
SS_LOG_TRACE = "trace"
TRACE_LOG_LEVELS = [SS_LOG_TRACE]

# EC2 error codes that signal a successful dry run
DRY_RUN_OPERATION_CODE = "DryRunOperation"
NOT_FOUND_CODE_SUFFIX = "NotFound"
