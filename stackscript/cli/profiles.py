import argparse
import os
import sys
from typing import Optional

# important: this needs to be free of stackscript imports


def set_and_remove_profile_from_sys_argv():
    """
    Parses the ``--profile`` flag from ``sys.argv``, removing all of its occurrences so it can be given at any point
    of the command line. The value of the last occurrence is used. If there is none, the first ``-p`` flag is used
    instead, but kept in ``sys.argv`` where the group option of the CLI consumes it.

    If a profile is found, the ``CONFIG_PROFILE`` environment variable is set accordingly. This is later picked up
    by ``stackscript.config``.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--profile")
    namespace, sys.argv = parser.parse_known_args(sys.argv)
    profile = namespace.profile

    if not profile:
        profile = parse_p_argument(sys.argv)

    if profile:
        os.environ["CONFIG_PROFILE"] = profile.strip()


def parse_p_argument(args) -> Optional[str]:
    """
    Lightweight arg parsing to find the first occurrence of ``-p <config>``, or ``-p=<config>`` and return the value of
    ``<config>`` from the given arguments.

    :param args: list of CLI arguments
    :returns: the value of ``-p``.
    """
    for i, current_arg in enumerate(args):
        if current_arg.startswith("-p="):
            return current_arg[3:]
        if current_arg == "-p":
            try:
                return args[i + 1]
            except IndexError:
                return None

    return None
