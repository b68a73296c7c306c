from stackscript.version import __version__

name = "stackscript"

__all__ = ["__version__"]
