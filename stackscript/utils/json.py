import json
from datetime import date, datetime

from stackscript.utils.strings import to_str


class CustomEncoder(json.JSONEncoder):
    """Helper class to convert JSON documents with datetime, tuples, or bytes."""

    def default(self, o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, bytes):
            return to_str(o)
        if isinstance(o, (set, frozenset)):
            return sorted(o)
        return super(CustomEncoder, self).default(o)
