"""Protocol constants.

Keep these in one place to avoid stringly-typed topic handling.
"""

import enum


class Command(str, enum.Enum):
    """ Operations a remote worker can be asked to perform. The value is
        also the leading segment of the command topic.
    """

    VERIFY = "verify"
    UPLOAD = "upload"


# Topic segments.

SEPARATOR = "/"
RESPONSE = "response"
RESULT = "result"

# Result kinds.

SUCCESS = "success"
FAILURE = "failure"

# The worker compiles whatever it receives under this file name.

DEFAULT_SKETCH = "sketch.ino"
