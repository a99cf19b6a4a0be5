"""
Constants
Centralised storage for the unknown-function sentinel and trace mode tags.
"""
UNKNOWN_FUNCTION = "?"

# Trace modes, one per recovery path
MODE_NATIVE_TRACE = "native-trace"
MODE_ALT_TRACE = "alt-trace"
MODE_EMBEDDED_MULTILINE = "embedded-multiline"
MODE_CALLER_WALK = "caller-walk"
MODE_HANDLER_ONLY = "handler-only"
MODE_UNRECOVERABLE = "unrecoverable"
MODE_RESOURCE = "resource"

# Lines walked backwards when guessing an anonymous function's name
MAX_GUESS_LINES = 10

# Marker names of the entry points a caller walk leaves out
COMPUTE_FUNC_NAME = "ErrorWatch.computeStackTrace"
