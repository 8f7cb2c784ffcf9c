"""
Application constants to replace magic numbers throughout the codebase.
"""

# Push channel
CHANGE_HINT = "newData"
KEEPALIVE_PING = "ping"
KEEPALIVE_PONG = "pong"
SSE_QUEUE_SIZE = 16

# Webhook
REQUIRED_FIELDS = ("symbol", "price", "signal")
MISSING_FIELDS_MESSAGE = "Missing required fields"
ACCEPTED_MESSAGE = "Data received successfully"
MAX_SYMBOL_LENGTH = 32
MAX_SIGNAL_LENGTH = 32

# Producers send epoch milliseconds; smaller numbers are treated as seconds
EPOCH_MILLIS_THRESHOLD = 1e11

# Viewer
SCROLL_THRESHOLD = 100
DATE_HEADER_FORMAT = "%A, %d %B %Y"

# Reconnect backoff for the hint channel (seconds)
RECONNECT_DELAY_INITIAL = 1.0
RECONNECT_DELAY_MAX = 30.0
