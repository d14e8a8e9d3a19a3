import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "cookie-path-filter")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Inline JSON takes precedence over the file variant
COOKIE_PATH_REPLACEMENTS = os.environ.get("COOKIE_PATH_REPLACEMENTS", "")
COOKIE_PATH_REPLACEMENTS_FILE = os.environ.get("COOKIE_PATH_REPLACEMENTS_FILE", "")
COOKIE_PATH_FILTER_NAME = os.environ.get("COOKIE_PATH_FILTER_NAME", SERVICE_NAME)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

# "module:attribute" of the ASGI app mounted behind the filter by the server
DOWNSTREAM_APP = os.environ.get("DOWNSTREAM_APP", "")
