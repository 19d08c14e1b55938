"""
Runtime configuration, read once from the environment.

  DECK_EMBED_MODEL         sentence-transformers model id
  DECK_CLASSIFY_THRESHOLD  minimum similarity for an area match
  DECK_VIEWPORT_WIDTH      default viewport width  (CSS px)
  DECK_VIEWPORT_HEIGHT     default viewport height (CSS px)
  DECK_PIXEL_RATIO         default device pixel ratio
  DECK_LOG_LEVEL           log level used by the API service
"""

import os


MODEL_NAME = os.getenv("DECK_EMBED_MODEL", "sentence-transformers/all-MiniLM-L6-v2")

CLASSIFY_THRESHOLD = float(os.getenv("DECK_CLASSIFY_THRESHOLD", "0.3"))
MAX_MATCHES = 3

VIEWPORT_WIDTH = int(os.getenv("DECK_VIEWPORT_WIDTH", "800"))
VIEWPORT_HEIGHT = int(os.getenv("DECK_VIEWPORT_HEIGHT", "600"))
PIXEL_RATIO = float(os.getenv("DECK_PIXEL_RATIO", "1.0"))

LOG_LEVEL = os.getenv("DECK_LOG_LEVEL", "INFO").upper()
