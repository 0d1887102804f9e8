"""Default configuration values and constants for dicom-series-viewer."""

# Viewport defaults
MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
ZOOM_STEP = 1.2
WHEEL_ZOOM_IN = 1.1
WHEEL_ZOOM_OUT = 0.9
MIN_WINDOW_WIDTH = 1.0

# Cine playback defaults
MIN_FPS = 1
MAX_FPS = 30
DEFAULT_FPS = 5

# Performance defaults
DEFAULT_MAX_WORKERS = 4
DEFAULT_FETCH_TIMEOUT = 30.0

# CLI defaults
DEFAULT_IMAGE_QUALITY = 85
DEFAULT_CINE_FRAME_COUNT = 0  # 0 means one full loop through the series
