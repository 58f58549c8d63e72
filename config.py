"""
Central configuration for the identity-card engine.

Keep runtime-safe (no secrets).
"""

# Physical card sizes (inches)
CR80_LONG_IN = 3.375
CR80_SHORT_IN = 2.125
LANDSCAPE_SIZE_IN = (CR80_LONG_IN, CR80_SHORT_IN)
PORTRAIT_SIZE_IN = (CR80_SHORT_IN, CR80_LONG_IN)

# Height / width of the tall "exact" front design and of a CR80 wallet card in portrait
BASE_ASPECT = 1.42
WALLET_ASPECT = CR80_LONG_IN / CR80_SHORT_IN  # ~1.588
ASPECT_EPSILON = 0.001

# Band defaults (inches): top title, legal notice, footer. The body is derived.
DEFAULT_BANDS_IN = {
    "landscape": (0.24, 0.24, 0.1806),
    "portrait": (0.36, 0.42, 0.30),
    "exact": (0.26, 0.46, 0.22),
}

# Render scale: chrome is designed at 720px and enlarged above the threshold
DESIGN_WIDTH_PX = 720
WIDE_SCALE_THRESHOLD_PX = 860

# Preview / export
PREVIEW_WIDTH = 360
DEFAULT_EXPORT_WIDTH = 1440
MIN_EXPORT_WIDTH = 300
DEFAULT_DPI = 600
EXPORT_BACKGROUND = (243, 244, 246)  # #F3F4F6

# Auto-fit justifier
FIT_DECAY = 0.96
FIT_GROWTH = 1.015
FIT_GROWTH_CEILING = 0.94
FIT_TOLERANCE_PX = 0.5
FIT_MIN_SCALE = 0.70
FIT_NEGATIVE_SPACING_CAP = -0.8
FIT_POSITIVE_SPACING_FLOOR = 0.15
FIT_POSITIVE_SPACING_CAP = 6.0
FIT_MAX_ITERATIONS = 6

# Photo & stamp
PHOTO_ASPECT = 0.778  # width / height, passport style
PHOTO_BODY_PROPORTION = 0.52
FALLBACK_PHOTO_HEIGHT_PX = 120
STAMP_FACTOR_RANGES = {
    "overlap": (0.6, 1.0),
    "above": (1.2, 2.0),
    "below": (1.2, 2.0),
}
STAMP_DEFAULT_FACTORS = {"overlap": 0.62, "above": 1.4, "below": 1.4}
STAMP_ABOVE_BODY_SHARE = 0.2  # room kept above the photo for an "above" badge

# Card colours
RED = (254, 0, 2)  # #FE0002
BLUE = (23, 0, 122)  # #17007A
CARD_BACKGROUND = (243, 244, 246)
CARD_BORDER = (229, 231, 235)
TEXT_DARK = (17, 24, 39)
PLACEHOLDER_FILL = (212, 212, 216)

# Batch CLI / UI
MAX_INDIVIDUAL_DOWNLOADS = 10  # <= this: individual downloads; > this: ZIP download
ZIP_SPOOL_MAX_BYTES = 25 * 1024 * 1024  # spill ZIP to disk after ~25MB
