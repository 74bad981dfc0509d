"""
System Constants and Enumerations

Constants shared by the product cache: key templates, field classification sets,
lock timings and stage labels for structured logging.

Author: Catalog Platform Team
Date: 2025-12-05
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Cache processing stages used as the `stage` field of log events.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    SPLIT_CACHE_LOOKUP = "2.1_SPLIT_CACHE_LOOKUP"
    STAMPEDE_GUARD = "2.2_STAMPEDE_GUARD"
    CACHE_POPULATION = "2.3_CACHE_POPULATION"
    CACHE_INVALIDATION = "2.4_CACHE_INVALIDATION"
    LIST_INVALIDATION = "2.5_LIST_INVALIDATION"
    BACKEND_FAILURE = "2.E_BACKEND_FAILURE"
    PRODUCT_SERVICE = "3.0_PRODUCT_SERVICE"
    QUEUE = "Q_JOB_QUEUE"


# ============================================================================
# Cache Key Templates
# ============================================================================

KEY_META = "{entity}:{id}:meta"
KEY_PRICE = "{entity}:{id}:price"
KEY_VARIANTS = "{entity}:{id}:variants"
KEY_DETAIL = "{entity}:{id}:detail"
KEY_LIST = "{entity}:list:{fingerprint}"
KEY_CURSOR = "{entity}:list:cursor:{fingerprint}"
KEY_LIST_PATTERN = "{entity}:list:*"
LOCK_SUFFIX = ":lock"

DEFAULT_ENTITY_PREFIX = "product"
HEALTH_CHECK_KEY = "health:check"

FINGERPRINT_SEPARATOR = "|"


# ============================================================================
# Stampede Guard
# ============================================================================

LOCK_VALUE = "1"
LOCK_TTL_SECONDS = 5
LOCK_WAIT_SECONDS = 0.1


# ============================================================================
# Product Field Classification
# ============================================================================

# Fields persisted in the meta entry (includes identity and timestamps)
META_SNAPSHOT_FIELDS = (
    "id",
    "name",
    "slug",
    "description",
    "currency_code",
    "category_id",
    "image_url",
    "created_at",
    "updated_at",
)

PRICE_SNAPSHOT_FIELDS = ("price", "discount_price", "is_active", "is_visible")

VARIANTS_FIELD = "variants"

# Fields whose update can be served by a targeted refresh
PRICE_FIELDS = frozenset(PRICE_SNAPSHOT_FIELDS)
META_FIELDS = frozenset(
    {"name", "slug", "description", "currency_code", "category_id", "image_url"}
)


# ============================================================================
# Job Types
# ============================================================================

JOB_UPLOAD_PRODUCT_IMAGE = "UPLOAD_PRODUCT_IMAGE"
DEAD_LETTER_SUFFIX = "-dlq"
