# Field whitelists for the three visibility modes

# Fields that are always safe to return
BASIC_FIELDS = (
    "name",
    "email",
    "age",
    "phone",
    "address",
    "createdAt",
    "updatedAt",
)

# Admin view adds the normalized email and soft-delete state
ADMIN_FIELDS = (
    "name",
    "email",
    "emailLower",
    "age",
    "phone",
    "address",
    "isDeleted",
    "deletedAt",
    "deletedBy",
    "deleteReason",
    "createdAt",
    "updatedAt",
)

# Never returned outside the admin view
HIDDEN_FIELDS = (
    "__v",
    "isDeleted",
    "deletedAt",
    "deletedBy",
    "deleteReason",
    "emailLower",
)

# Internal version marker, hidden even from admins
VERSION_FIELD = "__v"

# Union accepted for custom projections, in declaration order
CUSTOM_ALLOWED_FIELDS = tuple(dict.fromkeys(BASIC_FIELDS + ADMIN_FIELDS))

VISIBILITY_MODES = ("basic", "admin", "custom")

# Paging limits
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DEFAULT_CURSOR_LIMIT = 20
MAX_CURSOR_LIMIT = 100
DEFAULT_SORT = "createdAt:-1"

# Bulk upsert batch bounds
MIN_BULK_BATCH = 1
MAX_BULK_BATCH = 100

# Stats facets
AGE_BUCKET_BOUNDARIES = [0, 18, 25, 35, 50, 120]
AGE_BUCKET_OVERFLOW = "Others"
CREATED_MONTH_FORMAT = "%Y-%m"
