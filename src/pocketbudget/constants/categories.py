"""
Centralized category, income-item and marker definitions.
These seed a fresh budget and fill in whatever a loaded document is missing.
"""

# Sentinel category for items no rule or mapping recognizes
UNCATEGORIZED = "uncategorized"

# Fixed categories assigned by special-case rules, regardless of mappings
DEPOSIT_CATEGORY = "bank savings deposit"
NATIONAL_INSURANCE_CATEGORY = "national insurance"

DEFAULT_CATEGORIES = [
    "Education & Culture",
    "Medical Care",
    "Household",
    "Taxes & Insurance",
    "Travel",
    "Clothing",
    "Salary",
    "Bank Fees",
    "Miscellaneous",
    DEPOSIT_CATEGORY,
    NATIONAL_INSURANCE_CATEGORY,
]

# Catch-all column for annual grids
MISC_CATEGORY = "Miscellaneous"

DEFAULT_INCOME_ITEMS = [
    "Salary",
    "National Insurance",
    "Work Grant",
    "משכורת",
    "ביטוח לאומי",
    "מענק עבודה",
]

# (item, category, include in monthly expenses)
DEFAULT_MAPPINGS = [
    ("Salary", "Salary", False),
    ("Work Grant", "Salary", False),
    ("Super Market", "Household", True),
    ("Grocery", "Household", True),
    ("Pharmacy", "Medical Care", True),
    ("Doctor", "Medical Care", True),
    ("Dentist", "Medical Care", True),
    ("Taxi", "Travel", True),
    ("Bus Pass", "Travel", True),
    ("Bank Fee", "Bank Fees", True),
    ("Clothing", "Clothing", True),
    ("Haircut", "Clothing", True),
    ("Books", "Education & Culture", True),
    ("Course", "Education & Culture", True),
    ("Cinema", "Education & Culture", True),
    ("Insurance", "Taxes & Insurance", False),
    ("משכורת", "Salary", False),
    ("סופרסל", "Household", True),
    ("רמי לוי", "Household", True),
    ("בית מרקחת", "Medical Care", True),
    ("עמלת בנק", "Bank Fees", True),
]

# Substring markers; matching is case-insensitive
DEPOSIT_MARKERS = ("פיקדון", "פקדון", "deposit")
DEPOSIT_WITHDRAWAL_MARKERS = (
    "משיכה",
    "פדיון",
    "ריבית",
    "withdrawal",
    "redemption",
    "interest",
)
DEPOSIT_PLACEMENT_MARKERS = ("הפקדה", "placement")
NATIONAL_INSURANCE_TOKENS = ("ביטוח לאומי", "national insurance")

# Quote-like characters stripped from item text
ITEM_QUOTE_CHARS = ('"', "׳", "״")

# Exact bracketed placeholders diverted to imported check items
CHECK_PLACEHOLDERS = ("(צ'יק)", "(check)")
# Substrings that flag a transaction as paid by check
CHECK_MARKERS = ("צ'יק", "check")
CHECK_ITEM_LABEL = "Checks"

COLOR_PALETTE = [
    "red",
    "orange",
    "yellow",
    "green",
    "blue",
    "purple",
    "pink",
    "gray",
]
CHECK_ITEM_COLOR = "purple"
