"""Choice lists shared across apps"""

PRODUCT_TYPE_LMR = 'LMR'
PRODUCT_TYPE_FFV = 'FFV'

PRODUCT_TYPE_CHOICES = [
    (PRODUCT_TYPE_LMR, 'LMR'),
    (PRODUCT_TYPE_FFV, 'FFV'),
]

PRODUCT_TYPES = [value for value, _ in PRODUCT_TYPE_CHOICES]

# Application roles, stored as Django groups
ROLE_ADMINISTRATOR = 'Administrator'
ROLE_PLANNER = 'LMRPlanner'
ROLE_SUPPLIER = 'Supplier'
ROLE_CUSTOMER = 'Customer'

ROLES = [ROLE_ADMINISTRATOR, ROLE_PLANNER, ROLE_SUPPLIER, ROLE_CUSTOMER]
