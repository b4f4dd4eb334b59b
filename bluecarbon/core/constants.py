"""
Registry constants shared by handlers and routes.
"""

# Storage buckets
PROJECT_DOCUMENTS_BUCKET = "project-documents"
MRV_DATA_BUCKET = "mrv-data"

# File extension -> MRV data source
DATA_SOURCE_BY_EXTENSION = {
    "csv": "csv",
    "xlsx": "excel",
    "xls": "excel",
}

# CSV columns summed into carbon_measurement when no explicit value is given
CARBON_MEASUREMENT_COLUMNS = ("carbon_measurement", "carbon_tonnes")

# Credit amounts are tonnes CO2e; balances are rounded to this many decimals
AMOUNT_DECIMALS = 6

# Serial numbers carry 16 hex characters of uuid4 entropy
SERIAL_ENTROPY_CHARS = 16
SERIAL_GENERATION_ATTEMPTS = 3
