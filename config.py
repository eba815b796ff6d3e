import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file)
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./invoicing.db")
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")

    # Invoicing run
    INVOICING_ENABLED = bool(data.get("INVOICING_ENABLED", True))
    INVOICING_MAX_CONCURRENT_WORKERS = data.get("INVOICING_MAX_CONCURRENT_WORKERS", 4)
    INVOICING_INTERVAL_SECONDS = data.get("INVOICING_INTERVAL_SECONDS", 86400)  # Daily
    INVOICING_NOTIFICATION_WEBHOOK = data.get("INVOICING_NOTIFICATION_WEBHOOK", None)
    FINAL_INVOICE_DAY = data.get("FINAL_INVOICE_DAY", 3)  # Day of next month rows become final

    # Invoice layout
    INVOICE_MAX_LINE_ITEMS = data.get("INVOICE_MAX_LINE_ITEMS", 30)
    INVOICE_MAX_ROWS = data.get("INVOICE_MAX_ROWS", 500)
    INVOICE_MIN_TOTAL = data.get("INVOICE_MIN_TOTAL", "0.01")
    LOW_COST_THRESHOLD = data.get("LOW_COST_THRESHOLD", "1")  # USD
    NON_FINAL_EXPIRE_DAYS = data.get("NON_FINAL_EXPIRE_DAYS", 45)

    # Contract charges (PLPS)
    PLPS_SKU_ID = data.get("PLPS_SKU_ID", "plps-charge")
    PLPS_DEFAULT_CHARGE_PERCENT = data.get("PLPS_DEFAULT_CHARGE_PERCENT", "3")
