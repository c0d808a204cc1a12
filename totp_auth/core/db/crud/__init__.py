from totp_auth.core.db.crud.base import BaseDB
from totp_auth.core.db.crud.totp import TOTPRecordDB

# Global CRUD instances - use these instead of creating new instances
totp_record_db = TOTPRecordDB()

__all__ = [
    # Classes (for type hints and subclassing)
    "BaseDB",
    "TOTPRecordDB",
    # Global instances (for actual usage)
    "totp_record_db",
]
