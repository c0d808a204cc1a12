from totp_auth.core.db.models.totp import TOTPRecordModel

__all__ = ["TOTPRecordModel"]
