from datetime import datetime, timezone
from typing import Optional, Any, Union
import logging
from sqlalchemy.exc import SQLAlchemyError
from .database import SessionLocal
from . import models


class ComplianceLogger:
	"""Stores audit events (mutations, issues, logins, public verifications) in the AuditLog table.

	Events are written through a dedicated session, so callers log only after
	their own transaction has been committed.
	"""

	def __init__(self):
		self.logger = logging.getLogger('compliance')

	def log_event(
		self,
		user_id: Optional[int],
		action: Union[str, models.AuditAction],
		category: str,
		details: Optional[str] = None,
		severity: str = 'INFO',
		resource_type: Optional[str] = None,
		resource_id: Optional[Union[int, str]] = None,
		ip_address: Optional[str] = None,
		**_: Any
	) -> None:
		"""Logs an event into the AuditLog table directly via SQLAlchemy.
		Accepts and ignores extra kwargs so call sites can pass request context freely.
		"""
		if isinstance(action, models.AuditAction):
			action_enum = action
		else:
			action_upper = (action or '').upper()
			if action_upper in models.AuditAction.__members__:
				action_enum = models.AuditAction[action_upper]
			elif 'DENIED' in action_upper:
				action_enum = models.AuditAction.ACCESS_DENIED
			else:
				action_enum = models.AuditAction.READ

		db = SessionLocal()
		try:
			db_log = models.AuditLog(
				user_id=user_id,
				action=action_enum,
				category=category or 'GENERAL',
				severity=severity or 'INFO',
				resource_type=resource_type,
				resource_id=str(resource_id) if resource_id is not None else None,
				details=details,
				ip_address=ip_address,
				timestamp=datetime.now(timezone.utc),
			)
			db.add(db_log)
			db.commit()
		except SQLAlchemyError as e:
			db.rollback()
			self.logger.error(f"Failed to save compliance log to DB: {e}")
		finally:
			db.close()


# Singleton instance for global import
compliance_logger = ComplianceLogger()
