"""
Database manager for the inquiry responder

Durable store for inquiry records, their lifecycle status and an audit log of
every status transition. Every mutation commits before returning.
"""
import logging
from datetime import datetime
from typing import Optional, List, Dict
from sqlalchemy import create_engine, Column, Integer, String, Text, DateTime, func
from sqlalchemy import text as sql_text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from inquiry_responder.config import Settings
from inquiry_responder.errors import InvalidStatusTransition
from inquiry_responder.models import InquiryCreate, InquiryStatus

logger = logging.getLogger(__name__)

Base = declarative_base()

# Legal status transitions of the inquiry state machine
ALLOWED_TRANSITIONS = {
    InquiryStatus.PENDING: {InquiryStatus.PROCESSING},
    InquiryStatus.PROCESSING: {InquiryStatus.SENT, InquiryStatus.PENDING, InquiryStatus.FAILED},
    InquiryStatus.FAILED: {InquiryStatus.PROCESSING},
    InquiryStatus.SENT: set(),
}


class InquiryDB(Base):
    """SQLAlchemy model for inquiries table"""
    __tablename__ = 'inquiries'

    id = Column(Integer, primary_key=True)
    external_id = Column(String(255), unique=True, nullable=False, index=True)
    tenant_name = Column(String(255), nullable=False)
    tenant_email = Column(String(255))
    tenant_message = Column(Text, nullable=False)
    generated_response = Column(Text)
    status = Column(String(20), nullable=False, default=InquiryStatus.PENDING.value, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    processed_at = Column(DateTime)
    error = Column(Text)
    conversation_reference = Column(Text)


class InquiryAuditLogDB(Base):
    """SQLAlchemy model for inquiry_audit_log table"""
    __tablename__ = 'inquiry_audit_log'

    id = Column(Integer, primary_key=True)
    external_id = Column(String(255), nullable=False, index=True)
    from_status = Column(String(20))
    to_status = Column(String(20), nullable=False)
    reason = Column(Text)
    error_details = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)


class DatabaseManager:
    """Manage database operations for inquiry records"""

    def __init__(self, database_url: str):
        """
        Initialize database manager and create tables if missing.

        Args:
            database_url: SQLAlchemy connection string (SQLite or PostgreSQL)
        """
        if database_url.startswith("sqlite"):
            engine_kwargs = {"connect_args": {"check_same_thread": False}}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs = {"pool_size": 10, "max_overflow": 20, "pool_pre_ping": True}

        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session"""
        return self.SessionLocal()

    def insert(self, inquiry: InquiryCreate) -> bool:
        """
        Insert a new inquiry record.

        Args:
            inquiry: Inquiry creation data

        Returns:
            True if inserted, False if the external_id already exists
        """
        with self.get_session() as session:
            db_inquiry = InquiryDB(
                external_id=inquiry.external_id,
                tenant_name=inquiry.tenant_name,
                tenant_email=inquiry.tenant_email,
                tenant_message=inquiry.tenant_message,
                status=inquiry.status.value,
                conversation_reference=inquiry.conversation_reference,
            )
            session.add(db_inquiry)
            try:
                session.flush()
            except IntegrityError:
                session.rollback()
                logger.warning(f"Inquiry {inquiry.external_id} already stored, insert ignored")
                return False

            self._log_transition(
                session,
                inquiry.external_id,
                None,
                inquiry.status.value,
                "Inquiry created"
            )
            session.commit()
            return True

    def exists(self, external_id: str) -> bool:
        """Check if an inquiry record exists"""
        with self.get_session() as session:
            return session.query(InquiryDB.id).filter_by(external_id=external_id).first() is not None

    def get(self, external_id: str) -> Optional[InquiryDB]:
        """
        Get inquiry by external ID.

        Args:
            external_id: Mail provider message ID

        Returns:
            Inquiry record or None if not found
        """
        with self.get_session() as session:
            return session.query(InquiryDB).filter_by(external_id=external_id).first()

    def update_status(
        self,
        external_id: str,
        status: InquiryStatus,
        error: Optional[str] = None
    ) -> bool:
        """
        Move an inquiry to a new status.

        processed_at is stamped on every transition and error is overwritten
        (cleared when None).

        Args:
            external_id: Mail provider message ID
            status: Target status
            error: Failure reason, if any

        Returns:
            True if updated, False if the inquiry does not exist

        Raises:
            InvalidStatusTransition: If the transition is not part of the state machine
        """
        status = InquiryStatus(status)
        with self.get_session() as session:
            inquiry = session.query(InquiryDB).filter_by(external_id=external_id).first()
            if not inquiry:
                logger.warning(f"Cannot update status for unknown inquiry {external_id}")
                return False

            old_status = InquiryStatus(inquiry.status)
            if status not in ALLOWED_TRANSITIONS[old_status]:
                raise InvalidStatusTransition(external_id, old_status.value, status.value)

            inquiry.status = status.value
            inquiry.error = error
            inquiry.processed_at = datetime.utcnow()

            self._log_transition(
                session,
                external_id,
                old_status.value,
                status.value,
                "State transition",
                error
            )
            session.commit()
            logger.debug(f"Inquiry {external_id}: {old_status.value} -> {status.value}")
            return True

    def update_response(
        self,
        external_id: str,
        text: str,
        extracted: bool = False,
        conversation_reference: Optional[str] = None
    ) -> bool:
        """
        Store text produced by a pipeline stage.

        Args:
            external_id: Mail provider message ID
            text: Extracted tenant message (extracted=True) or generated reply
            extracted: Write to tenant_message instead of generated_response
            conversation_reference: Portal conversation handle to store alongside

        Returns:
            True if updated, False if the inquiry does not exist
        """
        with self.get_session() as session:
            inquiry = session.query(InquiryDB).filter_by(external_id=external_id).first()
            if not inquiry:
                logger.warning(f"Cannot update response for unknown inquiry {external_id}")
                return False

            if extracted:
                inquiry.tenant_message = text
            else:
                inquiry.generated_response = text
            if conversation_reference is not None:
                inquiry.conversation_reference = conversation_reference

            session.commit()
            return True

    def recent(self, limit: int = 10) -> List[InquiryDB]:
        """Get the most recently created inquiries, newest first"""
        with self.get_session() as session:
            return session.query(InquiryDB)\
                .order_by(InquiryDB.created_at.desc(), InquiryDB.id.desc())\
                .limit(limit)\
                .all()

    def by_status(self, status: InquiryStatus, limit: int = 100) -> List[InquiryDB]:
        """Get inquiries in a specific status, newest first"""
        with self.get_session() as session:
            return session.query(InquiryDB)\
                .filter_by(status=InquiryStatus(status).value)\
                .order_by(InquiryDB.created_at.desc(), InquiryDB.id.desc())\
                .limit(limit)\
                .all()

    def stats(self) -> Dict[str, int]:
        """
        Get inquiry statistics.

        Returns:
            Dictionary with total and per-status counts
        """
        with self.get_session() as session:
            rows = session.query(InquiryDB.status, func.count(InquiryDB.id))\
                .group_by(InquiryDB.status)\
                .all()

        counts = {status.value: 0 for status in InquiryStatus}
        for status, count in rows:
            counts[status] = count
        counts['total'] = sum(counts.values())
        return counts

    def audit_log(self, external_id: str) -> List[InquiryAuditLogDB]:
        """Get status transitions of an inquiry, oldest first"""
        with self.get_session() as session:
            return session.query(InquiryAuditLogDB)\
                .filter_by(external_id=external_id)\
                .order_by(InquiryAuditLogDB.created_at.asc(), InquiryAuditLogDB.id.asc())\
                .all()

    def ping(self) -> bool:
        """Check that the database answers a trivial query"""
        try:
            with self.get_session() as session:
                session.execute(sql_text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self) -> None:
        """Dispose the connection pool"""
        self.engine.dispose()

    def _log_transition(self, session: Session, external_id: str, from_status: Optional[str],
                        to_status: str, reason: str, error: Optional[str] = None):
        """
        Log an inquiry status transition.

        Args:
            session: Database session
            external_id: Mail provider message ID
            from_status: Previous status
            to_status: New status
            reason: Reason for transition
            error: Error details if applicable
        """
        session.add(InquiryAuditLogDB(
            external_id=external_id,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            error_details=error
        ))


def get_database_manager(settings: Settings) -> DatabaseManager:
    """
    Get database manager instance from settings.

    Returns:
        DatabaseManager instance
    """
    return DatabaseManager(settings.database_url)
