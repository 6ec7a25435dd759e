from sqlalchemy import Column, DateTime, Index, String

from multiblog.database import Base
from multiblog.utils.clock import utcnow


class RegistrationSession(Base):
    """Provisional signup state; never referenced by committed data."""

    __tablename__ = "registration_sessions"

    id = Column(String(36), primary_key=True)
    email = Column(String(320), nullable=True)
    blog_name = Column(String(200), nullable=True)
    subdomain = Column(String(63), nullable=True)  # hint only, not a hold
    theme = Column(String(50), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("idx_registration_expires_at", "expires_at"),)

    def is_expired(self, now) -> bool:
        return now > self.expires_at
