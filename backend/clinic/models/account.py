from sqlalchemy import Column, String, DateTime
from clinic.database import Base, utcnow


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True)  # UUID string
    email = Column(String(320), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default="doctor")  # "doctor" | "user"
    last_login = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    # No password: accounts authenticate with emailed one-time codes
