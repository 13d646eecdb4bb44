from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint, func

from database import Base

ROLE_ADMIN = "admin"


class UserRole(Base):
    """Role assignment; sync notifications go to every user holding ROLE_ADMIN."""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    role = Column(String(32), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
