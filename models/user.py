from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String

from models.base_model import Base, BaseModel
from models.roles import Role


class User(BaseModel, Base):
    __tablename__ = "users"
    name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(15), nullable=False)
    branch = Column(String(100), nullable=True)
    role = Column(
        Enum(Role, name="user_role", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.STUDENT,
    )
    is_verified = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    login_count = Column(Integer, nullable=False, default=0)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<User {self.id} role={self.role}>"
