from sqlalchemy import String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from uuid import uuid4
import enum
from cotamarket.core.database import Base, get_enum_values


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class User(Base):
    """Individual person (PF) account. Staff members carry the ADMIN role."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column("full_name", String(150), nullable=False)
    cpf: Mapped[str] = mapped_column("cpf", String(11), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column("email", String(150), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column("hashed_password", String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        "role",
        Enum(UserRole, values_callable=get_enum_values),
        nullable=False,
        default=UserRole.USER
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.ADMIN


class Company(Base):
    """Legal entity (PJ) controlled by a user, eligible to buy cotas in its own name."""

    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    legal_name: Mapped[str] = mapped_column(String(200), nullable=False)
    cnpj: Mapped[str] = mapped_column(String(14), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc))
