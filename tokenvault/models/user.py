from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4
from datetime import datetime

from tokenvault.core.tokens import Principal
from tokenvault.models.session_record import utcnow


class User(SQLModel, table=True):
    user_id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = ""
    email: str = Field(index=True, unique=True)
    password_hash: str
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    __tablename__ = "user"

    def to_principal(self) -> Principal:
        return Principal(id=self.user_id, identity=self.email)
