from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel

# logs.type value for billable completion requests.
LOG_TYPE_CONSUME = 2


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(default="", index=True)
    group: str = Field(default="default")


class Token(SQLModel, table=True):
    __tablename__ = "tokens"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    name: str = Field(default="", index=True)
    # JSON text, e.g. {"billing_tag": "team-a"}
    setting: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    deleted_at: Optional[datetime] = Field(default=None, index=True)


class UsageLog(SQLModel, table=True):
    __tablename__ = "logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    token_name: str = Field(default="", index=True)
    model_name: str = Field(default="", index=True)
    type: int = Field(default=LOG_TYPE_CONSUME, index=True)

    quota: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    request_time: int = 0

    created_at: int = Field(index=True)
