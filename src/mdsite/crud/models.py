"""Build cache table: one row per output file written by a previous build"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, String, Text
from sqlmodel import Field, SQLModel


class BuildOutput(SQLModel, table=True):
    """The last known content hash of a rendered output path"""
    __tablename__ = "build_outputs"
    path: str = Field(primary_key=True, description="Output path relative to the output directory")
    hash: str = Field(..., sa_column=Column(String(64), nullable=False))
    source_path: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
    updated_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
