"""
Public holiday model.
"""

from sqlalchemy import Column, Date, String

from .base import BaseModel


class Holiday(BaseModel):
    """
    A public holiday in the civil zone.

    Holidays are shared reference data, not owned by a user; one row per
    calendar day.
    """

    __tablename__ = "holidays"

    date = Column(Date, nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False)

    def __repr__(self) -> str:
        return f"<Holiday date={self.date} name={self.name!r}>"
