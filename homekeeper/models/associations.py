"""
Association tables for many-to-many relationships.
Kept separate to avoid circular imports between models.
"""
from sqlalchemy import Column, Integer, Table, ForeignKey, DateTime
from homekeeper.models.base import Base, utcnow

# Membership side of the household <-> user relation. The role lives on
# User.household_roles; the composite primary key rejects duplicate members.
household_members = Table(
    'household_members',
    Base.metadata,
    Column('household_id', Integer, ForeignKey('households.id', ondelete='CASCADE'), primary_key=True),
    Column('user_id', Integer, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    Column('joined_at', DateTime(timezone=True), default=utcnow, nullable=False)
)
