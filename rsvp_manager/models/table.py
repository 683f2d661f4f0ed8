"""
Seating table models
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from rsvp_manager.core.db import Base

class WeddingTable(Base):
    __tablename__ = "wedding_tables"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("wedding_events.id"), nullable=False)
    name = Column(String(100), nullable=False)
    capacity = Column(Integer, default=10, nullable=False)
    shape = Column(String(20), default="circle", nullable=False)  # square, circle, rectangle, oval
    seating_arrangement = Column(String(20), default="even", nullable=False)

    # Floor plan geometry
    position_x = Column(Float, default=0, nullable=False)
    position_y = Column(Float, default=0, nullable=False)
    width = Column(Float, default=100, nullable=False)
    height = Column(Float, default=100, nullable=False)
    rotation = Column(Float, default=0, nullable=False)
    color = Column(String(20))

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    event = relationship("WeddingEvent", back_populates="tables")
    assignments = relationship("TableAssignment", back_populates="table", cascade="all, delete-orphan")

class TableAssignment(Base):
    __tablename__ = "table_assignments"

    id = Column(Integer, primary_key=True, index=True)
    table_id = Column(Integer, ForeignKey("wedding_tables.id"), nullable=False)
    guest_id = Column(Integer, ForeignKey("guests.id"), unique=True, nullable=False)
    seat_number = Column(Integer)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    table = relationship("WeddingTable", back_populates="assignments")
    guest = relationship("Guest", back_populates="table_assignment")
