"""
Automation flow models
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from rsvp_manager.core.db import Base
from rsvp_manager.models.enums import AutomationTrigger, AutomationAction, FlowStatus, ExecutionStatus

class AutomationFlow(Base):
    __tablename__ = "automation_flows"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("wedding_events.id"), nullable=False)
    name = Column(String(255), nullable=False)
    trigger = Column(Enum(AutomationTrigger), nullable=False)
    action = Column(Enum(AutomationAction), nullable=False)
    status = Column(Enum(FlowStatus), default=FlowStatus.DRAFT, nullable=False)
    delay_hours = Column(Integer)
    custom_message = Column(Text)
    template_style = Column(String(20))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event = relationship("WeddingEvent", back_populates="automation_flows")
    executions = relationship("AutomationFlowExecution", back_populates="flow", cascade="all, delete-orphan")

class AutomationFlowExecution(Base):
    __tablename__ = "automation_flow_executions"

    id = Column(Integer, primary_key=True, index=True)
    flow_id = Column(Integer, ForeignKey("automation_flows.id"), nullable=False)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False)
    status = Column(Enum(ExecutionStatus), default=ExecutionStatus.PENDING, nullable=False)
    scheduled_for = Column(DateTime, index=True)
    executed_at = Column(DateTime)
    error_message = Column(Text)
    retry_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    flow = relationship("AutomationFlow", back_populates="executions")
    guest = relationship("Guest")

    __table_args__ = (UniqueConstraint("flow_id", "guest_id", name="uq_execution_flow_guest"),)
