"""SQLAlchemy ORM models for workflow templates and running instances."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wealth_crm.db.base import Base, JSONType


class WorkflowTemplate(Base):
    """
    Reusable checklist of steps for a trigger (onboarding, annual review, ...).

    ``steps`` is a list of step dicts:
    ``{"id", "name", "description", "type", "order", "config", "depends_on"}``.
    Soft-deleted via ``deleted_at``.
    """

    __tablename__ = "workflow_templates"
    __table_args__ = (
        Index("idx_workflow_templates_trigger_status", "trigger", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trigger: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default="draft", server_default=text("'draft'"), nullable=False
    )
    trigger_conditions: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    steps: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    estimated_duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tags: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    is_default: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE"), nullable=False
    )

    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    instances: Mapped[list["WorkflowInstance"]] = relationship(back_populates="template")


class WorkflowInstance(Base):
    """
    A run of a template against a household/person/prospect/account.

    ``step_statuses`` maps step id to
    ``{"status", "started_at", "completed_at", "completed_by", "notes"}``.
    """

    __tablename__ = "workflow_instances"
    __table_args__ = (
        Index("idx_workflow_instances_status", "status"),
        Index("idx_workflow_instances_household", "household_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflow_templates.id"), nullable=False
    )
    household_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    person_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    prospect_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    account_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default="running", server_default=text("'running'"), nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    current_step: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    step_statuses: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    triggered_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    trigger_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    extra_data: Mapped[dict] = mapped_column("metadata", JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    template: Mapped[WorkflowTemplate] = relationship(back_populates="instances")
