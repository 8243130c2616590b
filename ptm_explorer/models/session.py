from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ptm_explorer.core.database import Base
from ptm_explorer.domain import SESSION_STATUS


class AnalysisSessionModel(Base):
    __tablename__ = "analysis_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(*SESSION_STATUS, name="session_status"), default="processing"
    )
    total_proteins: Mapped[int] = mapped_column(Integer, default=0)
    total_ptm_sites: Mapped[int] = mapped_column(Integer, default=0)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    proteins: Mapped[list["ProteinModel"]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )
    observations: Mapped[list["PtmObservationModel"]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )
