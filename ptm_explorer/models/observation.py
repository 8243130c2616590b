from typing import Optional

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ptm_explorer.core.database import Base


class PtmObservationModel(Base):
    """One accepted row of an uploaded PTM site report."""

    __tablename__ = "ptm_observations"
    __table_args__ = (Index("ix_observation_session_protein", "session_id", "uniprot_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("analysis_sessions.id", ondelete="CASCADE"), nullable=False
    )
    uniprot_id: Mapped[str] = mapped_column(String(64), nullable=False)
    site_location: Mapped[int] = mapped_column(Integer, nullable=False)
    site_aa: Mapped[str] = mapped_column(String(8), default="")
    modification_type: Mapped[str] = mapped_column(String(255), nullable=False)
    site_probability: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    quantity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    flanking_region: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    multiplicity: Mapped[int] = mapped_column(Integer, default=1)
    experiment_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # "condition" is reserved in MySQL
    condition: Mapped[Optional[str]] = mapped_column("condition_label", String(255), nullable=True)

    session: Mapped["AnalysisSessionModel"] = relationship(back_populates="observations")
