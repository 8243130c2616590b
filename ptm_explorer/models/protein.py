from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ptm_explorer.core.database import Base
from ptm_explorer.domain import DEFAULT_ORGANISM


class ProteinModel(Base):
    __tablename__ = "proteins"
    __table_args__ = (UniqueConstraint("session_id", "uniprot_id", name="uq_protein_session"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("analysis_sessions.id", ondelete="CASCADE"), nullable=False
    )
    uniprot_id: Mapped[str] = mapped_column(String(64), nullable=False)
    protein_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    gene_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    organism: Mapped[Optional[str]] = mapped_column(String(255), default=DEFAULT_ORGANISM)

    # Filled by UniProt enrichment
    sequence: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sequence_length: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    session: Mapped["AnalysisSessionModel"] = relationship(back_populates="proteins")
