from typing import Optional

from sqlalchemy import JSON, Boolean, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ptm_explorer.core.database import Base


class KnownPtmModel(Base):
    """Reference PTM annotation. Shared across sessions, keyed by accession."""

    __tablename__ = "known_ptms"
    __table_args__ = (
        UniqueConstraint("uniprot_id", "site_location", "modification_type", name="uq_known_ptm_site"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uniprot_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    site_location: Mapped[int] = mapped_column(Integer, nullable=False)
    modification_type: Mapped[str] = mapped_column(String(255), nullable=False)
    site_aa: Mapped[str] = mapped_column(String(8), default="")
    pubmed_ids: Mapped[list] = mapped_column(JSON, default=list)
    is_direct_site: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(100), default="UniProt")
