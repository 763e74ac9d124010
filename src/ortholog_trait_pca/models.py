"""SQLAlchemy models describing the default expression schema."""
from __future__ import annotations

from sqlalchemy import Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class ProbeAnnotation(Base):
    __tablename__ = "probe_annotation"

    probe_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    gene_symbol: Mapped[str | None] = mapped_column(String(64))

    values: Mapped[list["ExpressionValue"]] = relationship(back_populates="probe")


class ExpressionValue(Base):
    __tablename__ = "expression_value"
    __table_args__ = (
        Index("ix_expression_value_sample", "sample_id"),
        Index("ix_expression_value_probe", "probe_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sample_id: Mapped[str] = mapped_column(String(64), nullable=False)
    probe_id: Mapped[str] = mapped_column(
        ForeignKey("probe_annotation.probe_id"), nullable=False
    )
    expression_value: Mapped[float | None] = mapped_column(Float)

    probe: Mapped[ProbeAnnotation] = relationship(back_populates="values")


__all__ = ["Base", "ExpressionValue", "ProbeAnnotation"]
