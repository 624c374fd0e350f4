from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    stage: Mapped[str] = mapped_column(String(100), nullable=False)
    funding_stage: Mapped[str] = mapped_column(String(100), nullable=False)
    categories_json: Mapped[str] = mapped_column(Text, default="[]")
    analysis_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # {summary, partnersCount, isDemo}
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    recommendations: Mapped[list[PartnerRecommendation]] = relationship(
        "PartnerRecommendation", back_populates="project", cascade="all, delete-orphan",
        order_by="PartnerRecommendation.id",
    )


class PartnerRecommendation(Base):
    __tablename__ = "partner_recommendations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    reasoning: Mapped[str] = mapped_column(Text, default="")
    match_score: Mapped[int] = mapped_column(Integer, nullable=False)
    mission_score: Mapped[int] = mapped_column(Integer, nullable=False)
    technical_score: Mapped[int] = mapped_column(Integer, nullable=False)
    strategic_score: Mapped[int] = mapped_column(Integer, nullable=False)
    community: Mapped[str | None] = mapped_column(String(200), nullable=True)
    tvl: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    project: Mapped[Project] = relationship("Project", back_populates="recommendations")
