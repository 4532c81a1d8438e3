"""SQLAlchemy database models."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    inspect,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    def to_dict(self) -> dict[str, Any]:
        """Column values keyed by column name."""
        return {
            attr.columns[0].name: getattr(self, attr.key)
            for attr in inspect(self).mapper.column_attrs
        }


# ---------------------------------------------------------------------------
# Users and authentication
# ---------------------------------------------------------------------------


class User(Base):
    """Users table - email/password and Google accounts."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    password_hash = Column(String(255), nullable=True)  # null for Google-only accounts

    # Email verification and password reset (6-digit codes)
    email_verified = Column(Boolean, default=False, nullable=False)
    verification_code = Column(String(6), nullable=True)
    verification_expiry = Column(DateTime, nullable=True)
    reset_code = Column(String(6), nullable=True)
    reset_expiry = Column(DateTime, nullable=True)

    is_admin = Column(Boolean, default=False, nullable=False)
    onboarding_completed = Column(Boolean, default=False, nullable=False)
    onboarding_step = Column(Integer, default=1, nullable=False)

    google_id = Column(String(255), nullable=True, unique=True)
    auth_provider = Column(String(20), default="email", nullable=False)  # email, google
    profile_image_url = Column(String(1000), nullable=True)

    # Lockout
    account_locked = Column(Boolean, default=False, nullable=False)
    locked_until = Column(DateTime, nullable=True)
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    last_login_ip = Column(String(45), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
    brands = relationship("Brand", back_populates="owner")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"


class UserSession(Base):
    """Server-side sessions backing the ``session_token`` cookie."""

    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    session_token = Column(String(64), nullable=False, unique=True, index=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_activity = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    revoke_reason = Column(String(50), nullable=True)  # logout, expired, security

    user = relationship("User", back_populates="sessions")

    __table_args__ = (Index("idx_user_sessions_user", "user_id"),)


class LoginAttempt(Base):
    """Every login attempt, used for lockout decisions."""

    __tablename__ = "login_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    success = Column(Boolean, nullable=False)
    failure_reason = Column(String(50), nullable=True)
    attempted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("idx_login_attempts_email_time", "email", "attempted_at"),)


class SecurityEvent(Base):
    """Audit trail of security-relevant events."""

    __tablename__ = "security_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    event_type = Column(String(50), nullable=False)
    severity = Column(String(20), default="info", nullable=False)  # info, warning, critical
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    event_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Brands and tracking configuration
# ---------------------------------------------------------------------------


class Brand(Base):
    """Brands table - one tracked brand per row."""

    __tablename__ = "brands"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False, unique=True)
    industry = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    tier = Column(String(20), default="free", nullable=False)  # free, starter, growth, enterprise
    brand_variations = Column(JSON, nullable=True)  # alternate spellings of the name
    core_topics = Column(JSON, nullable=True)
    primary_language = Column(String(10), default="en", nullable=False)

    visibility_score = Column(Integer, default=0, nullable=False)
    last_analysis = Column(DateTime, nullable=True)
    analysis_enabled = Column(Boolean, default=True, nullable=False)
    status = Column(String(20), default="active", nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    owner = relationship("User", back_populates="brands")
    competitors = relationship("Competitor", back_populates="brand", cascade="all, delete-orphan")
    topics = relationship("Topic", back_populates="brand", cascade="all, delete-orphan")
    prompts = relationship("Prompt", back_populates="brand", cascade="all, delete-orphan")
    llm_answers = relationship("LlmAnswer", back_populates="brand", cascade="all, delete-orphan")
    visibility_scores = relationship(
        "VisibilityScore", back_populates="brand", cascade="all, delete-orphan"
    )
    serp_samples = relationship("SerpSample", back_populates="brand", cascade="all, delete-orphan")
    prompt_runs = relationship("PromptRun", back_populates="brand", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Brand(id={self.id}, name='{self.name}', domain='{self.domain}')>"


class Competitor(Base):
    __tablename__ = "competitors"

    id = Column(String(36), primary_key=True, default=new_id)
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=False)
    is_tracked = Column(Boolean, default=True, nullable=False)
    visibility_score = Column(Integer, default=0, nullable=False)
    mentions = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    brand = relationship("Brand", back_populates="competitors")

    __table_args__ = (Index("idx_competitors_brand", "brand_id"),)


class Topic(Base):
    __tablename__ = "topics"

    id = Column(String(36), primary_key=True, default=new_id)
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    importance = Column(String(10), nullable=True)  # High, Medium, Low
    prompt_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    brand = relationship("Brand", back_populates="topics")
    prompts = relationship("Prompt", back_populates="topic")


class Prompt(Base):
    """Prompts sent to LLMs to measure brand visibility."""

    __tablename__ = "prompts"

    id = Column(String(36), primary_key=True, default=new_id)
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    topic_id = Column(String(36), ForeignKey("topics.id", ondelete="SET NULL"), nullable=True)
    text = Column(Text, nullable=False)
    category = Column(String(100), nullable=True)
    status = Column(String(20), default="active", nullable=False)  # active, paused, archived

    run_count = Column(Integer, default=0, nullable=False)
    last_checked = Column(DateTime, nullable=True)
    visibility_pct = Column(Float, nullable=True)
    avg_rank = Column(Float, nullable=True)
    is_brand_present = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    brand = relationship("Brand", back_populates="prompts")
    topic = relationship("Topic", back_populates="prompts")
    llm_answers = relationship("LlmAnswer", back_populates="prompt", cascade="all, delete-orphan")
    runs = relationship("PromptRun", back_populates="prompt", cascade="all, delete-orphan")
    serp_samples = relationship("SerpSample", back_populates="prompt", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_prompts_brand_status", "brand_id", "status"),)


# ---------------------------------------------------------------------------
# Sampling results
# ---------------------------------------------------------------------------


class LlmAnswer(Base):
    """Raw LLM responses, one per prompt per provider per run."""

    __tablename__ = "llm_answers"

    id = Column(String(36), primary_key=True, default=new_id)
    prompt_id = Column(String(36), ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False)
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    llm_provider = Column(String(50), nullable=False)
    llm_model = Column(String(100), nullable=False)
    raw_response = Column(Text, nullable=False)
    response_hash = Column(String(64), nullable=False)  # sha256 hex
    tokens_used = Column(Integer, default=0, nullable=False)
    cost = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    brand = relationship("Brand", back_populates="llm_answers")
    prompt = relationship("Prompt", back_populates="llm_answers")
    mentions = relationship("AnswerMention", back_populates="answer", cascade="all, delete-orphan")
    citations = relationship("AnswerCitation", back_populates="answer", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_llm_answers_brand_created", "brand_id", "created_at"),
        Index("idx_llm_answers_prompt_provider", "prompt_id", "llm_provider"),
    )


class PromptRun(Base):
    """One sampling run of a prompt across providers."""

    __tablename__ = "prompt_runs"

    id = Column(String(36), primary_key=True, default=new_id)
    prompt_id = Column(String(36), ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False)
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, running, completed, failed
    providers_used = Column(JSON, nullable=True)
    answers_generated = Column(Integer, default=0, nullable=False)
    tokens_used = Column(Integer, default=0, nullable=False)
    cost = Column(Float, default=0.0, nullable=False)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    brand = relationship("Brand", back_populates="prompt_runs")
    prompt = relationship("Prompt", back_populates="runs")


class AnswerMention(Base):
    __tablename__ = "answer_mentions"

    id = Column(String(36), primary_key=True, default=new_id)
    llm_answer_id = Column(
        String(36), ForeignKey("llm_answers.id", ondelete="CASCADE"), nullable=False
    )
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    competitor_id = Column(
        String(36), ForeignKey("competitors.id", ondelete="SET NULL"), nullable=True
    )
    entity_type = Column(String(20), nullable=False)  # brand, competitor
    entity_name = Column(String(255), nullable=False)
    position = Column(Integer, nullable=False)
    context = Column(Text, nullable=True)
    sentiment = Column(String(20), default="neutral", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    answer = relationship("LlmAnswer", back_populates="mentions")

    __table_args__ = (Index("idx_answer_mentions_brand_created", "brand_id", "created_at"),)


class AnswerCitation(Base):
    __tablename__ = "answer_citations"

    id = Column(String(36), primary_key=True, default=new_id)
    llm_answer_id = Column(
        String(36), ForeignKey("llm_answers.id", ondelete="CASCADE"), nullable=False
    )
    url = Column(Text, nullable=False)
    domain = Column(String(255), nullable=False)
    position = Column(Integer, nullable=False)
    citation_type = Column(String(20), default="inline", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    answer = relationship("LlmAnswer", back_populates="citations")


class VisibilityScore(Base):
    """Aggregated visibility per brand per period."""

    __tablename__ = "visibility_scores"

    id = Column(String(36), primary_key=True, default=new_id)
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    period = Column(String(10), nullable=False)  # day, week, month
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)

    overall_score = Column(Integer, nullable=False)
    mention_rate = Column(Float, default=0.0, nullable=False)
    avg_position = Column(Float, default=0.0, nullable=False)
    sentiment_score = Column(Float, default=0.0, nullable=False)
    trend = Column(String(10), default="stable", nullable=False)  # up, down, stable

    total_prompts = Column(Integer, default=0, nullable=False)
    total_mentions = Column(Integer, default=0, nullable=False)
    citation_count = Column(Integer, default=0, nullable=False)

    position_distribution = Column(JSON, nullable=True)
    sentiment_distribution = Column(JSON, nullable=True)
    provider_breakdown = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    brand = relationship("Brand", back_populates="visibility_scores")

    __table_args__ = (Index("idx_visibility_scores_brand_period", "brand_id", "period", "created_at"),)


class SerpSample(Base):
    """Google SERP snapshot for a prompt."""

    __tablename__ = "serp_samples"

    id = Column(String(36), primary_key=True, default=new_id)
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    prompt_id = Column(String(36), ForeignKey("prompts.id", ondelete="CASCADE"), nullable=True)
    query = Column(Text, nullable=False)
    location = Column(String(100), nullable=True)
    device = Column(String(20), default="desktop", nullable=False)
    total_results = Column(Integer, default=0, nullable=False)
    brand_position = Column(Integer, default=-1, nullable=False)  # -1 when absent
    brand_url = Column(Text, nullable=True)
    top_results = Column(JSON, nullable=True)
    sample_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    brand = relationship("Brand", back_populates="serp_samples")
    prompt = relationship("Prompt", back_populates="serp_samples")

    __table_args__ = (Index("idx_serp_samples_brand_created", "brand_id", "created_at"),)
