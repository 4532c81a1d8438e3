"""Database repository for Geoscore data operations."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from geoscore.config import Settings, get_settings
from geoscore.db.models import (
    AnswerCitation,
    AnswerMention,
    Base,
    Brand,
    Competitor,
    LlmAnswer,
    LoginAttempt,
    Prompt,
    PromptRun,
    SecurityEvent,
    SerpSample,
    Topic,
    User,
    UserSession,
    VisibilityScore,
)
from geoscore.models.analysis import CitationMatch, MentionMatch, VisibilityMetrics

logger = logging.getLogger(__name__)

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE clauses unless this is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _adjust_prompt_count(session: Session, topic_id: str | None, delta: int) -> None:
    if not topic_id:
        return
    topic = session.get(Topic, topic_id)
    if topic is not None:
        topic.prompt_count = max(0, topic.prompt_count + delta)


class Repository:
    """
    Repository for all database operations.

    Every method opens its own short-lived session. Sessions do not expire
    objects on commit, so returned rows can be read after the session closes;
    relationships on returned rows are not loaded.
    """

    def __init__(self, database_url: str | None = None, settings: Settings | None = None):
        settings = settings or get_settings()
        self.database_url = database_url or settings.database_url

        # SQLAlchemy 1.4+ requires the postgresql:// scheme
        if self.database_url.startswith("postgres://"):
            self.database_url = self.database_url.replace("postgres://", "postgresql://", 1)

        engine_kwargs: dict[str, Any] = {"echo": False}
        if self.database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self.database_url in IN_MEMORY_URLS:
                # One shared connection, otherwise each thread sees an empty database
                engine_kwargs["poolclass"] = StaticPool
            else:
                db_path = self.database_url.split("sqlite:///", 1)[-1]
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(self.database_url, **engine_kwargs)
        if self.database_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._is_postgres = self.database_url.startswith("postgresql")

    def create_tables(self) -> None:
        """Create all database tables if they don't exist."""
        Base.metadata.create_all(self.engine, checkfirst=True)
        logger.info("Database tables created/verified")

    def drop_tables(self) -> None:
        """Drop all database tables."""
        Base.metadata.drop_all(self.engine)
        logger.info("Database tables dropped")

    def get_session(self) -> Session:
        """Get a database session."""
        return self.SessionLocal()

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    def _get(self, model: type[Base], row_id: Any) -> Any:
        with self.get_session() as session:
            return session.get(model, row_id)

    def _create(self, model: type[Base], **fields: Any) -> Any:
        with self.get_session() as session:
            row = model(**fields)
            session.add(row)
            session.commit()
            return row

    def _update(self, model: type[Base], row_id: Any, fields: dict[str, Any]) -> Any:
        with self.get_session() as session:
            row = session.get(model, row_id)
            if row is None:
                return None
            for key, value in fields.items():
                setattr(row, key, value)
            session.commit()
            return row

    def _delete(self, model: type[Base], row_id: Any) -> bool:
        with self.get_session() as session:
            row = session.get(model, row_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def _list(self, stmt) -> list[Any]:
        with self.get_session() as session:
            return list(session.execute(stmt).scalars().all())

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, user_id: str) -> User | None:
        return self._get(User, user_id)

    def get_user_by_email(self, email: str) -> User | None:
        with self.get_session() as session:
            stmt = select(User).where(func.lower(User.email) == email.strip().lower())
            return session.execute(stmt).scalar_one_or_none()

    def get_user_by_google_id(self, google_id: str) -> User | None:
        with self.get_session() as session:
            stmt = select(User).where(User.google_id == google_id)
            return session.execute(stmt).scalar_one_or_none()

    def create_user(self, **fields: Any) -> User:
        fields["email"] = fields["email"].strip().lower()
        return self._create(User, **fields)

    def update_user(self, user_id: str, **fields: Any) -> User | None:
        return self._update(User, user_id, fields)

    def list_users(self, limit: int = 100, offset: int = 0) -> list[User]:
        stmt = select(User).order_by(User.created_at.desc()).limit(limit).offset(offset)
        return self._list(stmt)

    # ------------------------------------------------------------------
    # Sessions, login attempts and security events
    # ------------------------------------------------------------------

    def create_user_session(
        self,
        user_id: str,
        session_token: str,
        expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> UserSession:
        return self._create(
            UserSession,
            user_id=user_id,
            session_token=session_token,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def get_user_session(self, session_token: str) -> UserSession | None:
        with self.get_session() as session:
            stmt = select(UserSession).where(UserSession.session_token == session_token)
            return session.execute(stmt).scalar_one_or_none()

    def touch_user_session(self, session_id: str) -> None:
        self._update(UserSession, session_id, {"last_activity": datetime.utcnow()})

    def revoke_user_session(self, session_token: str, reason: str) -> bool:
        """Mark a session inactive. Returns False if the token is unknown."""
        with self.get_session() as session:
            stmt = select(UserSession).where(UserSession.session_token == session_token)
            row = session.execute(stmt).scalar_one_or_none()
            if row is None:
                return False
            row.is_active = False
            row.revoked_at = datetime.utcnow()
            row.revoke_reason = reason
            session.commit()
            return True

    def record_login_attempt(
        self,
        email: str,
        success: bool,
        ip_address: str | None = None,
        user_agent: str | None = None,
        failure_reason: str | None = None,
    ) -> None:
        self._create(
            LoginAttempt,
            email=email.strip().lower(),
            success=success,
            ip_address=ip_address,
            user_agent=user_agent,
            failure_reason=failure_reason,
        )

    def count_failed_logins(self, email: str, since: datetime) -> int:
        with self.get_session() as session:
            stmt = (
                select(func.count(LoginAttempt.id))
                .where(LoginAttempt.email == email.strip().lower())
                .where(LoginAttempt.success.is_(False))
                .where(LoginAttempt.attempted_at >= since)
            )
            return session.execute(stmt).scalar_one()

    def record_security_event(
        self,
        event_type: str,
        severity: str = "info",
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._create(
            SecurityEvent,
            event_type=event_type,
            severity=severity,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            event_metadata=metadata,
        )

    def list_security_events(self, user_id: str | None = None, limit: int = 100) -> list[SecurityEvent]:
        stmt = select(SecurityEvent).order_by(SecurityEvent.created_at.desc()).limit(limit)
        if user_id:
            stmt = stmt.where(SecurityEvent.user_id == user_id)
        return self._list(stmt)

    # ------------------------------------------------------------------
    # Brands, competitors, topics, prompts
    # ------------------------------------------------------------------

    def list_brands(self, user_id: str | None = None) -> list[Brand]:
        """List brands, optionally only those owned by ``user_id``."""
        stmt = select(Brand).order_by(Brand.created_at.desc())
        if user_id is not None:
            stmt = stmt.where(Brand.user_id == user_id)
        return self._list(stmt)

    def get_brand(self, brand_id: str) -> Brand | None:
        return self._get(Brand, brand_id)

    def get_brand_by_domain(self, domain: str) -> Brand | None:
        with self.get_session() as session:
            stmt = select(Brand).where(Brand.domain == domain)
            return session.execute(stmt).scalar_one_or_none()

    def create_brand(self, **fields: Any) -> Brand:
        brand = self._create(Brand, **fields)
        logger.info(f"Created brand {brand.name} ({brand.domain})")
        return brand

    def update_brand(self, brand_id: str, **fields: Any) -> Brand | None:
        return self._update(Brand, brand_id, fields)

    def delete_brand(self, brand_id: str) -> bool:
        return self._delete(Brand, brand_id)

    def list_competitors(self, brand_id: str, tracked_only: bool = False) -> list[Competitor]:
        stmt = select(Competitor).where(Competitor.brand_id == brand_id).order_by(Competitor.name)
        if tracked_only:
            stmt = stmt.where(Competitor.is_tracked.is_(True))
        return self._list(stmt)

    def get_competitor(self, competitor_id: str) -> Competitor | None:
        return self._get(Competitor, competitor_id)

    def create_competitor(self, brand_id: str, **fields: Any) -> Competitor:
        return self._create(Competitor, brand_id=brand_id, **fields)

    def delete_competitor(self, competitor_id: str) -> bool:
        return self._delete(Competitor, competitor_id)

    def increment_competitor_mentions(self, counts: dict[str, int]) -> None:
        if not counts:
            return
        with self.get_session() as session:
            for competitor_id, count in counts.items():
                competitor = session.get(Competitor, competitor_id)
                if competitor is not None:
                    competitor.mentions += count
            session.commit()

    def list_topics(self, brand_id: str) -> list[Topic]:
        stmt = select(Topic).where(Topic.brand_id == brand_id).order_by(Topic.name)
        return self._list(stmt)

    def get_topic(self, topic_id: str) -> Topic | None:
        return self._get(Topic, topic_id)

    def create_topic(self, brand_id: str, **fields: Any) -> Topic:
        return self._create(Topic, brand_id=brand_id, **fields)

    def delete_topic(self, topic_id: str) -> bool:
        return self._delete(Topic, topic_id)

    def list_prompts(
        self,
        brand_id: str,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[Prompt]:
        stmt = select(Prompt).where(Prompt.brand_id == brand_id).order_by(Prompt.created_at.desc())
        if status:
            stmt = stmt.where(Prompt.status == status)
        if limit:
            stmt = stmt.limit(limit)
        return self._list(stmt)

    def get_prompt(self, prompt_id: str) -> Prompt | None:
        return self._get(Prompt, prompt_id)

    def create_prompt(self, brand_id: str, **fields: Any) -> Prompt:
        with self.get_session() as session:
            prompt = Prompt(brand_id=brand_id, **fields)
            session.add(prompt)
            _adjust_prompt_count(session, prompt.topic_id, 1)
            session.commit()
            return prompt

    def update_prompt(self, prompt_id: str, **fields: Any) -> Prompt | None:
        with self.get_session() as session:
            prompt = session.get(Prompt, prompt_id)
            if prompt is None:
                return None
            old_topic_id = prompt.topic_id
            for key, value in fields.items():
                setattr(prompt, key, value)
            if prompt.topic_id != old_topic_id:
                _adjust_prompt_count(session, old_topic_id, -1)
                _adjust_prompt_count(session, prompt.topic_id, 1)
            session.commit()
            return prompt

    def delete_prompt(self, prompt_id: str) -> bool:
        """Delete a prompt with its answers, runs and SERP samples."""
        with self.get_session() as session:
            prompt = session.get(Prompt, prompt_id)
            if prompt is None:
                return False
            _adjust_prompt_count(session, prompt.topic_id, -1)
            session.delete(prompt)
            session.commit()
            return True

    def record_prompt_check(
        self,
        prompt_id: str,
        is_brand_present: bool | None = None,
        avg_rank: float | None = None,
    ) -> None:
        """Bump a prompt's run counter and last-checked time after sampling."""
        with self.get_session() as session:
            prompt = session.get(Prompt, prompt_id)
            if prompt is None:
                return
            prompt.run_count += 1
            prompt.last_checked = datetime.utcnow()
            if is_brand_present is not None:
                prompt.is_brand_present = is_brand_present
            if avg_rank is not None:
                prompt.avg_rank = avg_rank
            session.commit()

    # ------------------------------------------------------------------
    # Prompt runs, answers, mentions, citations
    # ------------------------------------------------------------------

    def create_prompt_run(self, prompt_id: str, brand_id: str, providers: list[str]) -> PromptRun:
        return self._create(
            PromptRun,
            prompt_id=prompt_id,
            brand_id=brand_id,
            status="running",
            providers_used=providers,
        )

    def finish_prompt_run(
        self,
        run_id: str,
        status: str,
        answers_generated: int = 0,
        tokens_used: int = 0,
        cost: float = 0.0,
        error: str | None = None,
    ) -> PromptRun | None:
        return self._update(
            PromptRun,
            run_id,
            {
                "status": status,
                "answers_generated": answers_generated,
                "tokens_used": tokens_used,
                "cost": cost,
                "error": error,
                "completed_at": datetime.utcnow(),
            },
        )

    def get_latest_prompt_run(self, prompt_id: str, status: str = "completed") -> PromptRun | None:
        with self.get_session() as session:
            stmt = (
                select(PromptRun)
                .where(PromptRun.prompt_id == prompt_id)
                .where(PromptRun.status == status)
                .order_by(PromptRun.started_at.desc())
                .limit(1)
            )
            return session.execute(stmt).scalar_one_or_none()

    def list_prompt_runs(self, brand_id: str, limit: int = 50) -> list[PromptRun]:
        stmt = (
            select(PromptRun)
            .where(PromptRun.brand_id == brand_id)
            .order_by(PromptRun.started_at.desc())
            .limit(limit)
        )
        return self._list(stmt)

    def save_llm_answer(
        self,
        mentions: list[MentionMatch] | None = None,
        citations: list[CitationMatch] | None = None,
        **fields: Any,
    ) -> LlmAnswer:
        """Store an answer together with its extracted mentions and citations."""
        with self.get_session() as session:
            answer = LlmAnswer(**fields)
            session.add(answer)
            session.flush()  # Get the ID

            for mention in mentions or []:
                session.add(
                    AnswerMention(
                        llm_answer_id=answer.id,
                        brand_id=answer.brand_id,
                        competitor_id=mention.competitor_id,
                        entity_type=mention.entity_type.value,
                        entity_name=mention.entity_name,
                        position=mention.position,
                        context=mention.context,
                        sentiment=mention.sentiment.value,
                    )
                )

            for citation in citations or []:
                session.add(
                    AnswerCitation(
                        llm_answer_id=answer.id,
                        url=citation.url,
                        domain=citation.domain,
                        position=citation.position,
                        citation_type=citation.citation_type,
                    )
                )

            session.commit()
            return answer

    def get_latest_answer(self, prompt_id: str, provider: str) -> LlmAnswer | None:
        """Most recent answer to a prompt from one provider."""
        with self.get_session() as session:
            stmt = (
                select(LlmAnswer)
                .where(LlmAnswer.prompt_id == prompt_id)
                .where(LlmAnswer.llm_provider == provider)
                .order_by(LlmAnswer.created_at.desc())
                .limit(1)
            )
            return session.execute(stmt).scalar_one_or_none()

    def list_llm_answers(self, brand_id: str, limit: int = 50) -> list[LlmAnswer]:
        stmt = (
            select(LlmAnswer)
            .where(LlmAnswer.brand_id == brand_id)
            .order_by(LlmAnswer.created_at.desc())
            .limit(limit)
        )
        return self._list(stmt)

    def get_answers_in_period(
        self, brand_id: str, start: datetime, end: datetime
    ) -> list[LlmAnswer]:
        stmt = (
            select(LlmAnswer)
            .where(LlmAnswer.brand_id == brand_id)
            .where(LlmAnswer.created_at >= start)
            .where(LlmAnswer.created_at <= end)
        )
        return self._list(stmt)

    def list_mentions(
        self,
        brand_id: str,
        limit: int = 100,
        entity_type: str | None = None,
    ) -> list[AnswerMention]:
        stmt = (
            select(AnswerMention)
            .where(AnswerMention.brand_id == brand_id)
            .order_by(AnswerMention.created_at.desc())
            .limit(limit)
        )
        if entity_type:
            stmt = stmt.where(AnswerMention.entity_type == entity_type)
        return self._list(stmt)

    def get_mentions_for_answers(self, answer_ids: list[str]) -> list[AnswerMention]:
        if not answer_ids:
            return []
        stmt = select(AnswerMention).where(AnswerMention.llm_answer_id.in_(answer_ids))
        return self._list(stmt)

    def get_citations_for_answers(self, answer_ids: list[str]) -> list[AnswerCitation]:
        if not answer_ids:
            return []
        stmt = select(AnswerCitation).where(AnswerCitation.llm_answer_id.in_(answer_ids))
        return self._list(stmt)

    # ------------------------------------------------------------------
    # Visibility scores
    # ------------------------------------------------------------------

    def save_visibility_score(self, brand_id: str, metrics: VisibilityMetrics) -> VisibilityScore:
        """Store a score and mirror it onto the brand."""
        with self.get_session() as session:
            score = VisibilityScore(brand_id=brand_id, **metrics.to_record())
            session.add(score)

            brand = session.get(Brand, brand_id)
            if brand is not None:
                brand.visibility_score = metrics.overall_score
                brand.last_analysis = datetime.utcnow()

            session.commit()
            return score

    def get_latest_visibility_score(
        self, brand_id: str, period: str | None = None
    ) -> VisibilityScore | None:
        with self.get_session() as session:
            stmt = (
                select(VisibilityScore)
                .where(VisibilityScore.brand_id == brand_id)
                .order_by(VisibilityScore.created_at.desc())
                .limit(1)
            )
            if period:
                stmt = stmt.where(VisibilityScore.period == period)
            return session.execute(stmt).scalar_one_or_none()

    def list_visibility_scores(
        self,
        brand_id: str,
        period: str | None = None,
        limit: int = 30,
    ) -> list[VisibilityScore]:
        stmt = (
            select(VisibilityScore)
            .where(VisibilityScore.brand_id == brand_id)
            .order_by(VisibilityScore.created_at.desc())
            .limit(limit)
        )
        if period:
            stmt = stmt.where(VisibilityScore.period == period)
        return self._list(stmt)

    # ------------------------------------------------------------------
    # SERP samples
    # ------------------------------------------------------------------

    def save_serp_sample(self, brand_id: str, **fields: Any) -> SerpSample:
        return self._create(SerpSample, brand_id=brand_id, **fields)

    def list_serp_samples(self, brand_id: str, limit: int = 50) -> list[SerpSample]:
        stmt = (
            select(SerpSample)
            .where(SerpSample.brand_id == brand_id)
            .order_by(SerpSample.created_at.desc())
            .limit(limit)
        )
        return self._list(stmt)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self) -> dict[str, Any]:
        """Get row counts for the health endpoint."""
        with self.get_session() as session:
            return {
                "users": session.execute(select(func.count(User.id))).scalar_one(),
                "brands": session.execute(select(func.count(Brand.id))).scalar_one(),
                "prompts": session.execute(select(func.count(Prompt.id))).scalar_one(),
                "llm_answers": session.execute(select(func.count(LlmAnswer.id))).scalar_one(),
                "database_type": "postgresql" if self._is_postgres else "sqlite",
            }
