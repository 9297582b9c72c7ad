from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    email = Column(Text, nullable=False, unique=True)
    role = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    department = Column(Text, nullable=True)
    hire_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, server_default="true")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'manager', 'sales')", name="ck_users_role"),
        Index("idx_users_role_active", "role", "is_active"),
    )


class Survey(Base):
    __tablename__ = "surveys"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    target_role = Column(Text, nullable=False)
    version = Column(Integer, nullable=False, server_default="1")
    is_active = Column(Boolean, nullable=False, server_default="true")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Question(Base):
    __tablename__ = "questions"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    survey_id = Column(BigInteger, ForeignKey("surveys.id"), nullable=False)
    section = Column(Text, nullable=False)
    question_text = Column(Text, nullable=False)
    question_type = Column(Text, nullable=False)
    question_order = Column(Integer, nullable=False)
    is_required = Column(Boolean, nullable=False, server_default="true")
    options = Column(Text, nullable=True)
    validation_rules = Column(Text, nullable=True)
    analysis_tags = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("survey_id", "question_order", name="uq_questions_survey_order"),
        CheckConstraint(
            "question_type IN ('likert', 'multiple_choice', 'text', 'ranking', 'percentage', 'checkbox')",
            name="ck_questions_type",
        ),
    )


class Response(Base):
    __tablename__ = "responses"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    survey_id = Column(BigInteger, ForeignKey("surveys.id"), nullable=False)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=True)
    session_id = Column(Text, nullable=False)
    is_anonymous = Column(Boolean, nullable=False, server_default="false")
    started_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
    is_complete = Column(Boolean, nullable=False, server_default="false")
    response_time_seconds = Column(Integer, nullable=True)

    __table_args__ = (Index("idx_responses_survey_date", "survey_id", "completed_at"),)


class Answer(Base):
    __tablename__ = "answers"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    response_id = Column(BigInteger, ForeignKey("responses.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(BigInteger, ForeignKey("questions.id"), nullable=False)
    answer_value = Column(Text, nullable=True)
    answer_numeric = Column(Float, nullable=True)
    confidence_score = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("idx_answers_response_question", "response_id", "question_id"),)


class AnalyticsCache(Base):
    __tablename__ = "analytics_cache"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    metric_name = Column(Text, nullable=False)
    metric_value = Column(Text, nullable=True)
    filters = Column(Text, nullable=True)
    computed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_analytics_metric_date", "metric_name", "computed_at"),)


class ActionItem(Base):
    __tablename__ = "action_items"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Text, nullable=False, server_default="medium")
    category = Column(Text, nullable=True)
    assigned_to = Column(BigInteger, ForeignKey("users.id"), nullable=True)
    status = Column(Text, nullable=False, server_default="open")
    due_date = Column(Date, nullable=True)
    created_from_response_id = Column(BigInteger, ForeignKey("responses.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("priority IN ('high', 'medium', 'low')", name="ck_action_items_priority"),
        CheckConstraint(
            "status IN ('open', 'in_progress', 'completed', 'cancelled')",
            name="ck_action_items_status",
        ),
        Index("idx_action_items_status_priority", "status", "priority"),
    )


# Dependency order; used for exports and restores.
TABLE_ORDER = ["users", "surveys", "questions", "responses", "answers", "analytics_cache", "action_items"]
