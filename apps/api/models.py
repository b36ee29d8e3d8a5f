from sqlalchemy import Column, Boolean, CheckConstraint, Date, DateTime, ForeignKey, JSON, Text, String, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
import uuid

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    """
    Account of any role.

    Tenant attribution: members carry ``company_id``. Owners are resolved via
    ``Company.owner_id`` and also carry ``company_id`` (written at signup and on
    ownership transfer) so both lookup paths agree.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('owner', 'admin', 'coach', 'parent', 'player')", name="ck_users_role"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(Text, unique=True, nullable=False, index=True)  # stored lowercased
    name = Column(Text, nullable=False)
    password_hash = Column(Text, nullable=False)
    role = Column(String(16), default="owner", nullable=False)  # owner | admin | coach | parent | player
    # users <-> companies reference each other; this FK is added after both tables exist
    company_id = Column(
        Uuid,
        ForeignKey("companies.id", ondelete="SET NULL", use_alter=True, name="fk_users_company_id"),
        nullable=True,
        index=True,
    )

    email_verified = Column(Boolean, default=False, nullable=False)
    onboarded = Column(Boolean, default=False, nullable=False)
    # Pending 6-digit code, used for signup verification and email change
    email_code = Column(String(6), nullable=True)
    # Short binding hash of the pending new address during an email change
    password_reset_code = Column(String(10), nullable=True)

    phone_number = Column(Text, nullable=True)
    image = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    company = relationship("Company", foreign_keys=[company_id])


class Company(Base):
    __tablename__ = "companies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("users.id", name="fk_companies_owner_id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    logo = Column(Text, nullable=True)
    website_url = Column(Text, nullable=True)
    phone_number = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    owner = relationship("User", foreign_keys=[owner_id])


class Team(Base):
    __tablename__ = "teams"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    coach_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    curriculum_id = Column(Uuid, ForeignKey("curriculums.id", ondelete="SET NULL"), nullable=True, index=True)
    age_group = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    coach = relationship("User", foreign_keys=[coach_id])
    curriculum = relationship("Curriculum", foreign_keys=[curriculum_id])


class Player(Base):
    """
    A player belongs to one team and is supervised by one account
    (``parent_user_id``), which has role parent, or role player when
    ``self_supervised``. Age is derived from ``dob`` on read.
    """

    __tablename__ = "players"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    dob = Column(Date, nullable=True)
    age_group = Column(Text, nullable=True)
    gender = Column(Text, nullable=True)
    dominant_foot = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    self_supervised = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    team = relationship("Team", lazy="joined")
    supervisor = relationship("User", foreign_keys=[parent_user_id])


class Evaluation(Base):
    """
    A named test cycle for a team. ``scores`` maps player id (string) to the
    raw record of test fields for that player. Written by the scoring
    workflow; read-only for the API.
    """

    __tablename__ = "evaluations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    scores = Column(JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class PlayerEvaluation(Base):
    __tablename__ = "player_evaluations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    player_id = Column(Uuid, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    evaluation_id = Column(Uuid, ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)


class TestScores(Base):
    __test__ = False  # not a pytest class

    __tablename__ = "test_scores"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    player_evaluation_id = Column(
        Uuid, ForeignKey("player_evaluations.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    scores = Column(JSONType, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class OverallScores(Base):
    __tablename__ = "overall_scores"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    player_evaluation_id = Column(
        Uuid, ForeignKey("player_evaluations.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    scores = Column(JSONType, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class PlayerDna(Base):
    """Four-trait profile: power/strength, technique/control, mobility/stability, decision/cognition."""

    __tablename__ = "player_dna"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    player_evaluation_id = Column(
        Uuid, ForeignKey("player_evaluations.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    dna = Column(JSONType, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class PlayerCluster(Base):
    __tablename__ = "player_cluster"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    player_evaluation_id = Column(
        Uuid, ForeignKey("player_evaluations.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    cluster = Column(JSONType, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Curriculum(Base):
    __tablename__ = "curriculums"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    tests = Column(JSONType, nullable=False, default=list)  # ordered test identifiers
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
