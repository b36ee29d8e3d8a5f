from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from datetime import datetime, date
from uuid import UUID
from typing import Any, Dict, List, Literal, Optional


class APIModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class SignupRequest(APIModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str
    company_name: Optional[str] = None


class LoginRequest(APIModel):
    email: EmailStr
    password: str


class UserResponse(APIModel):
    id: UUID
    email: str
    name: str
    role: str
    company_id: Optional[UUID] = None
    email_verified: bool
    onboarded: bool
    phone_number: Optional[str] = None
    image: Optional[str] = None
    created_at: Optional[datetime] = None


class AuthResponse(APIModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class CompanyResponse(APIModel):
    id: UUID
    owner_id: UUID
    name: str
    logo: Optional[str] = None
    website_url: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: Optional[datetime] = None


class ProfileResponse(APIModel):
    user: UserResponse
    company: Optional[CompanyResponse] = None


class ProfileUpdate(APIModel):
    """Partial update: only fields present in the payload are written."""
    name: Optional[str] = Field(default=None, min_length=1)
    phone_number: Optional[str] = None


class PasswordChange(APIModel):
    old_password: str
    new_password: str


class EmailChangeRequest(APIModel):
    new_email: EmailStr


class EmailChangeVerify(APIModel):
    code: str
    new_email: EmailStr


class MessageResponse(APIModel):
    message: str


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------

class VerifyEmailRequest(APIModel):
    code: str


class AdminInvite(APIModel):
    email: EmailStr
    name: str = Field(min_length=1)


class OwnerOnboardingRequest(APIModel):
    company_name: str
    company_url: Optional[str] = None
    phone_number: Optional[str] = None
    admin_invites: List[AdminInvite] = Field(default_factory=list)


class StaffOnboardingRequest(APIModel):
    new_password: str
    phone_number: Optional[str] = None


class ParentOnboardingRequest(StaffOnboardingRequest):
    name: Optional[str] = None


class PlayerProfileCompletion(APIModel):
    dob: date
    gender: str = Field(min_length=1)
    dominant_foot: str = Field(min_length=1)
    age_group: Optional[str] = None
    notes: Optional[str] = None


class PlayerOnboardingRequest(PlayerProfileCompletion):
    new_password: str
    phone_number: Optional[str] = None
    player_id: Optional[UUID] = None


class IncompletePlayer(APIModel):
    id: UUID
    team_id: UUID
    first_name: str
    last_name: str
    team_name: Optional[str] = None
    dob: Optional[date] = None
    gender: Optional[str] = None
    dominant_foot: Optional[str] = None


class IncompletePlayerResponse(APIModel):
    has_incomplete: bool
    player: Optional[IncompletePlayer] = None


class OnboardingStatus(APIModel):
    email_verified: bool
    onboarded: bool
    role: str
    stage: str
    needs_onboarding: bool
    next_step: str
    incomplete_player: Optional[IncompletePlayer] = None


# ---------------------------------------------------------------------------
# Company and members
# ---------------------------------------------------------------------------

class CompanyUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=1)
    website_url: Optional[str] = None


class TransferOwnershipRequest(APIModel):
    new_owner_id: UUID


class MemberCreate(APIModel):
    name: str = Field(min_length=1)
    email: EmailStr
    role: Literal["admin", "coach"]


class MemberUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    role: Optional[str] = None


class MemberResponse(APIModel):
    id: UUID
    name: str
    email: str
    role: str
    phone_number: Optional[str] = None
    image: Optional[str] = None
    onboarded: bool
    created_at: Optional[datetime] = None


class MemberListResponse(APIModel):
    members: List[MemberResponse]
    current_user_role: str


# ---------------------------------------------------------------------------
# Teams and players
# ---------------------------------------------------------------------------

class TeamCreate(APIModel):
    name: str = Field(min_length=1)
    coach_id: Optional[UUID] = None
    description: Optional[str] = None
    age_group: Optional[str] = None
    curriculum_id: Optional[UUID] = None


class TeamUpdate(APIModel):
    """Omitted fields are left as they are."""
    name: Optional[str] = Field(default=None, min_length=1)
    coach_id: Optional[UUID] = None
    description: Optional[str] = None
    age_group: Optional[str] = None
    curriculum_id: Optional[UUID] = None


class TeamResponse(APIModel):
    id: UUID
    name: str
    description: Optional[str] = None
    age_group: Optional[str] = None
    curriculum_id: Optional[UUID] = None
    coach_id: Optional[UUID] = None
    coach_name: Optional[str] = None
    player_count: int = 0
    created_at: Optional[datetime] = None


class PlayerCreate(APIModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    supervisor_email: EmailStr
    supervisor_name: str = Field(min_length=1)
    self_supervised: bool = False
    dob: Optional[date] = None
    age_group: Optional[str] = None
    gender: Optional[str] = None
    dominant_foot: Optional[str] = None
    notes: Optional[str] = None


class PlayerUpdate(APIModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    dob: Optional[date] = None
    age_group: Optional[str] = None
    gender: Optional[str] = Field(default=None, min_length=1)
    dominant_foot: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = None


class PlayerResponse(APIModel):
    id: UUID
    team_id: UUID
    team_name: Optional[str] = None
    parent_user_id: Optional[UUID] = None
    first_name: str
    last_name: str
    full_name: str
    dob: Optional[date] = None
    age: Optional[int] = None
    age_group: Optional[str] = None
    gender: Optional[str] = None
    dominant_foot: Optional[str] = None
    notes: Optional[str] = None
    self_supervised: bool = False
    coach_id: Optional[UUID] = None
    coach_name: Optional[str] = None
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Evaluations
# ---------------------------------------------------------------------------

class EvaluationSummary(APIModel):
    id: UUID
    team_id: UUID
    name: str
    player_count: int = 0
    created_at: Optional[datetime] = None


class EvaluationDetail(APIModel):
    id: UUID
    team_id: UUID
    name: str
    scores: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class PlayerEvaluationRecord(APIModel):
    id: UUID
    player_id: UUID
    team_id: UUID
    evaluation_id: Optional[UUID] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None


class LatestEvaluationResponse(APIModel):
    player_evaluation: Optional[PlayerEvaluationRecord] = None
    test_scores: Optional[Any] = None
    overall_scores: Optional[Any] = None
    player_dna: Optional[Any] = None
    player_cluster: Optional[Any] = None
    attempt_summaries: Optional[Dict[str, Dict[str, Any]]] = None



class EvaluationRef(APIModel):
    id: UUID
    name: str
    created_at: Optional[datetime] = None


class ClusterRank(APIModel):
    rank: int
    player_id: UUID
    player_name: str
    percent: int
    value: float


class ClusterLeader(APIModel):
    player_id: UUID
    player_name: str
    percent: int


class ClusterRanking(APIModel):
    id: str
    name: str
    top: Optional[ClusterLeader] = None
    rankings: List[ClusterRank]


class TestRank(APIModel):
    rank: int
    player_id: UUID
    player_name: str
    value: float
    value_label: str


class TestLeader(APIModel):
    player_id: UUID
    player_name: str
    value: float
    value_label: str


class TestRanking(APIModel):
    id: str
    name: str
    higher_is_better: bool
    top: Optional[TestLeader] = None
    rankings: List[TestRank]


class TestChange(APIModel):
    test_id: str
    name: str
    pct: float
    old_rank: Optional[int] = None
    new_rank: Optional[int] = None
    rank_change: Optional[int] = None
    old_value: float
    new_value: float
    old_value_label: str
    new_value_label: str
    delta_value: float
    delta_value_label: str
    contrib: float


class Mover(APIModel):
    player_id: UUID
    player_name: str
    score_pct: int
    improved: List[TestChange]
    declined: List[TestChange]


class Movers(APIModel):
    most_improved: List[Mover] = Field(default_factory=list)
    biggest_drop: List[Mover] = Field(default_factory=list)


class LeaderboardResponse(APIModel):
    latest_evaluation: Optional[EvaluationRef] = None
    previous_evaluation: Optional[EvaluationRef] = None
    cluster_rankings: List[ClusterRanking] = Field(default_factory=list)
    test_rankings: List[TestRanking] = Field(default_factory=list)
    movers: Movers = Field(default_factory=Movers)


# ---------------------------------------------------------------------------
# Curriculums
# ---------------------------------------------------------------------------

class CurriculumCreate(APIModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    tests: List[str] = Field(default_factory=list)


class CurriculumUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    tests: Optional[List[str]] = None


class CurriculumResponse(APIModel):
    id: UUID
    company_id: UUID
    name: str
    description: Optional[str] = None
    tests: List[str]
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
