from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base for shapes that cross a process boundary (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


ParentType = Literal["experience", "project"]
Strategy = Literal["openai", "bm25"]


# ==== Job lifecycle ====

class JobStatus(str, Enum):
    """Coarse job status polled by external observers."""

    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class JobStage(str, Enum):
    """Named pipeline stages; values are the labels shown to users."""

    QUEUED = "Queued"
    PARSING_JD = "Parsing job description"
    RETRIEVING_BULLETS = "Retrieving candidate bullets"
    SELECTING_BULLETS = "Selecting best bullets"
    REWRITING_BULLETS = "Rewriting bullets"
    VERIFYING = "Verifying rewrites"
    ASSEMBLING = "Assembling resume"
    COMPLETED = "Completed"
    FAILED = "Failed"


class JobSubmission(WireModel):
    """Message placed on the job queue; job_id doubles as the dedup key."""

    job_id: str
    user_id: str
    job_description: str
    strategy: Optional[Strategy] = None


# ==== Candidate bullets and selection ====

class BulletCandidate(WireModel):
    """A retrieved bullet with its retrieval-time relevance score."""

    model_config = ConfigDict(frozen=True)

    bullet_id: str
    content: str
    score: float
    parent_id: str
    parent_type: ParentType
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    tags: tuple[str, ...] = ()
    skills: tuple[str, ...] = ()


SelectedBullet = BulletCandidate


class TargetCount(BaseModel):
    min: int = Field(..., ge=0)
    max: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> "TargetCount":
        if self.min > self.max:
            raise ValueError(f"target_count.min ({self.min}) exceeds max ({self.max})")
        return self


class SelectionConstraints(WireModel):
    max_bullets_per_parent: int = Field(..., ge=1)
    similarity_threshold: float = Field(..., ge=0.0, le=1.0)
    target_count: TargetCount


class ExtractedTerms(WireModel):
    keywords: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    tech_stack: list[str] = Field(default_factory=list)


# ==== AI capability shapes ====

class ParsedJD(WireModel):
    """Structured job description as returned by the AI provider."""

    required_skills: list[str] = Field(default_factory=list)
    nice_to_have: list[str] = Field(default_factory=list)
    responsibilities: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    company_name: Optional[str] = None
    job_position: Optional[str] = None
    team_name: Optional[str] = None


class BulletInput(WireModel):
    """What the rewriter sees of a bullet."""

    id: str
    content: str
    tags: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)


class RewrittenBullet(WireModel):
    bullet_id: str
    rewritten_text: str
    evidence_bullet_ids: list[str] = Field(default_factory=list)
    risk_flags: list[str] = Field(default_factory=list)


class VerifiedBullet(WireModel):
    """Outcome of verification; a non-null note means the original was restored."""

    bullet_id: str
    text: str
    verifier_note: Optional[str] = None


class SelectionItem(WireModel):
    id: str
    bullet_ids: list[str] = Field(default_factory=list)
    relevance_reason: str = ""


class EducationSelection(WireModel):
    id: str
    selected_coursework: list[str] = Field(default_factory=list)
    relevance_reason: str = ""


class ContentSelection(WireModel):
    experiences: list[SelectionItem] = Field(default_factory=list)
    projects: list[SelectionItem] = Field(default_factory=list)
    education: list[EducationSelection] = Field(default_factory=list)


# ==== Stored profile ====

class ProfileUser(WireModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    linkedin: Optional[str] = None


class ProfileBullet(WireModel):
    id: str
    content: str
    skills: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class ProfileExperience(WireModel):
    id: str
    company: str
    title: str
    location: Optional[str] = None
    start_date: str
    end_date: Optional[str] = None
    bullets: list[ProfileBullet] = Field(default_factory=list)


class ProfileProject(WireModel):
    id: str
    name: str
    date: Optional[str] = None
    url: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    bullets: list[ProfileBullet] = Field(default_factory=list)


class ProfileEducation(WireModel):
    id: str
    institution: str
    degree: str
    location: Optional[str] = None
    graduation_date: Optional[str] = None
    coursework: list[str] = Field(default_factory=list)


class ProfileSkill(WireModel):
    id: str
    name: str


class ProfileSkillCategory(WireModel):
    id: str
    name: str
    skills: list[ProfileSkill] = Field(default_factory=list)


class ProfileData(WireModel):
    user: Optional[ProfileUser] = None
    experiences: list[ProfileExperience] = Field(default_factory=list)
    projects: list[ProfileProject] = Field(default_factory=list)
    education: list[ProfileEducation] = Field(default_factory=list)
    skill_categories: list[ProfileSkillCategory] = Field(default_factory=list)


# ==== Assembled resume ====

SectionType = Literal["education", "experience", "skills", "projects"]


class SectionOrderItem(WireModel):
    id: str
    type: SectionType
    visible: bool = True
    order: int


class ResumeUser(ProfileUser):
    pass


class ResumeBullet(WireModel):
    id: str
    text: str
    visible: bool = True
    order: int


class ResumeExperience(WireModel):
    id: str
    company: str
    title: str
    location: Optional[str] = None
    start_date: str
    end_date: Optional[str] = None
    bullets: list[ResumeBullet] = Field(default_factory=list)
    visible: bool = True
    order: int
    relevance_reason: Optional[str] = None


class ResumeProject(WireModel):
    id: str
    name: str
    date: Optional[str] = None
    url: Optional[str] = None
    tech: list[str] = Field(default_factory=list)
    bullets: list[ResumeBullet] = Field(default_factory=list)
    visible: bool = True
    order: int
    relevance_reason: Optional[str] = None


class ResumeCoursework(WireModel):
    id: str
    name: str
    visible: bool = True


class ResumeEducation(WireModel):
    id: str
    institution: str
    degree: str
    location: Optional[str] = None
    graduation_date: Optional[str] = None
    coursework: list[ResumeCoursework] = Field(default_factory=list)
    visible: bool = True
    order: int


class ResumeSkill(WireModel):
    id: str
    name: str
    visible: bool = True


class ResumeSkillCategory(WireModel):
    id: str
    name: str
    skills: list[ResumeSkill] = Field(default_factory=list)
    visible: bool = True
    order: int


class ResumeDocument(WireModel):
    """Editable resume built fresh for one job."""

    user: Optional[ResumeUser] = None
    section_order: list[SectionOrderItem] = Field(default_factory=list)
    education: list[ResumeEducation] = Field(default_factory=list)
    experiences: list[ResumeExperience] = Field(default_factory=list)
    skill_categories: list[ResumeSkillCategory] = Field(default_factory=list)
    projects: list[ResumeProject] = Field(default_factory=list)


# ==== Persisted job record ====

class JobRecord(WireModel):
    """Durable job row; the single source of truth for status/progress."""

    job_id: str
    user_id: str
    job_description: str = ""
    strategy: Optional[Strategy] = None
    status: JobStatus = JobStatus.QUEUED
    stage: JobStage = JobStage.QUEUED
    progress: int = Field(0, ge=0, le=100)
    error_message: Optional[str] = None
    parsed_jd: Optional[ParsedJD] = None
    result_resume: Optional[ResumeDocument] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.QUEUED, JobStatus.PROCESSING)


class BulletAuditRow(WireModel):
    """One row per selected bullet per job."""

    resume_job_id: str
    bullet_id: str
    original_text: str
    rewritten_text: str
    evidence: dict[str, list[str]] = Field(default_factory=dict)
    verifier_note: Optional[str] = None
