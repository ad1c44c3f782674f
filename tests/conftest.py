import os
from pathlib import Path
import sys

import pytest

# Ensure project root is on sys.path for tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Load .env into os.environ so integration tests can pick up keys
from core.config_adapter import DotEnvConfigSource  # noqa: E402

dotenv = DotEnvConfigSource(path=ROOT / ".env")
for key in ("LLM_PROVIDER", "LLM_MODEL", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY"):
    val = dotenv.get(key)
    if val is not None:
        os.environ.setdefault(key, val)

from core.models import (  # noqa: E402
    BulletInput,
    ContentSelection,
    ParsedJD,
    ProfileBullet,
    ProfileData,
    ProfileEducation,
    ProfileExperience,
    ProfileProject,
    ProfileSkill,
    ProfileSkillCategory,
    ProfileUser,
    RewrittenBullet,
)
from core.settings import PipelineSettings  # noqa: E402


class FakeAIProvider:
    """Scriptable AIProvider: canned parse/selection, per-bullet rewrites or failures."""

    def __init__(
        self,
        parsed: ParsedJD | None = None,
        rewrites: dict[str, str] | None = None,
        failing: tuple[str, ...] = (),
        selection: ContentSelection | None = None,
        parse_error: Exception | None = None,
    ) -> None:
        self.parsed = parsed or ParsedJD(
            required_skills=["Node.js", "Kubernetes", "Python"],
            nice_to_have=["Redis"],
            responsibilities=["Build APIs"],
            keywords=["api", "services"],
            company_name="Initech",
            job_position="Backend Engineer",
        )
        self.rewrites = rewrites or {}
        self.failing = failing
        self.selection = selection
        self.parse_error = parse_error
        self.calls: list[str] = []

    async def parse_job_description(self, job_description: str) -> ParsedJD:
        self.calls.append("parse")
        if self.parse_error is not None:
            raise self.parse_error
        return self.parsed

    async def rewrite_bullet(self, bullet: BulletInput, parsed_jd: ParsedJD) -> RewrittenBullet:
        self.calls.append(f"rewrite:{bullet.id}")
        if bullet.id in self.failing:
            raise RuntimeError(f"provider down for {bullet.id}")
        return RewrittenBullet(
            bullet_id=bullet.id,
            rewritten_text=self.rewrites.get(bullet.id, bullet.content),
            evidence_bullet_ids=[bullet.id],
        )

    async def select_relevant_content(self, profile: ProfileData, parsed_jd: ParsedJD) -> ContentSelection:
        self.calls.append("select")
        return self.selection or ContentSelection()


@pytest.fixture
def sample_profile() -> ProfileData:
    return ProfileData(
        user=ProfileUser(first_name="Ada", last_name="Lovelace", email="ada@example.com"),
        experiences=[
            ProfileExperience(
                id="exp-1",
                company="Acme Cloud",
                title="Senior Software Engineer",
                start_date="2022-01",
                bullets=[
                    ProfileBullet(
                        id="b1",
                        content="Built REST API services in Node.js and Express serving 2 million requests per day",
                        skills=["Node.js", "Express"],
                    ),
                    ProfileBullet(
                        id="b2",
                        content="Migrated deployment pipeline to Docker and Kubernetes on AWS",
                        skills=["Docker", "Kubernetes", "AWS"],
                    ),
                    ProfileBullet(
                        id="b3",
                        content="Implemented React dashboards for internal analytics with TypeScript",
                        skills=["React", "TypeScript"],
                    ),
                ],
            ),
            ProfileExperience(
                id="exp-2",
                company="Beta Labs",
                title="Software Engineer",
                start_date="2019-06",
                end_date="2021-12",
                bullets=[
                    ProfileBullet(
                        id="b4",
                        content="Wrote Python data pipelines feeding PostgreSQL reporting tables",
                        skills=["Python", "PostgreSQL"],
                    ),
                    ProfileBullet(
                        id="b5",
                        content="Tuned Redis caching layer to cut page latency",
                        skills=["Redis"],
                    ),
                ],
            ),
        ],
        projects=[
            ProfileProject(
                id="proj-1",
                name="Resume Tailor",
                date="2023-03",
                skills=["Python", "FastAPI"],
                bullets=[ProfileBullet(id="b6", content="Designed keyword extraction services for job descriptions")],
            )
        ],
        education=[
            ProfileEducation(
                id="edu-1",
                institution="State University",
                degree="BSc Computer Science",
                coursework=["Algorithms", "Distributed Systems"],
            )
        ],
        skill_categories=[
            ProfileSkillCategory(
                id="cat-1",
                name="Languages",
                skills=[
                    ProfileSkill(id="s1", name="TypeScript"),
                    ProfileSkill(id="s2", name="Go"),
                    ProfileSkill(id="s3", name="Python"),
                ],
            ),
            ProfileSkillCategory(
                id="cat-2",
                name="Infrastructure",
                skills=[
                    ProfileSkill(id="s4", name="Terraform"),
                    ProfileSkill(id="s5", name="Redis"),
                    ProfileSkill(id="s6", name="Kubernetes"),
                ],
            ),
        ],
    )


@pytest.fixture
def pipeline_settings(tmp_path) -> PipelineSettings:
    return PipelineSettings(job_store_dir=tmp_path / "jobs")


@pytest.fixture
def fake_ai() -> FakeAIProvider:
    return FakeAIProvider()


@pytest.fixture
def make_fake_ai():
    return FakeAIProvider
