"""Prompt text and message builders shared by the pipeline agents."""

from __future__ import annotations

from core.models import BulletInput, ParsedJD, ProfileData

JD_PARSER_SYSTEM_PROMPT = """
You are a job description parser. Extract required skills, nice-to-have skills,
responsibilities, keywords and job metadata from the job description.

Respond with STRICT JSON ONLY using these keys:
- required_skills: list of strings
- nice_to_have: list of strings
- responsibilities: list of strings
- keywords: list of strings
- companyName: string or null
- jobPosition: string or null (the job title)
- teamName: string or null (only if a team is named)

Do NOT include comments or explanations. Do NOT wrap in Markdown.
"""

JD_PARSER_USER_TEMPLATE = """
Parse this job description:

---
{job_description}
---

Return ONLY the JSON object.
"""

BULLET_REWRITER_SYSTEM_PROMPT = """
You are a resume bullet rewriter. Rewrite a bullet so it reads as relevant to the
job, but ONLY rephrase content that is already there.

Rules:
- Do NOT add metrics, numbers or percentages that are not in the original.
- Do NOT add technologies that are not in the original bullet or its skills/tags.
- Do NOT add scope words such as "led", "owned" or "architected" unless already present.
- Do NOT make new claims about impact or responsibility.
- Only rephrase and reorder existing information to emphasize relevance.

Respond with STRICT JSON ONLY:
{"rewrittenText": "...", "riskFlags": ["..."]}
riskFlags lists any concerns about the rewrite (empty list if none).
"""

BULLET_REWRITER_USER_TEMPLATE = """
Original bullet: "{content}"
Skills/Tags: {skills}

Job requires: {required_skills}
Keywords: {keywords}

Rewrite to emphasize relevance while staying fully grounded in the original.
"""

CONTENT_SELECTOR_SYSTEM_PROMPT = """
You are an expert resume curator. Select the experiences, projects and education
from the candidate's profile that best match the job.

Guidelines:
- From each relevant experience choose 2-5 bullets that align with the job requirements.
- Select the 2-3 most relevant projects with their bullets.
- Keep every education entry but only coursework relevant to the job.
- Prefer recent and impactful work; consider both explicit skill matches and transferable skills.
- List bullets best-first; use only ids that appear in the profile.

Respond with STRICT JSON ONLY:
{
  "experiences": [{"id": "...", "bulletIds": ["..."], "relevanceReason": "..."}],
  "projects": [{"id": "...", "bulletIds": ["..."], "relevanceReason": "..."}],
  "education": [{"id": "...", "selectedCoursework": ["..."], "relevanceReason": "..."}]
}
"""

CONTENT_SELECTOR_USER_TEMPLATE = """
JOB REQUIREMENTS:
Required Skills: {required_skills}
Nice to Have: {nice_to_have}
Responsibilities: {responsibilities}
Keywords: {keywords}

CANDIDATE PROFILE:

=== EXPERIENCES ===
{experiences}

=== PROJECTS ===
{projects}

=== EDUCATION ===
{education}

=== SKILLS ===
{skills}

Select the most relevant content for this job application.
"""


def _join(items: list[str], sep: str = ", ", empty: str = "none") -> str:
    return sep.join(items) if items else empty


def build_jd_parser_messages(job_description: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": JD_PARSER_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": JD_PARSER_USER_TEMPLATE.format(job_description=job_description.strip()),
        },
    ]


def build_rewriter_messages(bullet: BulletInput, jd: ParsedJD) -> list[dict[str, str]]:
    content = BULLET_REWRITER_USER_TEMPLATE.format(
        content=bullet.content,
        skills=_join([*bullet.skills, *bullet.tags]),
        required_skills=_join(jd.required_skills),
        keywords=_join(jd.keywords),
    )
    return [
        {"role": "system", "content": BULLET_REWRITER_SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


def format_profile(profile: ProfileData) -> dict[str, str]:
    """Render the profile as the bracketed-id text blocks the selector prompt expects."""
    experiences = "\n\n".join(
        f"Experience [{exp.id}]: {exp.title} at {exp.company} "
        f"({exp.start_date} - {exp.end_date or 'Present'})\n  Bullets:\n"
        + "\n".join(f"    - [{b.id}] {b.content} (Skills: {_join(b.skills)})" for b in exp.bullets)
        for exp in profile.experiences
    )
    projects = "\n\n".join(
        f"Project [{proj.id}]: {proj.name} (Skills: {_join(proj.skills)})\n  Bullets:\n"
        + "\n".join(f"    - [{b.id}] {b.content}" for b in proj.bullets)
        for proj in profile.projects
    )
    education = "\n\n".join(
        f"Education [{edu.id}]: {edu.degree} at {edu.institution} ({edu.graduation_date or 'N/A'})\n"
        f"  Coursework: {_join(edu.coursework)}"
        for edu in profile.education
    )
    skills = "\n\n".join(
        f"Category [{cat.id}]: {cat.name}\n  Skills: "
        + _join([f"[{s.id}] {s.name}" for s in cat.skills])
        for cat in profile.skill_categories
    )
    return {
        "experiences": experiences or "No experiences listed",
        "projects": projects or "No projects listed",
        "education": education or "No education listed",
        "skills": skills or "No skills listed",
    }


def build_selector_messages(profile: ProfileData, jd: ParsedJD) -> list[dict[str, str]]:
    content = CONTENT_SELECTOR_USER_TEMPLATE.format(
        required_skills=_join(jd.required_skills),
        nice_to_have=_join(jd.nice_to_have),
        responsibilities=_join(jd.responsibilities, sep="; "),
        keywords=_join(jd.keywords),
        **format_profile(profile),
    )
    return [
        {"role": "system", "content": CONTENT_SELECTOR_SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]
