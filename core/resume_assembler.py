"""Fold selected (and optionally verified) bullets back onto the stored profile."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Optional

from core.models import (
    ParsedJD,
    ProfileData,
    ResumeBullet,
    ResumeCoursework,
    ResumeDocument,
    ResumeEducation,
    ResumeExperience,
    ResumeProject,
    ResumeSkill,
    ResumeSkillCategory,
    ResumeUser,
    SectionOrderItem,
    SelectedBullet,
    VerifiedBullet,
)

SECTION_ORDER: tuple[tuple[str, str], ...] = (
    ("education", "education"),
    ("experience", "experience"),
    ("skills", "skills"),
    ("projects", "projects"),
)


def _parent_ids(selected: Iterable[SelectedBullet], parent_type: str) -> list[str]:
    return list(dict.fromkeys(b.parent_id for b in selected if b.parent_type == parent_type))


def _bullets_for(
    parent_id: str,
    selected: Sequence[SelectedBullet],
    verified: Mapping[str, VerifiedBullet],
) -> list[ResumeBullet]:
    own = sorted((b for b in selected if b.parent_id == parent_id), key=lambda b: b.score, reverse=True)
    out: list[ResumeBullet] = []
    for i, b in enumerate(own):
        v = verified.get(b.bullet_id)
        out.append(ResumeBullet(id=b.bullet_id, text=v.text if v else b.content, order=i))
    return out


def _ordered_skills(category, skill_ids: Optional[Sequence[str]]) -> list:
    if skill_ids is None:
        return list(category.skills)
    by_id = {s.id: s for s in category.skills}
    ranked = [by_id[sid] for sid in skill_ids if sid in by_id]
    # Skills missing from the ranking keep their place after the ranked ones.
    ranked_ids = {s.id for s in ranked}
    return ranked + [s for s in category.skills if s.id not in ranked_ids]


def assemble(
    profile: ProfileData,
    selected: Sequence[SelectedBullet],
    verified: Optional[Mapping[str, VerifiedBullet]] = None,
    skill_order: Optional[Mapping[str, Sequence[str]]] = None,
    reasons: Optional[Mapping[str, str]] = None,
) -> ResumeDocument:
    """Build a fresh resume document for one job.

    Experiences and projects appear once per distinct parent among the
    selected bullets, in first-appearance order; parents missing from the
    profile are skipped. Education and skill categories are carried through
    in full. ``skill_order`` maps category id to ranked skill ids and
    ``reasons`` maps parent id to a relevance reason.
    """
    verified = verified or {}
    skill_order = skill_order or {}
    reasons = reasons or {}

    experiences_by_id = {e.id: e for e in profile.experiences}
    projects_by_id = {p.id: p for p in profile.projects}

    experiences: list[ResumeExperience] = []
    for parent_id in _parent_ids(selected, "experience"):
        exp = experiences_by_id.get(parent_id)
        if exp is None:
            continue
        experiences.append(
            ResumeExperience(
                id=exp.id,
                company=exp.company,
                title=exp.title,
                location=exp.location,
                start_date=exp.start_date,
                end_date=exp.end_date,
                bullets=_bullets_for(parent_id, selected, verified),
                order=len(experiences),
                relevance_reason=reasons.get(parent_id),
            )
        )

    projects: list[ResumeProject] = []
    for parent_id in _parent_ids(selected, "project"):
        proj = projects_by_id.get(parent_id)
        if proj is None:
            continue
        projects.append(
            ResumeProject(
                id=proj.id,
                name=proj.name,
                date=proj.date,
                url=proj.url,
                tech=list(proj.skills),
                bullets=_bullets_for(parent_id, selected, verified),
                order=len(projects),
                relevance_reason=reasons.get(parent_id),
            )
        )

    education = [
        ResumeEducation(
            id=edu.id,
            institution=edu.institution,
            degree=edu.degree,
            location=edu.location,
            graduation_date=edu.graduation_date,
            coursework=[
                ResumeCoursework(id=f"{edu.id}-cw-{i}", name=name)
                for i, name in enumerate(edu.coursework)
            ],
            order=index,
        )
        for index, edu in enumerate(profile.education)
    ]

    skill_categories = [
        ResumeSkillCategory(
            id=cat.id,
            name=cat.name,
            skills=[
                ResumeSkill(id=s.id, name=s.name)
                for s in _ordered_skills(cat, skill_order.get(cat.id))
            ],
            order=index,
        )
        for index, cat in enumerate(profile.skill_categories)
    ]

    user = ResumeUser(**profile.user.model_dump()) if profile.user else None

    return ResumeDocument(
        user=user,
        section_order=[
            SectionOrderItem(id=sid, type=stype, order=i)
            for i, (sid, stype) in enumerate(SECTION_ORDER)
        ],
        education=education,
        experiences=experiences,
        skill_categories=skill_categories,
        projects=projects,
    )


def rank_skills(
    profile: ProfileData,
    selected: Iterable[SelectedBullet],
    parsed_jd: Optional[ParsedJD] = None,
) -> dict[str, list[str]]:
    """Order each category's skill ids by relevance to the job.

    Priority: used by a selected bullet and wanted by the job, then used by a
    selected bullet, then wanted by the job, then original order.
    """
    projects_by_id = {p.id: p for p in profile.projects}
    used: set[str] = set()
    for b in selected:
        used.update(s.lower() for s in b.skills)
        if b.parent_type == "project" and b.parent_id in projects_by_id:
            used.update(s.lower() for s in projects_by_id[b.parent_id].skills)

    wanted: set[str] = set()
    if parsed_jd is not None:
        for term in (*parsed_jd.required_skills, *parsed_jd.nice_to_have, *parsed_jd.keywords):
            wanted.add(term.lower())

    def priority(name: str) -> int:
        key = name.lower()
        in_bullets, in_job = key in used, key in wanted
        if in_bullets and in_job:
            return 0
        if in_bullets:
            return 1
        if in_job:
            return 2
        return 3

    return {
        cat.id: [s.id for s in sorted(cat.skills, key=lambda s: priority(s.name))]
        for cat in profile.skill_categories
    }
