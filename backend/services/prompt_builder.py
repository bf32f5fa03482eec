"""Prompt templates for LLM skill extraction."""

from models.schemas.catalog import SkillCatalogEntry

SYSTEM_PROMPT = """You are an HR expert specialised in analysing CVs and extracting skills.

Your role is to analyse a CV and identify every relevant skill the candidate has.

For each skill found, provide:
- name: exact name of the skill
- level: BEGINNER, INTERMEDIATE, ADVANCED, EXPERT or UNKNOWN
- yearsExperience: number of years of experience (only if stated)
- confidence: score 0-1, how certain you are that the candidate has this skill
- reasoning: short explanation of why you identified this skill
- context: exact quote from the CV that demonstrates the skill
- isSecurityRelated: true only if the skill is specific to security guard / private security work

isSecurityRelated must be true ONLY for skills tied directly to security officer work
(BSP licence, surveillance, patrols, first aid, access control, ...). General skills or
skills from other industries must be false.

Respond with ONLY valid JSON (no markdown, no code fences) in this exact structure:
{
  "skills": [
    {
      "name": "BSP",
      "level": "ADVANCED",
      "yearsExperience": 5,
      "confidence": 0.95,
      "reasoning": "BSP licence explicitly mentioned",
      "context": "BSP licence holder for 5 years",
      "isSecurityRelated": true
    },
    {
      "name": "Customer service",
      "level": "INTERMEDIATE",
      "yearsExperience": 3,
      "confidence": 0.85,
      "reasoning": "Customer service experience mentioned",
      "context": "3 years of customer service experience",
      "isSecurityRelated": false
    }
  ]
}"""


def group_by_category(skills: list[SkillCatalogEntry]) -> dict[str, list[SkillCatalogEntry]]:
    """Group catalog entries by category, keeping first-seen category order."""
    grouped: dict[str, list[SkillCatalogEntry]] = {}
    for skill in skills:
        grouped.setdefault(skill.category, []).append(skill)
    return grouped


def build_extraction_prompt(cv_text: str, skills: list[SkillCatalogEntry]) -> str:
    """User prompt: the catalog as guidance, then the CV to analyse."""
    catalog_section = "\n\n".join(
        f"**{category}:**\n" + "\n".join(f"- {s.name}" for s in entries)
        for category, entries in group_by_category(skills).items()
    )

    return f"""Analyse this CV and identify ALL of the candidate's skills.

Known skill categories:

{catalog_section}

You may also report skills missing from this list if the CV clearly mentions them.

CV TO ANALYSE:
---
{cv_text}
---

IMPORTANT:
- Be precise when assessing the level
- Base the level on years of experience when available
- Give a realistic confidence score (0.5-1.0)
- Quote the exact context from the CV
- Do not invent skills that are not mentioned

Respond with valid JSON only."""
