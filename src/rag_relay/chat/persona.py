"""Character persona configuration and system-prompt builder."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from rag_relay.errors import ConfigurationError

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

_MAX_EXAMPLES = 3
_RESPONSE_PREVIEW = 100


class PersonaSection(BaseModel):
    """Base for persona models: a `null` field or list item counts as missing."""

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if value is None:
                continue
            if isinstance(value, list):
                value = [item for item in value if item is not None]
            cleaned[key] = value
        return cleaned


class Demographics(PersonaSection):
    age: int | str = "N/A"
    gender: str = "N/A"
    nationality: str = "N/A"
    education_level: str = "N/A"
    region_of_origin: str = "N/A"
    languages: list[str] = Field(default_factory=list)


class Backstory(PersonaSection):
    background_summary: str = "Not specified."


class PhysicalDescription(PersonaSection):
    height: str = "N/A"
    build: str = "N/A"
    clothing_style: str = "appropriate clothing"
    voice_quality: str = "Clear voice"


class PsychologicalProfile(PersonaSection):
    personality_summary: str = "A complex individual."
    psychological_strengths: str = "Various strengths."
    psychological_vulnerabilities: str = "Some vulnerabilities."
    core_desires: str = "Standard desires."
    core_fears: str = "Standard fears."
    stress_response: str = "Manages stress well."


class CognitiveProfile(PersonaSection):
    cognitive_strengths: list[str] = Field(default_factory=lambda: ["Intelligent"])
    problem_solving_approach: str = "Logical approach"


class EmotionalProfile(PersonaSection):
    dominant_emotions: list[str] = Field(default_factory=lambda: ["Generally positive"])
    empathy_level: str = "Empathetic"


class SocialProfile(PersonaSection):
    social_orientation: str = "Sociable"
    communication_style: str = "Clear communicator"


class ProfessionalProfile(PersonaSection):
    primary_occupation: str | None = None
    career_path: str = "Experienced."
    work_ethic: str = "Hardworking."


class Trait(PersonaSection):
    name: str = "Trait"
    description: str = "N/A"


class Skill(PersonaSection):
    name: str = "Skill"
    description: str = "N/A"


class TraitEntry(PersonaSection):
    trait: Trait = Field(default_factory=Trait)
    intensity: int | float | str = "N/A"


class SkillEntry(PersonaSection):
    skill: Skill = Field(default_factory=Skill)
    level: int | float | str = "N/A"


class PersonaConfig(PersonaSection):
    """Character profile; every section falls back to neutral defaults."""

    demographics: Demographics = Field(default_factory=Demographics)
    backstory: Backstory = Field(default_factory=Backstory)
    physical_description: PhysicalDescription = Field(default_factory=PhysicalDescription)
    psychological_profile: PsychologicalProfile = Field(default_factory=PsychologicalProfile)
    cognitive_profile: CognitiveProfile = Field(default_factory=CognitiveProfile)
    emotional_profile: EmotionalProfile = Field(default_factory=EmotionalProfile)
    social_profile: SocialProfile = Field(default_factory=SocialProfile)
    professional_profile: ProfessionalProfile = Field(default_factory=ProfessionalProfile)
    traits: list[TraitEntry] = Field(default_factory=list)
    skills: list[SkillEntry] = Field(default_factory=list)
    situational_responses: dict[str, str] = Field(default_factory=dict)

    @field_validator("situational_responses", mode="before")
    @classmethod
    def drop_empty_responses(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: text for key, text in value.items() if text is not None}
        return value


def load_persona(path: str | Path) -> PersonaConfig:
    file_path = Path(path)
    try:
        return PersonaConfig.model_validate_json(file_path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid persona file {file_path}: {exc}") from exc


class PersonaPromptBuilder:
    """Renders a `PersonaConfig` into a sectioned system prompt."""

    def __init__(self, persona: PersonaConfig) -> None:
        self.persona = persona

    def build(self) -> str:
        sections = [
            self._opening(),
            self._identity(),
            self._physical(),
            self._psychological(),
            self._cognitive_emotional(),
            self._social_professional(),
            self._traits_and_skills(),
            self._situational(),
            self._guidelines(),
        ]
        return "\n\n".join(sections)

    def _opening(self) -> str:
        occupation = self.persona.professional_profile.primary_occupation or "a character"
        return (
            f"You are {occupation}.\n"
            "Your persona is defined by the following details:"
        )

    def _identity(self) -> str:
        d = self.persona.demographics
        languages = ", ".join(d.languages) if d.languages else "Not specified"
        return "\n".join(
            [
                "**Core Identity & Background:**",
                f"- Demographics: Age {d.age}, {d.gender}, {d.nationality}. "
                f"Education: {d.education_level}. Origin: {d.region_of_origin}.",
                f"- Backstory Summary: {self.persona.backstory.background_summary}",
                f"- Languages: {languages}.",
            ]
        )

    def _physical(self) -> str:
        p = self.persona.physical_description
        return "\n".join(
            [
                "**Physical & Presentation:**",
                f"- Description: {p.height} height, {p.build} build. Wears {p.clothing_style}.",
                f"- Voice: {p.voice_quality}.",
            ]
        )

    def _psychological(self) -> str:
        p = self.persona.psychological_profile
        return "\n".join(
            [
                "**Psychological Profile:**",
                f"- Summary: {p.personality_summary}",
                f"- Strengths: {p.psychological_strengths}",
                f"- Vulnerabilities: {p.psychological_vulnerabilities}",
                f"- Desires: {p.core_desires}",
                f"- Fears: {p.core_fears}",
                f"- Stress Response: {p.stress_response}",
            ]
        )

    def _cognitive_emotional(self) -> str:
        c = self.persona.cognitive_profile
        e = self.persona.emotional_profile
        return "\n".join(
            [
                "**Cognitive & Emotional:**",
                f"- Cognitive Strengths: {', '.join(c.cognitive_strengths)}.",
                f"- Problem Solving: {c.problem_solving_approach}.",
                f"- Dominant Emotions: {', '.join(e.dominant_emotions)}.",
                f"- Empathy: {e.empathy_level}.",
            ]
        )

    def _social_professional(self) -> str:
        s = self.persona.social_profile
        p = self.persona.professional_profile
        return "\n".join(
            [
                "**Social & Professional:**",
                f"- Social Style: {s.social_orientation}. Communication: {s.communication_style}.",
                f"- Occupation: {p.primary_occupation or 'Professional'}.",
                f"- Career Path: {p.career_path}",
                f"- Work Ethic: {p.work_ethic}",
            ]
        )

    def _traits_and_skills(self) -> str:
        traits = [
            f"- {t.trait.name}: {t.trait.description} (Intensity: {t.intensity})"
            for t in self.persona.traits[:_MAX_EXAMPLES]
        ] or ["- Adaptable"]
        skills = [
            f"- {s.skill.name}: {s.skill.description} (Level: {s.level})"
            for s in self.persona.skills[:_MAX_EXAMPLES]
        ] or ["- Competent"]
        return "\n".join(["**Key Traits & Skills (Examples):**", *traits, *skills])

    def _situational(self) -> str:
        responses = [
            f'- When {key.replace("_", " ")}: "{value[:_RESPONSE_PREVIEW]}..."'
            for key, value in self.persona.situational_responses.items()
        ] or ["- Responds appropriately to situations."]
        return "\n".join(["**Situational Responses (Examples):**", *responses])

    @staticmethod
    def _guidelines() -> str:
        return "\n".join(
            [
                "**Interaction Guidelines:**",
                "- Maintain this persona consistently throughout the conversation.",
                "- Base your responses on the provided details.",
                "- Speak naturally as this character.",
                "- Do not reveal that you are an AI or that you are following a persona description.",
                "- If asked about something not covered in your profile, respond plausibly "
                "based on the established character.",
            ]
        )


def system_prompt_for(persona_path: str | Path | None) -> str:
    """Build the system prompt from a persona file, or the default prompt."""

    if persona_path is None:
        return DEFAULT_SYSTEM_PROMPT
    return PersonaPromptBuilder(load_persona(persona_path)).build()
