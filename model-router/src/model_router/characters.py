"""Character interaction support.

Turns a ``{character, message, context}`` interaction into an ordinary
generation request. A character is either an inline persona or the id
of one held by a ``CharacterRepository``.
"""

import asyncio
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from model_router.errors import CharacterNotFoundError
from model_router.providers.models import GenerationRequest


CHARACTER_TASK_TYPE = "character-interaction"


class CharacterProfile(BaseModel):
    """Persona used to frame a character's replies."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = Field(default=None, description="Character id")
    name: str = Field(min_length=1, description="Character name")
    display_name: str | None = Field(default=None, alias="displayName")
    description: str | None = Field(default=None)
    personality: dict[str, Any] = Field(default_factory=dict)
    system_prompt: str | None = Field(default=None, alias="systemPrompt")

    @property
    def speaker(self) -> str:
        return self.display_name or self.name


class CharacterRepository(Protocol):
    """Lookup of stored characters."""

    async def get(self, character_id: str) -> CharacterProfile | None:
        ...


class InMemoryCharacterRepository:
    """Character store held in process memory."""

    def __init__(self, characters: list[CharacterProfile] | None = None) -> None:
        self._characters: dict[str, CharacterProfile] = {}
        self._lock = asyncio.Lock()
        for character in characters or []:
            self._characters[character.id or character.name] = character

    async def add(self, character: CharacterProfile) -> None:
        async with self._lock:
            self._characters[character.id or character.name] = character

    async def get(self, character_id: str) -> CharacterProfile | None:
        async with self._lock:
            return self._characters.get(character_id)


def _format_context(context: Any) -> list[str]:
    """Render interaction context as prompt lines."""
    if context is None or context == "" or context == {} or context == []:
        return []
    if isinstance(context, str):
        return [context]
    if isinstance(context, list):
        lines = []
        for item in context:
            if isinstance(item, dict) and "content" in item:
                lines.append(f"{item.get('role', 'user')}: {item['content']}")
            else:
                lines.append(str(item))
        return lines
    if isinstance(context, dict):
        return [f"{key}: {value}" for key, value in context.items()]
    return [str(context)]


class CharacterPromptBuilder:
    """Builds generation requests for character interactions."""

    def __init__(self, repository: CharacterRepository | None = None) -> None:
        self._repository = repository or InMemoryCharacterRepository()

    async def resolve(self, character: str | dict[str, Any] | CharacterProfile) -> CharacterProfile:
        """Resolve a character reference to a profile.

        Raises:
            CharacterNotFoundError: If an id is not in the repository.
        """
        if isinstance(character, CharacterProfile):
            return character
        if isinstance(character, dict):
            return CharacterProfile.model_validate(character)
        profile = await self._repository.get(character)
        if profile is None:
            raise CharacterNotFoundError(character)
        return profile

    def render_prompt(
        self,
        profile: CharacterProfile,
        message: str,
        context: Any = None,
    ) -> str:
        lines = [f"You are {profile.speaker}."]
        if profile.description:
            lines.append(profile.description)
        if profile.personality:
            traits = ", ".join(f"{k}: {v}" for k, v in profile.personality.items())
            lines.append(f"Personality: {traits}")
        if profile.system_prompt:
            lines.append(profile.system_prompt)

        context_lines = _format_context(context)
        if context_lines:
            lines.append("")
            lines.append("Context:")
            lines.extend(context_lines)

        lines.append("")
        lines.append(f"user: {message}")
        lines.append(f"{profile.speaker}:")
        return "\n".join(lines)

    async def build(
        self,
        character: str | dict[str, Any] | CharacterProfile,
        message: str,
        context: Any = None,
        **kwargs: Any,
    ) -> tuple[CharacterProfile, GenerationRequest]:
        """Build the generation request for an interaction.

        Args:
            character: Character id, inline persona or profile.
            message: The user's message.
            context: Optional string, mapping or list of prior messages.
            **kwargs: Other GenerationRequest fields (selection, caller_id).

        Returns:
            The resolved profile and the request to dispatch.
        """
        profile = await self.resolve(character)
        kwargs.setdefault("task_type", CHARACTER_TASK_TYPE)
        request = GenerationRequest(
            prompt=self.render_prompt(profile, message, context),
            **kwargs,
        )
        return profile, request
