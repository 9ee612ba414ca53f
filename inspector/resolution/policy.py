"""
Known-Identifier Policy.
A configured identifier is always checked, even when the page never references it
(e.g. the project is injected through a tag manager).
"""

from ..core.config import settings


class KnownIdentifierPolicy:
    """Decides which identifiers a resolution checks, and in what order."""

    def __init__(self, known_identifier: str | None = None):
        """
        Args:
            known_identifier: Identifier that is always checked. Defaults to
                `settings.known_project_id`; empty disables the policy.
        """
        if known_identifier is None:
            known_identifier = settings.known_project_id
        self.known_identifier = str(known_identifier).strip() or None

    def candidate_identifiers(
        self,
        discovered: list[str] | None = None,
        runtime_identifier: str | None = None,
    ) -> list[str]:
        """
        Ordered, unique identifiers to check.

        Args:
            discovered: Identifiers observed in page markup
            runtime_identifier: Identifier reported by live runtime state

        Returns:
            Runtime identifier first, then discovered ones, then the known
            identifier if it was not already observed
        """
        candidates: list[str] = []
        for identifier in [runtime_identifier, *(discovered or [])]:
            if identifier is None:
                continue
            identifier = str(identifier).strip()
            if identifier and identifier not in candidates:
                candidates.append(identifier)

        if self.known_identifier and self.known_identifier not in candidates:
            candidates.append(self.known_identifier)

        return candidates

    def is_known(self, identifier: str | None) -> bool:
        return bool(self.known_identifier) and identifier == self.known_identifier
