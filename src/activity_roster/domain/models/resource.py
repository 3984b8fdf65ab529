"""Resource domain model."""

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Resource:
    """A capacity-limited activity that actors can join or leave."""

    id: str
    capacity: int
    confirmed_count: int
    actor_membership: bool = False
    creator_id: str | None = None
    title: str = ""

    @property
    def available_spots(self) -> int:
        """Remaining spots, always derived from capacity and confirmed count."""
        return max(0, self.capacity - self.confirmed_count)

    @property
    def is_full(self) -> bool:
        """Whether no spots are left."""
        return self.available_spots == 0

    def with_membership(self, joined: bool, delta: int = 0) -> "Resource":
        """Return a copy with the actor flag set and the count shifted by delta.

        The count never drops below zero.
        """
        return replace(
            self,
            actor_membership=joined,
            confirmed_count=max(0, self.confirmed_count + delta),
        )
