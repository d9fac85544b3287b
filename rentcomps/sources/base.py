"""Abstract base class for listing sources."""

from abc import ABC, abstractmethod

from rentcomps.core.config import SearchConstraints
from rentcomps.core.schemas import RentalRecord, SubjectCriteria


class ListingSource(ABC):
    """Base class that every listing source must implement."""

    @property
    @abstractmethod
    def source_id(self) -> str:
        """Unique identifier for this source (e.g. 'rets:paragon')."""

    @abstractmethod
    async def search(
        self, subject: SubjectCriteria, constraints: SearchConstraints,
    ) -> list[RentalRecord]:
        """Run a search and return valid (unscored) rental records."""
