from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional


class VocabularyBackend(ABC):
    """Abstract base class for the services that know the target vocabularies."""

    @abstractmethod
    def list_terms(self) -> Dict[str, str]:
        """
        List all property terms with their full label.
        Returns: Dict of labels by term, e.g. {'dcterms:title': 'Dublin Core:Title'}
        """
        pass

    @abstractmethod
    def get_property_id(self, term: str) -> Optional[int | str]:
        """Find a property id by exact term."""
        pass

    @abstractmethod
    def get_custom_vocab_id(self, label: str) -> Optional[int | str]:
        """Find a custom vocab id by exact label."""
        pass

    @abstractmethod
    def datatype_names(self) -> List[str]:
        """List the registered datatype names."""
        pass
