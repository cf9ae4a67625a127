"""
RemoteDataService Interface for the hosted database
Unified interface for the Supabase backend and the in-memory development service
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Union

from churchbook.core.models import EntityCollection


class RemoteDataService(ABC):
    """
    Abstract base class for remote data services

    Every method raises ConnectivityError when the service cannot be reached
    and RemoteRejectionError when it answers but refuses the request.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def create(self, collection: Union[EntityCollection, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a record

        Creation is an upsert by id, so replaying an INSERT twice is harmless.

        Returns:
            The record as stored by the service
        """
        pass

    @abstractmethod
    async def update(self, collection: Union[EntityCollection, str], record_id: Any,
                     payload: Dict[str, Any]) -> Dict[str, Any]:
        """Apply changed fields to an existing record and return the stored record"""
        pass

    @abstractmethod
    async def delete(self, collection: Union[EntityCollection, str], record_id: Any) -> None:
        """Delete a record (soft delete for ledger collections)"""
        pass

    @abstractmethod
    async def list(self, collection: Union[EntityCollection, str]) -> List[Dict[str, Any]]:
        """List live records of a collection"""
        pass

    async def health_check(self) -> bool:
        """Whether the service currently answers requests"""
        return True

    async def close(self) -> None:
        """Release network resources"""
        pass
