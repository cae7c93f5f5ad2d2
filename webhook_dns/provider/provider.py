"""
Provider capability interface.

A webhook server process runs exactly one provider. The provider owns all durable
state and is responsible for serializing access to its own backing store.
"""

from typing import List, Protocol, Sequence, runtime_checkable

from webhook_dns.models.models import Changes, Endpoint
from webhook_dns.protocol.errors import ProviderError

__all__ = ["Provider", "ProviderError"]


@runtime_checkable
class Provider(Protocol):
    """
    Operations a provider must supply to be served over the webhook protocol.

    Providers signal backing store failures by raising ProviderError. A provider may
    also define an async `healthz()` returning a status string; providers without
    one are reported healthy.
    """

    async def list_records(self) -> List[Endpoint]:
        """
        Returns the current records within the managed domains.

        The result must be a snapshot taken at a single point in time.

        Returns:
            List[Endpoint]: Current records
        """
        ...

    async def adjust_endpoints(self, endpoints: Sequence[Endpoint]) -> List[Endpoint]:
        """
        Adjusts endpoints the orchestrator is about to create or update.

        Each input record must appear exactly once in the output unless the
        provider declines to manage it, in which case it is left out.

        Args:
            endpoints: Candidate endpoints

        Returns:
            List[Endpoint]: Adjusted endpoints, in any order
        """
        ...

    async def apply_changes(self, changes: Changes) -> None:
        """
        Applies the whole change set, or raises ProviderError without applying any.

        Args:
            changes: Changes to apply
        """
        ...
