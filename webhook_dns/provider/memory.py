"""
In-memory provider module.

This module holds a dict-backed provider used for development, demos and tests of
the webhook protocol. Records live only as long as the process.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from webhook_dns.models.models import Changes, DomainFilter, Endpoint, EndpointKey
from webhook_dns.protocol.errors import ProviderError


class InMemoryProvider:
    """
    Provider that keeps records in a dictionary keyed by identity key.
    """

    def __init__(
        self,
        records: Optional[Iterable[Endpoint]] = None,
        domain_filter: Optional[DomainFilter] = None,
        default_ttl: Optional[int] = None,
        dry_run: bool = False,
    ):
        """
        Initialize an InMemoryProvider.

        Args:
            records: Records present at startup
            domain_filter: Domains this provider manages; everything when None
            default_ttl: TTL filled in by adjust_endpoints for endpoints without one
            dry_run: Whether to log changes instead of applying them
        """
        self.domain_filter = domain_filter or DomainFilter()
        self.default_ttl = default_ttl
        self.dry_run = dry_run
        self.logger = logging.getLogger("webhook-dns.provider.memory")
        self._records: Dict[EndpointKey, Endpoint] = {
            endpoint.key: endpoint for endpoint in records or []
        }

    async def list_records(self) -> List[Endpoint]:
        """
        Returns a snapshot of all stored records.

        Returns:
            List[Endpoint]: List of endpoints
        """
        return list(self._records.values())

    async def adjust_endpoints(self, endpoints: Sequence[Endpoint]) -> List[Endpoint]:
        """
        Drops endpoints outside the managed domains and fills in the default TTL.

        Args:
            endpoints: Candidate endpoints

        Returns:
            List[Endpoint]: Adjusted endpoints
        """
        adjusted = []
        for endpoint in endpoints:
            if not self.domain_filter.matches(endpoint.dns_name):
                self.logger.debug(
                    f"Declining {endpoint.id}: outside managed domains"
                )
                continue
            if endpoint.record_ttl is None and self.default_ttl is not None:
                endpoint = endpoint.with_changes(record_ttl=self.default_ttl)
            adjusted.append(endpoint)
        return adjusted

    async def apply_changes(self, changes: Changes) -> None:
        """
        Applies the specified changes atomically.

        Creates and updates replace any stored record with the same identity key;
        deleting a missing record is a no-op.

        Args:
            changes: Changes to apply

        Raises:
            ProviderError: If any change touches a domain outside the filter
        """
        for endpoint in (*changes.create, *changes.update_new, *changes.delete):
            if not self.domain_filter.matches(endpoint.dns_name):
                raise ProviderError(
                    f"record {endpoint.id} is outside the managed domains"
                )

        if changes.is_empty():
            self.logger.debug("No changes to apply")
            return

        if self.dry_run:
            self.logger.info("Dry run mode, not applying changes")
            return

        # New state is built on a copy and swapped in at the end
        records = dict(self._records)

        for endpoint in changes.create:
            self.logger.debug(f"Creating record {endpoint.id} -> {list(endpoint.targets)}")
            records[endpoint.key] = endpoint

        for old_endpoint, new_endpoint in zip(changes.update_old, changes.update_new):
            self.logger.debug(
                f"Updating record {new_endpoint.id}: "
                f"{list(old_endpoint.targets)} -> {list(new_endpoint.targets)}"
            )
            records[new_endpoint.key] = new_endpoint

        for endpoint in changes.delete:
            if records.pop(endpoint.key, None) is None:
                self.logger.debug(f"Record {endpoint.id} already absent, skipping delete")
            else:
                self.logger.debug(f"Deleted record {endpoint.id}")

        self._records = records
        self.logger.info(
            f"Applied changes: {len(changes.create)} creates, "
            f"{len(changes.update_new)} updates, {len(changes.delete)} deletes"
        )

    async def healthz(self) -> str:
        return "ok"
