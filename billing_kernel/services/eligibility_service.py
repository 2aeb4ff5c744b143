"""
EligibilityService -- bulk toggle of ``exclude_from_reset``.

One batch UPDATE keyed by id.  Not audited: eligibility is configuration,
not a customer lifecycle event.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import update

from billing_kernel.db.errors import translate_store_errors
from billing_kernel.db.schema import SchemaProbe
from billing_kernel.logging_config import get_logger
from billing_kernel.models.customer import Customer
from billing_kernel.services.base import BaseService
from billing_kernel.services.reset_service import CUSTOMER_TABLE, chunked

logger = get_logger("services.eligibility")


class EligibilityService(BaseService[Customer]):

    def set_excluded(self, customer_ids: Iterable[str], excluded: bool) -> int:
        """
        Set ``exclude_from_reset`` for every listed customer.

        Returns:
            Number of rows updated (unknown ids are ignored).

        Raises:
            SchemaMissingError: ``exclude_from_reset`` is not provisioned.
        """
        ids = list(dict.fromkeys(customer_ids))
        if not ids:
            return 0

        SchemaProbe(self.session).require(CUSTOMER_TABLE, ("id", "exclude_from_reset"))
        updated = 0
        with translate_store_errors(
            "set_excluded", table=CUSTOMER_TABLE, column="exclude_from_reset",
        ):
            for chunk in chunked(ids):
                result = self.session.execute(
                    update(Customer)
                    .where(Customer.id.in_(chunk))
                    .values({Customer.exclude_from_reset: excluded}),
                    execution_options={"synchronize_session": "fetch"},
                )
                updated += result.rowcount or 0
            self.session.flush()

        logger.info(
            "eligibility_updated",
            extra={"requested": len(ids), "updated": updated, "excluded": excluded},
        )
        return updated
