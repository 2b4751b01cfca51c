"""QuickBooks Online accounting API poller."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from ..models.integration import UserIntegration
from .base import BasePoller, MissingCredentialsError

INVOICE_QUERY = "SELECT * FROM Invoice MAXRESULTS 50"


class QuickBooksPoller(BasePoller):
    service_name = "quickbooks"
    source = "quickbooks_api_poll"
    event_type = "quickbooks.financial_activity"

    def _realm_id(self, integration: UserIntegration, credentials: dict[str, Any]) -> str:
        realm_id = credentials.get("realm_id") or integration.external_id
        if not realm_id:
            raise MissingCredentialsError(f"Missing credentials for user {integration.user_id}")
        return str(realm_id)

    async def fetch_metrics(
        self,
        client: httpx.AsyncClient,
        integration: UserIntegration,
        credentials: dict[str, Any],
        *,
        now: datetime,
    ) -> dict[str, Any]:
        realm_id = self._realm_id(integration, credentials)
        base = f"{self.settings.quickbooks_api_base}/company/{realm_id}"
        headers = {
            "Authorization": f"Bearer {credentials['access_token']}",
            "Accept": "application/json",
        }

        company = await self.request_json(
            client, "GET", f"{base}/companyinfo/{realm_id}", headers=headers
        )
        invoices = await self.request_json(
            client, "GET", f"{base}/query", headers=headers, params={"query": INVOICE_QUERY}
        )

        invoice_items = (invoices.get("QueryResponse") or {}).get("Invoice") or []
        return {
            "realm_id": realm_id,
            "company_name": (company.get("CompanyInfo") or {}).get("CompanyName"),
            "invoice_count": len(invoice_items),
            "open_balance": round(
                sum(float(invoice.get("Balance") or 0) for invoice in invoice_items), 2
            ),
        }

    def has_activity(self, metrics: dict[str, Any]) -> bool:
        return metrics.get("invoice_count", 0) > 0
