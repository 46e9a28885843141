"""Aggregator client factory functions."""

import os
from typing import Optional

from ledgersync.aggregator.plaid import PLAID_ENVIRONMENTS, PlaidClient
from ledgersync.domain.errors import ValidationError


def create_plaid_client(
    client_id: Optional[str] = None,
    secret: Optional[str] = None,
    environment: Optional[str] = None,
) -> PlaidClient:
    """Create a Plaid client.

    Args:
        client_id: Plaid client ID. If None, reads PLAID_CLIENT_ID
        secret: Plaid secret. If None, reads PLAID_SECRET
        environment: sandbox, development or production. If None, reads
            PLAID_ENV and defaults to sandbox

    Raises:
        ValidationError: If credentials are missing or the environment is unknown
    """
    client_id = client_id or os.environ.get("PLAID_CLIENT_ID")
    secret = secret or os.environ.get("PLAID_SECRET")
    environment = environment or os.environ.get("PLAID_ENV", "sandbox")

    if not client_id or not secret:
        raise ValidationError(
            "Plaid credentials missing. Set PLAID_CLIENT_ID and PLAID_SECRET."
        )
    if environment not in PLAID_ENVIRONMENTS:
        raise ValidationError(
            f"Unknown Plaid environment '{environment}'. Supported: {', '.join(PLAID_ENVIRONMENTS)}"
        )

    return PlaidClient(client_id=client_id, secret=secret, environment=environment)
