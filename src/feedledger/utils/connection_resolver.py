"""Utility for resolving connection account names to IDs."""

from feedledger.domain.connection import ConnectionService
from feedledger.domain.errors import NotFoundError


def resolve_connection(connection_service: ConnectionService, connection: str | int) -> int:
    """Resolve a connection ID or account name to a connection ID.

    Args:
        connection_service: ConnectionService instance
        connection: Connection ID (int or numeric string) or account name

    Returns:
        Connection ID

    Raises:
        NotFoundError: If no connection matches
    """
    try:
        connection_id = int(connection)
    except (ValueError, TypeError):
        connection_id = None

    if connection_id is not None:
        return connection_service.get_connection(connection_id).id

    for conn in connection_service.list_connections():
        if conn.account_name == connection:
            return conn.id

    raise NotFoundError(f"Bank connection '{connection}' not found")
