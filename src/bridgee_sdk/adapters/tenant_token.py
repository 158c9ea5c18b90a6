"""Tenant token encoding for the x-tenant-token header.

The token is base64("<tenant_id>;<tenant_key>"). It is an obfuscation for
header transport, not a signature: anyone holding the header can decode the
key, so it offers no tamper resistance.
"""

import base64

from bridgee_sdk.errors import InvalidArgumentError

TENANT_TOKEN_HEADER = "x-tenant-token"
_SEPARATOR = ";"


def encode_tenant_token(tenant_id: str, tenant_key: str) -> str:
    """Encode tenant credentials into the x-tenant-token header value.

    Args:
        tenant_id: Tenant identifier.
        tenant_key: Tenant secret.

    Returns:
        Standard base64 (padded, unwrapped) of the UTF-8 bytes of
        "<tenant_id>;<tenant_key>".

    Raises:
        InvalidArgumentError: If either argument is None or empty.
    """
    if not tenant_id or not tenant_key:
        raise InvalidArgumentError("ID and key must not be null or empty")

    combined = f"{tenant_id}{_SEPARATOR}{tenant_key}"
    return base64.b64encode(combined.encode("utf-8")).decode("ascii")


__all__ = ["TENANT_TOKEN_HEADER", "encode_tenant_token"]
