"""
Fraud Prevention Headers

Builds the Gov-Client-* / Gov-Vendor-* headers the tax authority requires
on every API call, for the WEB_APP_VIA_SERVER connection method.

Business Rules:
    - Gov-Client-Public-IP: first X-Forwarded-For address outside the
      private, loopback and link-local ranges
    - Gov-Client-User-IDs: server=<owner id>, percent-encoded
    - Gov-Vendor-Public-IP: configured server address, else the client IP
    - Gov-Vendor-Forwarded: one by=<vendor>&for=<hop> entry per forwarded hop
    - Browser-collected Gov-Client-* values are passed through unchanged
    - Gov-Vendor-License-IDs is never sent (no licensed component exists)

Headers are built once at ingest and travel with the command, so a
redelivered message reports the original caller, not the worker host.
"""

import ipaddress
import logging
from typing import Mapping, Optional
from urllib.parse import quote

logger = logging.getLogger(__name__)

CONNECTION_METHOD = "WEB_APP_VIA_SERVER"

PASSTHROUGH_HEADERS = (
    "Gov-Client-Browser-JS-User-Agent",
    "Gov-Client-Multi-Factor",
    "Gov-Client-Public-IP-Timestamp",
    "Gov-Client-Public-Port",
    "Gov-Client-Screens",
    "Gov-Client-Timezone",
    "Gov-Client-Window-Size",
    "Gov-Client-Browser-Do-Not-Track",
    "Gov-Test-Scenario",
)

_PLACEHOLDER_VALUES = frozenset({"", "undefined", "null"})


_NON_PUBLIC_NETWORKS = tuple(
    ipaddress.ip_network(network)
    for network in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "::1/128",
        "fe80::/10",
    )
)


def _encode(value: str) -> str:
    return quote(value, safe="")


def _is_public(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return not any(ip in network for network in _NON_PUBLIC_NETWORKS)


def first_public_ip(forwarded_for: str) -> Optional[str]:
    """
    First public address in an X-Forwarded-For value.

    Examples:
        >>> first_public_ip("10.0.0.1, 203.0.113.7, 198.51.100.2")
        '203.0.113.7'
    """
    for hop in forwarded_for.split(","):
        hop = hop.strip()
        if hop and _is_public(hop):
            return hop
    return None


def build_fraud_headers(
    request_headers: Mapping[str, str],
    user_id: str,
    product_name: str,
    product_version: str,
    server_public_ip: Optional[str] = None,
) -> dict[str, str]:
    """
    Fraud prevention headers for one caller request.

    Args:
        request_headers: Incoming HTTP headers (looked up case-insensitively)
        user_id: Identifier of the caller in this service
        product_name: Vendor product name
        product_version: Vendor product version
        server_public_ip: Public address of this service, if known

    Returns:
        Header name -> value, ready to merge into the downstream request
    """
    lowered = {name.lower(): value for name, value in request_headers.items()}
    headers: dict[str, str] = {}

    hops = [
        hop.strip()
        for hop in lowered.get("x-forwarded-for", "").split(",")
        if hop.strip()
    ]
    client_ip = first_public_ip(",".join(hops))
    if client_ip:
        headers["Gov-Client-Public-IP"] = client_ip
    else:
        logger.warning("No public client IP found in X-Forwarded-For")

    device_id = lowered.get("x-device-id") or lowered.get("gov-client-device-id")
    if device_id and device_id != "unknown-device":
        headers["Gov-Client-Device-ID"] = device_id

    headers["Gov-Client-User-IDs"] = f"server={_encode(user_id)}"
    headers["Gov-Client-Connection-Method"] = CONNECTION_METHOD

    vendor_ip = server_public_ip or client_ip
    if vendor_ip:
        headers["Gov-Vendor-Public-IP"] = vendor_ip
        if hops:
            headers["Gov-Vendor-Forwarded"] = ",".join(
                f"by={_encode(vendor_ip)}&for={_encode(hop)}" for hop in hops
            )

    headers["Gov-Vendor-Product-Name"] = _encode(product_name)
    headers["Gov-Vendor-Version"] = f"{_encode(product_name)}={_encode(product_version)}"

    for name in PASSTHROUGH_HEADERS:
        value = lowered.get(name.lower())
        if value is not None and value not in _PLACEHOLDER_VALUES:
            headers[name] = value

    return headers
