"""IaaS API Mock for service testing.

In-memory implementations of the remote API protocols in ``iaas_service.api``
so services can be exercised without a remote endpoint.

Key Features:
- In-memory state per resource type, seeded with ``add()``
- Every call recorded with the CallContext it carried
- Stale settings hashes rejected with ConflictError
- Error injection per method with ``fail_on()``

Usage:
    from iaas_mock import MockServerAPI

    api = MockServerAPI()
    api.add(Server(id=1, zone="is1a", name="web"))
    service = ServerService(api)
    service.update(UpdateRequest(zone="is1a", id=1, name="web-2"))

    assert api.call_names == ["read", "update"]
"""

from .calls import MockAPI, MockCall
from .clients import (
    MockContainerRegistryAPI,
    MockEnhancedDBAPI,
    MockProxyLBAPI,
    MockServerAPI,
    MockSSHKeyAPI,
    MockVPCRouterAPI,
)

__all__ = [
    "MockAPI",
    "MockCall",
    "MockContainerRegistryAPI",
    "MockEnhancedDBAPI",
    "MockProxyLBAPI",
    "MockSSHKeyAPI",
    "MockServerAPI",
    "MockVPCRouterAPI",
]
