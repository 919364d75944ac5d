"""Tests for the server requests, apply request builder and service."""

import threading

import pydantic
import pytest

from iaas_mock import MockServerAPI
from iaas_service.api import CallContext
from iaas_service.errors import (
    ConflictError,
    NotFoundError,
    OperationCancelledError,
    PreconditionError,
    PreconditionReason,
    ValidationError,
)
from iaas_service.models import Server, ServerConnectedDisk, ServerInterface
from iaas_service.server import (
    ApplyRequest,
    ChangePlanRequest,
    CreateRequest,
    DeleteRequest,
    DiskSetting,
    FindRequest,
    NetworkInterface,
    ReadRequest,
    ServerService,
    UpdateRequest,
)
from iaas_service.types import Commitment, InstanceStatus, UpstreamType

ZONE = "is1a"
SERVER_ID = 113000000001


@pytest.fixture
def snapshot() -> Server:
    """A stopped server with a shared NIC, a switched NIC and one disk."""
    return Server(
        id=SERVER_ID,
        zone=ZONE,
        name="x",
        description="d",
        tags=["t1"],
        icon_id=5,
        cpu=2,
        memory_mb=4096,
        instance_status=InstanceStatus.DOWN,
        interfaces=[
            ServerInterface(upstream_type=UpstreamType.SHARED),
            ServerInterface(upstream_type=UpstreamType.SWITCH, switch_id=113000000099, user_ip_address="192.0.2.10"),
        ],
        disks=[ServerConnectedDisk(id=113000000010, name="disk", size_mb=20 * 1024)],
    )


@pytest.fixture
def running(snapshot: Server) -> Server:
    return snapshot.model_copy(update={"instance_status": InstanceStatus.UP})


@pytest.fixture
def api(snapshot: Server) -> MockServerAPI:
    api = MockServerAPI()
    api.add(snapshot)
    return api


@pytest.fixture
def service(api: MockServerAPI) -> ServerService:
    return ServerService(api)


class TestApplyRequestBuilder:
    """Tests for UpdateRequest.apply_request()."""

    def test_empty_patch_equals_snapshot(self, snapshot: Server) -> None:
        """Test that a no-op patch reproduces the snapshot's apply shape."""
        apply = UpdateRequest(zone=ZONE, id=SERVER_ID).apply_request(snapshot)

        assert apply == ApplyRequest.from_snapshot(ZONE, snapshot)

    def test_snapshot_mapping(self, snapshot: Server) -> None:
        """Test how interfaces and disks are carried into the apply request."""
        apply = ApplyRequest.from_snapshot(ZONE, snapshot)

        assert apply.memory_gb == 4
        assert [nic.upstream for nic in apply.network_interfaces] == ["shared", "113000000099"]
        assert apply.network_interfaces[1].user_ip_address == "192.0.2.10"
        assert apply.disks == [
            DiskSetting(id=113000000010, name="disk", size_gb=0, size_mb=20 * 1024, server_id=SERVER_ID)
        ]

    def test_disks_carry_over_exactly(self, snapshot: Server) -> None:
        """Test that unnamed disks and sizes off the GB grid are kept as stored."""
        current = snapshot.model_copy(update={"disks": [ServerConnectedDisk(id=10, name="", size_mb=1536)]})

        apply = UpdateRequest(zone=ZONE, id=SERVER_ID).apply_request(current)

        assert apply.disks[0].name == ""
        assert apply.disks[0].size_mb == 1536
        assert apply.disks[0].effective_size_mb == 1536

    def test_new_disk_needs_name(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            DiskSetting(size_gb=40)

    def test_absent_fields_carry_over(self, snapshot: Server) -> None:
        """Test that only the patched fields change."""
        apply = UpdateRequest(zone=ZONE, id=SERVER_ID, name="x-upd", tags=["t1-upd"]).apply_request(snapshot)

        assert apply.name == "x-upd"
        assert apply.tags == ["t1-upd"]
        assert apply.description == "d"
        assert apply.icon_id == 5
        assert apply.id == SERVER_ID

    def test_empty_values_override(self, snapshot: Server) -> None:
        """Test that clearing description, tags and NICs is an update."""
        apply = UpdateRequest(
            zone=ZONE, id=SERVER_ID, description="", tags=[], network_interfaces=[]
        ).apply_request(snapshot)

        assert apply.description == ""
        assert apply.tags == []
        assert apply.network_interfaces == []

    def test_same_plan_is_not_a_plan_change(self, running: Server) -> None:
        """Test that repeating the current plan does not trip the guard."""
        req = UpdateRequest(zone=ZONE, id=SERVER_ID, cpu=2, memory_gb=4)

        assert req.changes_plan(running) is False
        assert req.apply_request(running).cpu == 2

    def test_plan_change_on_running_server_rejected(self, running: Server) -> None:
        """Test that a plan change needs a stopped server."""
        with pytest.raises(PreconditionError) as exc_info:
            UpdateRequest(zone=ZONE, id=SERVER_ID, cpu=4).apply_request(running)

        assert exc_info.value.reason == PreconditionReason.INSTANCE_RUNNING

    def test_plan_change_with_force_shutdown(self, running: Server) -> None:
        """Test that force_shutdown lets the plan change through."""
        apply = UpdateRequest(
            zone=ZONE, id=SERVER_ID, commitment=Commitment.DEDICATED_CPU, force_shutdown=True
        ).apply_request(running)

        assert apply.commitment == Commitment.DEDICATED_CPU
        assert apply.force_shutdown is True

    def test_create_maps_one_to_one(self) -> None:
        """Test that create requests map field for field."""
        req = CreateRequest(
            zone=ZONE,
            name="web",
            cpu=2,
            memory_gb=4,
            network_interfaces=[NetworkInterface(upstream="shared")],
            disks=[DiskSetting(name="web-disk", size_gb=40)],
            boot_after_create=True,
        )

        apply = req.apply_request()

        assert apply.id == 0
        assert apply.name == "web"
        assert apply.memory_gb == 4
        assert apply.boot_after_create is True
        assert apply.network_interfaces == [NetworkInterface(upstream="shared")]
        assert apply.disks[0].size_gb == 40

    @pytest.mark.parametrize("upstream", ["shared", "disconnected", "113000000099"])
    def test_valid_upstreams(self, upstream: str) -> None:
        assert NetworkInterface(upstream=upstream).upstream == upstream

    def test_invalid_upstream_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            NetworkInterface(upstream="internet")


class TestServerService:
    """Tests for ServerService against the mock API."""

    def test_create(self, service: ServerService, api: MockServerAPI) -> None:
        """Test that create sends the apply request and returns the new server."""
        server = service.create(
            CreateRequest(zone=ZONE, name="web", cpu=4, memory_gb=8, network_interfaces=[NetworkInterface(upstream="shared")])
        )

        assert server.name == "web"
        assert server.memory_mb == 8 * 1024
        assert server.interfaces[0].upstream_type == UpstreamType.SHARED
        assert api.call_names == ["create"]

    def test_read(self, service: ServerService, snapshot: Server) -> None:
        assert service.read(ReadRequest(zone=ZONE, id=SERVER_ID)) == snapshot

    def test_read_unknown_id(self, service: ServerService) -> None:
        with pytest.raises(NotFoundError):
            service.read(ReadRequest(zone=ZONE, id=1))

    def test_find(self, service: ServerService, api: MockServerAPI, snapshot: Server) -> None:
        """Test that find passes the filter through."""
        api.add(snapshot.model_copy(update={"id": 113000000002, "name": "db", "tags": ["t2"]}))

        found = service.find(FindRequest(zone=ZONE, tags=["t2"]))

        assert [s.name for s in found] == ["db"]
        assert api.calls[0].args[1].tags == ["t2"]

    def test_update(self, service: ServerService, api: MockServerAPI) -> None:
        """Test that update reads, merges and writes once."""
        server = service.update(UpdateRequest(zone=ZONE, id=SERVER_ID, name="x-upd", tags=["t1-upd"]))

        assert api.call_names == ["read", "update"]
        sent = api.calls_to("update")[0].args[2]
        assert (sent.name, sent.tags, sent.description, sent.icon_id) == ("x-upd", ["t1-upd"], "d", 5)
        assert server.name == "x-upd"

    def test_update_plan_change_on_running_server_writes_nothing(
        self, service: ServerService, api: MockServerAPI, running: Server
    ) -> None:
        """Test that a rejected plan change issues no write call."""
        api.add(running)

        with pytest.raises(PreconditionError):
            service.update(UpdateRequest(zone=ZONE, id=SERVER_ID, cpu=8))

        assert api.write_calls == []

    def test_invalid_request_makes_no_call(self, service: ServerService, api: MockServerAPI) -> None:
        """Test that validation runs before any remote call."""
        with pytest.raises(ValidationError):
            service.read(ReadRequest.model_construct(zone=ZONE, id=0))

        assert api.calls == []

    def test_context_passed_unchanged(self, service: ServerService, api: MockServerAPI) -> None:
        """Test that every remote call receives the caller's context."""
        ctx = CallContext.with_timeout(60)

        service.update(UpdateRequest(zone=ZONE, id=SERVER_ID, name="y"), ctx)

        assert all(call.ctx is ctx for call in api.calls)

    def test_cancelled_context_makes_no_call(self, service: ServerService, api: MockServerAPI) -> None:
        event = threading.Event()
        event.set()

        with pytest.raises(OperationCancelledError):
            service.update(UpdateRequest(zone=ZONE, id=SERVER_ID, name="y"), CallContext(cancel_event=event))

        assert api.calls == []

    def test_remote_error_propagates(self, service: ServerService, api: MockServerAPI) -> None:
        """Test that remote write failures reach the caller unchanged."""
        error = ConflictError("stale settings", status_code=409)
        api.fail_on("update", error)

        with pytest.raises(ConflictError) as exc_info:
            service.update(UpdateRequest(zone=ZONE, id=SERVER_ID, name="y"))

        assert exc_info.value is error


class TestChangePlan:
    """Tests for ServerService.change_plan()."""

    def test_running_server_rejected_without_write(
        self, service: ServerService, api: MockServerAPI, running: Server
    ) -> None:
        """Test that a running server fails the plan change before any write."""
        api.add(running)

        with pytest.raises(PreconditionError) as exc_info:
            service.change_plan(ChangePlanRequest(zone=ZONE, id=SERVER_ID, cpu=4))

        assert str(exc_info.value) == f"server[{SERVER_ID}] is still running"
        assert api.call_names == ["read"]

    def test_stopped_server(self, service: ServerService, api: MockServerAPI) -> None:
        """Test that absent plan fields keep their current values."""
        server = service.change_plan(ChangePlanRequest(zone=ZONE, id=SERVER_ID, cpu=4))

        sent = api.calls_to("change_plan")[0].args[2]
        assert sent.cpu == 4
        assert sent.memory_mb == 4096
        assert server.cpu == 4
        assert server.id != SERVER_ID


class TestDelete:
    """Tests for ServerService.delete()."""

    def test_stopped_server(self, service: ServerService, api: MockServerAPI) -> None:
        service.delete(DeleteRequest(zone=ZONE, id=SERVER_ID, with_disks=True))

        assert api.call_names == ["read", "delete"]
        assert api.calls_to("delete")[0].args == (ZONE, SERVER_ID, True)
        assert (ZONE, SERVER_ID) not in api.servers

    def test_running_server_rejected(self, service: ServerService, api: MockServerAPI, running: Server) -> None:
        api.add(running)

        with pytest.raises(PreconditionError):
            service.delete(DeleteRequest(zone=ZONE, id=SERVER_ID))

        assert api.write_calls == []

    def test_running_server_forced(self, service: ServerService, api: MockServerAPI, running: Server) -> None:
        """Test that force_shutdown stops the server before deleting it."""
        api.add(running)

        service.delete(DeleteRequest(zone=ZONE, id=SERVER_ID, force_shutdown=True))

        assert api.call_names == ["read", "shutdown", "delete"]
