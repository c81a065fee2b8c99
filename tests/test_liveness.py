import asyncio

from starlette.websockets import WebSocketState

from backend import RelayBackend
from liveness import LivenessMonitor
from message_types import CONNECT, PING, PONG, SERVER_SHUTDOWN, TASK_UPDATE, USER_LEFT


def test_sweep_pings_and_clears_flag(relay, make_socket):
    monitor = LivenessMonitor(relay, interval=30)
    client = relay.connect(make_socket())

    terminated = asyncio.run(monitor.sweep())

    assert terminated == 0
    assert client.is_alive is False
    assert client.websocket.types() == [PING]


def test_pong_keeps_connection_alive(relay, make_socket, send):
    monitor = LivenessMonitor(relay, interval=30)

    async def scenario():
        client = relay.connect(make_socket())
        for _ in range(3):
            await monitor.sweep()
            await send(client, PONG)
        assert relay.registry.contains(client)
        assert client.is_alive is True

    asyncio.run(scenario())


def test_client_ping_counts_as_liveness(relay, make_socket, send):
    monitor = LivenessMonitor(relay, interval=30)

    async def scenario():
        client = relay.connect(make_socket())
        await monitor.sweep()
        await send(client, PING)
        await monitor.sweep()
        assert relay.registry.contains(client)

    asyncio.run(scenario())


def test_silent_connection_is_reaped_within_two_sweeps(relay, make_socket, send):
    monitor = LivenessMonitor(relay, interval=30)

    async def scenario():
        watcher = relay.connect(make_socket())
        silent = relay.connect(make_socket())
        await send(watcher, CONNECT, username="watcher", room="proj1")
        await send(silent, CONNECT, username="silent", room="proj1")

        await monitor.sweep()
        await send(watcher, PONG)
        terminated = await monitor.sweep()
        await asyncio.sleep(0)

        assert terminated == 1
        assert not relay.registry.contains(silent)
        assert relay.registry.lookup(silent) is None
        assert relay.rooms.members_of("proj1") == [watcher]
        assert silent.websocket.closed_with == 1001
        assert watcher.websocket.of_type(USER_LEFT)[-1]["username"] == "silent"

    asyncio.run(scenario())


def test_last_member_reaped_removes_room(relay, make_socket, send):
    monitor = LivenessMonitor(relay, interval=30)

    async def scenario():
        silent = relay.connect(make_socket())
        await send(silent, CONNECT, username="silent", room="lonely")

        await monitor.sweep()
        await monitor.sweep()

        assert len(relay.rooms) == 0
        assert relay.registry.count == 0

    asyncio.run(scenario())


def test_monitor_runs_on_its_interval(relay, make_socket):
    monitor = LivenessMonitor(relay, interval=0.01)

    async def scenario():
        client = relay.connect(make_socket())
        monitor.start()
        await asyncio.sleep(0.1)
        await monitor.stop()
        assert not relay.registry.contains(client)

    asyncio.run(scenario())


def test_shutdown_notifies_and_closes_everyone(relay, make_socket, send):
    async def scenario():
        alice = relay.connect(make_socket())
        lurker = relay.connect(make_socket())
        await send(alice, CONNECT, username="alice", room="proj1")

        await relay.shutdown()
        await relay.shutdown()

        for connection in (alice, lurker):
            assert connection.websocket.of_type(SERVER_SHUTDOWN)[0]["message"] == "Server is shutting down"
            assert len(connection.websocket.of_type(SERVER_SHUTDOWN)) == 1
            assert connection.websocket.closed_with == 1001

    asyncio.run(scenario())


def test_client_sending_task_updates_is_never_reaped(relay, make_socket, send):
    monitor = LivenessMonitor(relay, interval=30)

    async def scenario():
        alice = relay.connect(make_socket())
        await send(alice, CONNECT, username="alice", room="proj1")
        for index in range(3):
            await monitor.sweep()
            await send(alice, TASK_UPDATE, updateType="CREATE", task={"id": f"t{index}"})
        await monitor.sweep()

        assert relay.registry.contains(alice)
        assert relay.rooms.members_of("proj1") == [alice]

    asyncio.run(scenario())


def test_protocol_ping_mode_keeps_idle_clients(relay, make_socket, send):
    monitor = LivenessMonitor(relay, interval=30, reap_silent=False)

    async def scenario():
        idle = relay.connect(make_socket())
        gone = relay.connect(make_socket())
        await send(idle, CONNECT, username="idle", room="proj1")
        gone.websocket.client_state = WebSocketState.DISCONNECTED

        for _ in range(3):
            await monitor.sweep()

        assert relay.registry.contains(idle)
        assert idle.websocket.types().count(PING) == 3
        assert not relay.registry.contains(gone)

    asyncio.run(scenario())


def test_stalled_peer_does_not_hold_up_the_sweep(make_socket):
    relay = RelayBackend(send_timeout=0.05)
    monitor = LivenessMonitor(relay, interval=30)

    async def scenario():
        stalled = relay.connect(make_socket(stall=True))
        healthy = relay.connect(make_socket())

        await asyncio.wait_for(monitor.sweep(), timeout=1)
        assert healthy.websocket.types() == [PING]

        await asyncio.wait_for(monitor.sweep(), timeout=1)
        assert not relay.registry.contains(stalled)

    asyncio.run(scenario())
