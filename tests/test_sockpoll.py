import threading

import pytest

from sclib.sock import Event, Family, Sock
from sclib.sockpipe import Pipe
from sclib.sockpoll import Poll, PollError, PollResult


@pytest.fixture
def poll():
    p = Poll()
    yield p
    p.close()


@pytest.fixture
def connected():
    listener = Sock(0, True, Family.INET)
    listener.listen("127.0.0.1", 0)
    port = int(listener.local_str().rsplit(":", 1)[1])
    client = Sock(0, True, Family.INET)
    client.connect("127.0.0.1", str(port))
    accepted = listener.accept()
    yield listener, client, accepted
    for s in (accepted, client, listener):
        s.close()


def test_wait_on_closed_poll_raises():
    p = Poll()
    p.close()
    p.close()
    assert p.closed
    with pytest.raises(PollError, match="not initialized or already terminated"):
        p.wait(100)


def test_context_manager_closes():
    with Poll() as p:
        assert not p.closed
    assert p.closed


@pytest.mark.parametrize(
    "added, removals",
    [
        (Event.READ, [Event.READ]),
        (Event.READ | Event.WRITE, [Event.READ, Event.WRITE]),
        (Event.READ | Event.WRITE, [Event.WRITE, Event.READ]),
        (Event.WRITE, [Event.WRITE, Event.READ]),
    ],
)
def test_mass_add_and_delete(poll, added, removals):
    pipes = [Pipe(0) for _ in range(100)]
    try:
        for pipe in pipes:
            poll.add(pipe, added)
            assert pipe.op == added
        for pipe in pipes:
            for ev in removals:
                poll.delete(pipe, ev)
            assert pipe.op == Event.NONE
    finally:
        for pipe in pipes:
            pipe.close()
            pipe.close()
    assert all(pipe.closed for pipe in pipes)


def test_add_invalid_descriptor_rolls_back(poll):
    sock = Sock(0, True, Family.INET)
    with pytest.raises(PollError):
        poll.add(sock, Event.READ)
    assert sock.op == Event.NONE


def test_delete_invalid_descriptor_rolls_back(poll):
    sock = Sock(0, True, Family.INET)
    sock.op = Event.READ
    with pytest.raises(PollError):
        poll.delete(sock, Event.READ)
    assert sock.op == Event.READ


def test_edge_only_registration_is_none(poll):
    with Pipe(0) as pipe:
        poll.add(pipe, Event.EDGE)
        assert pipe.op == Event.NONE


def test_pipe_read_event_carries_data(poll):
    with Pipe(0) as pipe:
        pipe.write(b"x")
        poll.add(pipe, Event.READ, "tag")
        assert poll.wait(1000) == [PollResult(Event.READ, "tag")]


def test_wait_times_out_with_no_events(poll):
    with Pipe(0) as pipe:
        poll.add(pipe, Event.READ, "tag")
        assert poll.wait(10) == []


def test_partial_delete_replaces_data(poll):
    with Pipe(0) as pipe:
        pipe.write(b"x")
        poll.add(pipe, Event.READ | Event.WRITE, "first")
        poll.delete(pipe, Event.WRITE, "second")
        assert pipe.op == Event.READ
        assert poll.wait(1000) == [PollResult(Event.READ, "second")]


def test_add_from_other_thread_wakes_wait(poll):
    with Pipe(0) as pipe:
        pipe.write(b"x")
        timer = threading.Timer(0.2, poll.add, args=(pipe, Event.READ, "late"))
        timer.start()
        try:
            results = poll.wait(5000)
        finally:
            timer.join()
        assert results == [PollResult(Event.READ, "late")]


def test_server_receives_all_bytes(poll):
    srv = Sock(0, True, Family.INET)
    srv.listen("127.0.0.1", 0)
    port = int(srv.local_str().rsplit(":", 1)[1])
    client = Sock(0, True, Family.INET)
    client.connect("127.0.0.1", str(port))
    assert client.send(b"d" * 10000) == 10000
    client.close()

    poll.add(srv, Event.READ, srv)
    received = 0
    incoming = None
    done = False
    for _ in range(1000):
        if done:
            break
        for result in poll.wait(1000):
            if result.data is srv:
                assert result.events & Event.READ
                incoming = srv.accept()
                poll.add(incoming, Event.READ, incoming)
            elif result.events & Event.READ:
                try:
                    data = incoming.recv(4096)
                except EOFError:
                    poll.delete(incoming, Event.READ | Event.WRITE, incoming)
                    assert incoming.op == Event.NONE
                    incoming.close()
                    done = True
                    break
                assert set(data) == {ord("d")}
                received += len(data)
    srv.close()
    assert done
    assert received == 10000


def test_edge_triggered_write_reported_once(poll, connected):
    _, client, accepted = connected
    poll.add(accepted, Event.READ | Event.WRITE | Event.EDGE, "acc")

    first = [r for r in poll.wait(200) if r.data == "acc"]
    assert len(first) == 1
    assert first[0].events & Event.WRITE

    assert [r for r in poll.wait(50) if r.data == "acc"] == []

    client.send(b"hello")
    later = [r for r in poll.wait(500) if r.data == "acc"]
    assert len(later) == 1
    assert later[0].events & Event.READ


def test_op_transitions(poll, connected):
    listener, client, accepted = connected

    poll.add(listener, Event.READ)
    assert listener.op == Event.READ
    poll.delete(listener, Event.READ)
    assert listener.op == Event.NONE

    poll.add(accepted, Event.READ | Event.WRITE | Event.EDGE)
    poll.delete(accepted, Event.READ | Event.EDGE)
    assert accepted.op == Event.WRITE
    poll.add(accepted, Event.EDGE)
    assert accepted.op == Event.WRITE | Event.EDGE
    poll.delete(accepted, Event.WRITE)
    assert accepted.op == Event.NONE

    poll.add(client, Event.READ | Event.WRITE | Event.EDGE)
    poll.delete(client, Event.EDGE)
    assert client.op == Event.READ | Event.WRITE
    poll.delete(client, Event.READ | Event.WRITE)
    assert client.op == Event.NONE

    poll.add(accepted, Event.READ)
    poll.add(accepted, Event.WRITE)
    poll.add(accepted, Event.EDGE)
    assert accepted.op == Event.READ | Event.WRITE | Event.EDGE
    poll.delete(accepted, Event.READ)
    assert accepted.op == Event.WRITE | Event.EDGE


def test_operations_after_close_raise():
    p = Poll()
    p.close()
    with Pipe(0) as pipe:
        with pytest.raises(PollError):
            p.add(pipe, Event.READ)
        assert pipe.op == Event.NONE