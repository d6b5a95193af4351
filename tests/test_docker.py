import io

import pytest

from fnops.docker import (
    ContainerConfig,
    DockerClient,
    HostConfig,
    ImageNotFoundError,
    RunOpts,
    StreamFormatError,
    demultiplex,
    display_json_messages,
    follow_run,
    port_map,
    port_set,
    run_container,
    stop,
)

CONTAINER_ID = "test-id"


class FakeDockerClient(DockerClient):
    def __init__(
        self,
        *,
        create_results=(),
        start_error=None,
        attach_result=None,
        attach_error=None,
        stop_error=None,
        pull_result=None,
        pull_error=None,
    ):
        self.create_results = list(create_results)
        self.start_error = start_error
        self.attach_result = attach_result
        self.attach_error = attach_error
        self.stop_error = stop_error
        self.pull_result = pull_result
        self.pull_error = pull_error
        self.calls = []

    def count(self, operation):
        return sum(1 for call in self.calls if call[0] == operation)

    def container_create(self, config, host_config, name):
        self.calls.append(("create", config, host_config, name))
        result = self.create_results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def container_start(self, container_id):
        self.calls.append(("start", container_id))
        if self.start_error:
            raise self.start_error

    def container_attach(self, container_id):
        self.calls.append(("attach", container_id))
        if self.attach_error:
            raise self.attach_error
        return self.attach_result

    def container_stop(self, container_id):
        self.calls.append(("stop", container_id))
        if self.stop_error:
            raise self.stop_error

    def image_pull(self, image):
        self.calls.append(("pull", image))
        if self.pull_error:
            raise self.pull_error
        return self.pull_result


# follow_run


def test_follow_run_reads_buffer():
    reader = io.BytesIO(bytes([1] + [0] * 22))
    client = FakeDockerClient(attach_result=reader)
    out, err = io.BytesIO(), io.BytesIO()
    follow_run(client, CONTAINER_ID, out, err)
    assert client.calls == [("attach", CONTAINER_ID)]
    assert reader.closed
    assert out.getvalue() == b""


def test_follow_run_unrecognized_stream():
    reader = io.BytesIO(bytes([9] * 18))
    client = FakeDockerClient(attach_result=reader)
    with pytest.raises(StreamFormatError, match="Unrecognized input header: 9"):
        follow_run(client, CONTAINER_ID, io.BytesIO(), io.BytesIO())
    assert reader.closed


def test_follow_run_attach_error():
    client = FakeDockerClient(attach_error=RuntimeError("attach: error"))
    with pytest.raises(RuntimeError, match="attach: error"):
        follow_run(client, CONTAINER_ID)


# run_container


def test_run_container_returns_id():
    client = FakeDockerClient(create_results=[CONTAINER_ID])
    assert run_container(client, RunOpts()) == CONTAINER_ID
    assert client.calls[-1] == ("start", CONTAINER_ID)


def test_run_container_create_error():
    client = FakeDockerClient(create_results=[RuntimeError("create: error")])
    with pytest.raises(RuntimeError, match="create: error"):
        run_container(client, RunOpts())
    assert client.count("start") == 0


def test_run_container_start_error():
    client = FakeDockerClient(create_results=[CONTAINER_ID], start_error=RuntimeError("start: error"))
    with pytest.raises(RuntimeError, match="start: error"):
        run_container(client, RunOpts())
    assert client.count("create") == 1


def _opts(commands):
    return RunOpts(
        ports={"8080": "6262", "9229": "9229"},
        envs=["env1=test1", "env2=test2"],
        container_name="test-cname",
        image="test-iname",
        commands=commands,
    )


def test_run_container_passes_options():
    client = FakeDockerClient(create_results=[CONTAINER_ID])
    commands = [
        "npm install --production --prefix=$KUBELESS_INSTALL_VOLUME",
        "npx nodemon --watch /kubeless/*.js /kubeless_rt/kubeless.js",
    ]
    assert run_container(client, _opts(commands)) == CONTAINER_ID
    expected_config = ContainerConfig(
        env=["env1=test1", "env2=test2"],
        exposed_ports={"8080", "9229"},
        image="test-iname",
        cmd=[
            "/bin/sh",
            "-c",
            "npm install --production --prefix=$KUBELESS_INSTALL_VOLUME;"
            "npx nodemon --watch /kubeless/*.js /kubeless_rt/kubeless.js",
        ],
    )
    expected_host = HostConfig(
        port_bindings={"8080": [{"HostPort": "6262"}], "9229": [{"HostPort": "9229"}]},
        auto_remove=True,
    )
    assert client.calls[0] == ("create", expected_config, expected_host, "test-cname")


def test_run_container_pulls_missing_image():
    pull_stream = io.BytesIO(b"")
    client = FakeDockerClient(
        create_results=[ImageNotFoundError("not found"), CONTAINER_ID],
        pull_result=pull_stream,
    )
    assert run_container(client, _opts(["a", "b"])) == CONTAINER_ID
    assert client.count("create") == 2
    assert ("pull", "test-iname") in client.calls
    assert pull_stream.closed


def test_run_container_pull_error():
    client = FakeDockerClient(
        create_results=[ImageNotFoundError("not found")],
        pull_error=RuntimeError("error: pull"),
    )
    with pytest.raises(RuntimeError, match="error: pull"):
        run_container(client, RunOpts())


def test_run_container_pull_undecodable_stream():
    client = FakeDockerClient(
        create_results=[ImageNotFoundError("not found")],
        pull_result=io.BytesIO(b"test undefind request"),
    )
    with pytest.raises(StreamFormatError):
        run_container(client, RunOpts())
    assert client.count("create") == 1


# stop


def test_stop_logs_once():
    client = FakeDockerClient()
    logged = []
    stop(client, "1", lambda *args: logged.append(args))()
    assert logged == [("\r- Removing container 1...\n",)]
    assert client.calls == [("stop", "1")]


def test_stop_logs_error():
    failure = RuntimeError("stop failed")
    client = FakeDockerClient(stop_error=failure)
    logged = []
    stop(client, "1", lambda *args: logged.append(args))()
    assert len(logged) == 2
    assert logged[1] == (failure,)


# helpers


def test_port_set_and_map():
    ports = {"8080": "6262", "9229": "9229"}
    assert port_set(ports) == {"8080", "9229"}
    assert port_map(ports) == {"8080": [{"HostPort": "6262"}], "9229": [{"HostPort": "9229"}]}


def _frame(kind, payload):
    return bytes([kind, 0, 0, 0]) + len(payload).to_bytes(4, "big") + payload


def test_demultiplex_splits_streams():
    data = _frame(1, b"hello ") + _frame(2, b"oops") + _frame(1, b"world")
    out, err = io.BytesIO(), io.BytesIO()
    written = demultiplex(io.BytesIO(data), out, err)
    assert out.getvalue() == b"hello world"
    assert err.getvalue() == b"oops"
    assert written == 15


def test_demultiplex_truncated_frame_ends_quietly():
    data = _frame(1, b"ok") + _frame(1, b"truncated")[:-3]
    out = io.BytesIO()
    assert demultiplex(io.BytesIO(data), out, io.BytesIO()) == 2
    assert out.getvalue() == b"ok"


def test_demultiplex_system_error():
    with pytest.raises(RuntimeError, match="daemon broke"):
        demultiplex(io.BytesIO(_frame(3, b"daemon broke")), io.BytesIO(), io.BytesIO())


def test_display_json_messages_formats_progress():
    stream = io.BytesIO(
        b'{"status": "Pulling from library/node", "id": "latest"}\n'
        b'{"status": "Downloading", "id": "abc", "progress": "[==>  ] 1MB/2MB"}'
        b'{"status": "Done"}'
    )
    out = io.StringIO()
    display_json_messages(stream, out)
    assert out.getvalue() == (
        "latest: Pulling from library/node\n"
        "abc: Downloading [==>  ] 1MB/2MB\n"
        "Done\n"
    )


def test_display_json_messages_reports_error():
    stream = io.BytesIO(b'{"errorDetail": {"message": "manifest unknown"}, "error": "manifest unknown"}')
    with pytest.raises(RuntimeError, match="manifest unknown"):
        display_json_messages(stream, io.StringIO())


def test_display_json_messages_invalid_input():
    with pytest.raises(StreamFormatError):
        display_json_messages(io.BytesIO(b'{"status": "ok"} garbage'), io.StringIO())