import asyncio
import json
from types import SimpleNamespace

import pytest

from agents import tools
from agents.errors import UnknownToolError


def _function_call(call_id: str, name: str, arguments: str):
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def test_extract_tool_calls_keeps_only_function_calls() -> None:
    run = SimpleNamespace(
        required_action=SimpleNamespace(
            submit_tool_outputs=SimpleNamespace(
                tool_calls=[
                    _function_call("t1", "list_pull_requests", '{"owner": "o", "repo": "r"}'),
                    SimpleNamespace(id="t2", type="code_interpreter"),
                ]
            )
        )
    )

    calls = tools.extract_tool_calls(run)

    assert calls == [tools.ToolCall(id="t1", tool_name="list_pull_requests", raw_arguments='{"owner": "o", "repo": "r"}')]


def test_extract_tool_calls_handles_missing_required_action() -> None:
    assert tools.extract_tool_calls(SimpleNamespace(required_action=None)) == []


def test_dispatch_returns_one_output_per_call_even_when_some_fail() -> None:
    started: list[str] = []

    async def _execute(name: str, arguments):
        started.append(name)
        await asyncio.sleep(0)
        if name == "boom":
            raise RuntimeError("GitHub said no")
        return {"name": name, "args": arguments}

    calls = [
        tools.ToolCall("t1", "ok", '{"owner": "o"}'),
        tools.ToolCall("t2", "boom", "{}"),
        tools.ToolCall("t3", "ok", "not json"),
        tools.ToolCall("t4", "ok", ""),
    ]

    outputs = asyncio.run(tools.dispatch_tool_calls(_execute, calls))

    assert [o["tool_call_id"] for o in outputs] == ["t1", "t2", "t3", "t4"]
    assert json.loads(outputs[0]["output"]) == {"name": "ok", "args": {"owner": "o"}}
    assert outputs[1]["output"] == "GitHub said no"
    assert outputs[2]["output"].startswith("Invalid tool arguments")
    assert json.loads(outputs[3]["output"]) == {"name": "ok", "args": {}}
    assert sorted(started) == ["boom", "ok", "ok"]


def test_dispatch_runs_calls_concurrently() -> None:
    active = 0
    max_active = 0

    async def _execute(name: str, arguments):
        nonlocal active, max_active
        active += 1
        max_active = max(max_active, active)
        await asyncio.sleep(0.01)
        active -= 1
        return None

    calls = [tools.ToolCall(f"t{i}", "ok", "{}") for i in range(3)]
    outputs = asyncio.run(tools.dispatch_tool_calls(_execute, calls))

    assert max_active == 3
    assert [o["output"] for o in outputs] == ["null", "null", "null"]


class _FakeParameters:
    def __init__(self) -> None:
        self.requested: list[str] = []

    async def get(self, name: str) -> str:
        self.requested.append(name)
        return {"githubAppId": "123", "githubAppPrivateKey": "pem"}[name]


class _FakeGitHubConnector:
    instances: list["_FakeGitHubConnector"] = []

    def __init__(self, app_id: str, private_key: str) -> None:
        self.app_id = app_id
        self.private_key = private_key
        _FakeGitHubConnector.instances.append(self)

    async def list_pull_requests(self, *, owner: str, repo: str):
        return [{"number": 1, "title": f"{owner}/{repo}"}]


def test_github_executor_calls_connector_method(monkeypatch) -> None:
    monkeypatch.setattr(tools, "GitHubConnector", _FakeGitHubConnector)
    _FakeGitHubConnector.instances.clear()
    parameters = _FakeParameters()
    execute = tools.GitHubToolExecutor(parameters)

    async def _run():
        first = await execute("list_pull_requests", {"owner": "o", "repo": "r"})
        second = await execute("list_pull_requests", {"owner": "o", "repo": "r"})
        return first, second

    first, second = asyncio.run(_run())

    assert first == [{"number": 1, "title": "o/r"}]
    assert second == first
    assert len(_FakeGitHubConnector.instances) == 1
    assert _FakeGitHubConnector.instances[0].app_id == "123"


def test_github_executor_rejects_unknown_tool_without_fetching_credentials() -> None:
    parameters = _FakeParameters()
    execute = tools.GitHubToolExecutor(parameters)

    with pytest.raises(UnknownToolError):
        asyncio.run(execute("drop_database", {}))
    assert parameters.requested == []


def test_unknown_tool_error_becomes_that_calls_output() -> None:
    execute = tools.GitHubToolExecutor(_FakeParameters())
    calls = [tools.ToolCall("t1", "drop_database", "{}")]

    outputs = asyncio.run(tools.dispatch_tool_calls(execute, calls))

    assert outputs == [{"tool_call_id": "t1", "output": "Unknown tool: drop_database"}]
