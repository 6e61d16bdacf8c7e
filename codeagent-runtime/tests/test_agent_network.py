from __future__ import annotations

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from codeagent_runtime.agent import CodeAgent
from codeagent_runtime.lifecycle import LifecycleHooks, detect_completion
from codeagent_runtime.network import AgentNetwork, NetworkStatus
from codeagent_runtime.router import Continue, Halt
from codeagent_tools import build_sandbox_tools

SUMMARY = "<task_summary>Done.</task_summary>"


def _agent(model, provider, steps, name: str = "code-agent") -> CodeAgent:
    return CodeAgent(
        name=name,
        description="An expert coding agent",
        system_prompt="You write code.",
        llm=model,
        tools=build_sandbox_tools("sbx-1", provider, steps),
        steps=steps,
        lifecycle=LifecycleHooks(on_response=detect_completion),
    )


@pytest.mark.anyio
async def test_router_halts_once_summary_is_set(
    scripted_model, sandbox_provider, recording_steps, tool_call_message
) -> None:
    model = scripted_model(
        [
            tool_call_message(("createOrUpdateFiles", {"files": [{"path": "a.txt", "content": "a"}]})),
            AIMessage(content="Wrote a.txt, checking it next."),
            AIMessage(content=SUMMARY),
        ]
    )
    network = AgentNetwork("coding-agent-network", [_agent(model, sandbox_provider, recording_steps)])

    result = await network.run("Write a.txt")

    assert result.status is NetworkStatus.HALTED_BY_ROUTER
    assert result.iterations == 2
    assert result.state.summary == SUMMARY
    assert dict(result.state.files) == {"a.txt": "a"}
    assert [r.iteration for r in result.results] == [1, 2]
    assert isinstance(result.messages[0], HumanMessage)
    assert result.messages[-1].content == SUMMARY


@pytest.mark.anyio
async def test_iteration_cap_is_never_exceeded(scripted_model, sandbox_provider, recording_steps) -> None:
    model = scripted_model([])
    network = AgentNetwork("coding-agent-network", [_agent(model, sandbox_provider, recording_steps)])

    result = await network.run("Build something")

    assert result.status is NetworkStatus.HALTED_BY_LIMIT
    assert result.iterations == 15
    assert len(result.results) == 15
    assert len(model.calls) == 15
    assert result.state.summary is None


@pytest.mark.anyio
async def test_summary_on_last_allowed_iteration_reports_limit(
    scripted_model, sandbox_provider, recording_steps
) -> None:
    model = scripted_model([AIMessage(content="working"), AIMessage(content=SUMMARY)])
    network = AgentNetwork(
        "coding-agent-network",
        [_agent(model, sandbox_provider, recording_steps)],
        max_iterations=2,
    )

    result = await network.run("Build")

    assert result.status is NetworkStatus.HALTED_BY_LIMIT
    assert result.iterations == 2
    assert result.state.summary == SUMMARY


@pytest.mark.anyio
async def test_each_iteration_sees_the_accumulated_conversation(
    scripted_model, sandbox_provider, recording_steps
) -> None:
    model = scripted_model([AIMessage(content="step one"), AIMessage(content=SUMMARY)])
    network = AgentNetwork("coding-agent-network", [_agent(model, sandbox_provider, recording_steps)])

    await network.run("Build")

    assert [m.content for m in model.calls[1][1:]] == ["Build", "step one"]


@pytest.mark.anyio
async def test_custom_router_can_halt_before_any_agent_runs(
    scripted_model, sandbox_provider, recording_steps
) -> None:
    model = scripted_model([])
    network = AgentNetwork(
        "coding-agent-network",
        [_agent(model, sandbox_provider, recording_steps)],
        lambda state, agents: Halt(),
    )

    result = await network.run("Build")

    assert result.status is NetworkStatus.HALTED_BY_ROUTER
    assert result.iterations == 0
    assert model.calls == []


@pytest.mark.anyio
async def test_router_can_choose_between_agents(scripted_model, sandbox_provider, recording_steps) -> None:
    planner_model = scripted_model([AIMessage(content="plan ready")])
    builder_model = scripted_model([AIMessage(content=SUMMARY)])
    planner = _agent(planner_model, sandbox_provider, recording_steps, name="planner")
    builder = _agent(builder_model, sandbox_provider, recording_steps, name="builder")

    def _router(state, agents):
        if state.summary:
            return Halt()
        return Continue(agents[1]) if planner_model.calls else Continue(agents[0])

    result = await AgentNetwork("two-agents", [planner, builder], _router).run("Build")

    assert [r.agent_name for r in result.results] == ["planner", "builder"]
    assert result.status is NetworkStatus.HALTED_BY_ROUTER


def test_network_validates_its_roster(scripted_model, sandbox_provider, recording_steps) -> None:
    agent = _agent(scripted_model([]), sandbox_provider, recording_steps)
    with pytest.raises(ValueError):
        AgentNetwork("empty", [])
    with pytest.raises(ValueError):
        AgentNetwork("dupes", [agent, agent])
    with pytest.raises(ValueError):
        AgentNetwork("capless", [agent], max_iterations=0)
