"""
Test keyword routing, AI routing and the fallback between them.
"""

import json

import pytest

from ai_tutors.agents.tutor.router import ai_route, keyword_route, rank_agents, route
from ai_tutors.core.exceptions import NoAgentsAvailableError

from conftest import FakeCompletionService


class TestKeywordRouter:
    """Deterministic keyword scoring."""

    def test_emotional_messages_go_to_beatrice(self, mock_agents):
        result = keyword_route("I feel so frustrated and dumb, I want to give up", mock_agents)

        assert result.selected_agent.name == "beatrice-peer"
        assert result.confidence > 0.8

    def test_debate_goes_to_discussion_agents(self, mock_agents):
        result = keyword_route("I disagree with this approach, what do you think?", mock_agents)

        assert result.selected_agent.name in ["laila-peer", "socratic-tutor"]
        assert result.reason == "Intellectual discussion"

    def test_conceptual_questions_go_to_socratic(self, mock_agents):
        result = keyword_route(
            "Why does recursion work this way? I want to understand the concept.",
            mock_agents,
        )
        assert result.selected_agent.name == "socratic-tutor"

    def test_how_to_questions_go_to_helper(self, mock_agents):
        result = keyword_route("How do I implement a binary search? Show me the steps.", mock_agents)
        assert result.selected_agent.name == "helper-tutor"

    def test_project_questions_go_to_practical_agents(self, mock_agents):
        result = keyword_route(
            "My code has a bug and I need to debug this error in my project.",
            mock_agents,
        )

        assert result.selected_agent.name in ["helper-tutor", "project-tutor"]
        assert result.reason == "Hands-on technical work"

    def test_casual_messages_go_to_peers(self, mock_agents):
        result = keyword_route("Hey, I am stuck on this problem and feel lost.", mock_agents)

        assert result.selected_agent.name in ["carmen-peer", "beatrice-peer"]
        assert result.reason == "Casual peer support"

    def test_distress_outranks_how_to_and_debate_words(self, mock_agents):
        how_to = keyword_route(
            "I feel stupid, why does this code not work? how do I debug it step by step",
            mock_agents,
        )
        debate = keyword_route(
            "I'm overwhelmed, what do you think about why recursion is a concept I never understand",
            mock_agents,
        )

        for result in (how_to, debate):
            assert result.selected_agent.name == "beatrice-peer"
            assert result.reason == "Emotional support needed"
            assert result.confidence == 0.9

    def test_alternatives_exclude_selected_and_are_sorted(self, mock_agents):
        result = keyword_route("Why does this work?", mock_agents)

        assert len(result.alternatives) == len(mock_agents) - 1
        assert all(alt.agent_id != result.selected_agent.id for alt in result.alternatives)
        scores = [alt.score for alt in result.alternatives]
        assert scores == sorted(scores, reverse=True)

    def test_no_signal_uses_default_selection(self, mock_agents):
        result = keyword_route("zzz", mock_agents)

        # Ties resolve to the lowest agent id
        assert result.selected_agent.id == 1
        assert result.reason == "Default selection"
        assert result.confidence == 0.5

    def test_tie_break_is_stable_by_id(self, mock_agents):
        reversed_agents = list(reversed(mock_agents))
        forward = keyword_route("My code has a bug", mock_agents)
        backward = keyword_route("My code has a bug", reversed_agents)

        assert forward.selected_agent.id == backward.selected_agent.id == 2

    def test_single_agent_always_selected(self, mock_agents):
        result = keyword_route("I am so frustrated", mock_agents[:1])

        assert result.selected_agent.name == "socratic-tutor"
        assert result.alternatives == []

    def test_empty_pool_raises(self):
        with pytest.raises(NoAgentsAvailableError):
            keyword_route("hello", [])

    def test_rank_agents_orders_by_score(self, mock_agents):
        ranked = rank_agents("I disagree, let's debate", mock_agents)
        names = [agent.name for agent, _, _ in ranked[:2]]

        assert set(names) == {"socratic-tutor", "laila-peer"}
        assert ranked[0][1] >= ranked[-1][1]


@pytest.mark.asyncio
class TestAIRouter:
    """AI classification with keyword fallback."""

    async def test_valid_reply_selects_named_agent(self, mock_agents):
        completion = FakeCompletionService(router_reply=json.dumps({
            "selectedAgent": "project-tutor",
            "reason": "Needs help with a project",
            "confidence": 0.91,
            "scores": {"project-tutor": 0.91, "helper-tutor": 0.7, "carmen-peer": 0.2},
        }))

        result = await ai_route("help with my app", mock_agents, completion)

        assert result.selected_agent.name == "project-tutor"
        assert result.reason == "Needs help with a project"
        assert result.confidence == pytest.approx(0.91)
        assert [alt.agent_name for alt in result.alternatives[:2]] == ["helper-tutor", "carmen-peer"]
        assert len(result.alternatives) == len(mock_agents) - 1
        assert completion.calls[0]["temperature"] == 0.3

    async def test_code_fenced_reply_is_parsed(self, mock_agents):
        reply = '```json\n{"selectedAgent": "laila-peer"}\n```'
        completion = FakeCompletionService(router_reply=reply)

        result = await ai_route("thoughts?", mock_agents, completion)

        assert result.selected_agent.name == "laila-peer"
        assert result.reason == "AI-based routing"
        assert result.confidence == 0.8
        assert result.alternatives is None

    async def test_unparsable_reply_falls_back_to_keywords(self, mock_agents):
        message = "I feel so frustrated and dumb"
        completion = FakeCompletionService(router_reply="Beatrice, obviously!")

        result = await ai_route(message, mock_agents, completion)

        assert result == keyword_route(message, mock_agents)

    async def test_unknown_agent_falls_back_to_keywords(self, mock_agents):
        message = "How do I write a for loop?"
        completion = FakeCompletionService(router_reply=json.dumps({"selectedAgent": "ghost-tutor"}))

        result = await ai_route(message, mock_agents, completion)

        assert result == keyword_route(message, mock_agents)

    async def test_provider_error_falls_back_to_keywords(self, mock_agents):
        message = "Why is the sky blue?"
        completion = FakeCompletionService(router_error=RuntimeError("timeout"))

        result = await ai_route(message, mock_agents, completion)

        assert result == keyword_route(message, mock_agents)

    async def test_route_without_ai_makes_no_calls(self, mock_agents):
        completion = FakeCompletionService(router_reply=json.dumps({"selectedAgent": "laila-peer"}))

        result = await route("How do I start?", mock_agents, completion, use_ai=False)

        assert result.selected_agent.name == "helper-tutor"
        assert completion.calls == []

    async def test_route_with_ai_uses_classifier(self, mock_agents):
        completion = FakeCompletionService(router_reply=json.dumps({"selectedAgent": "carmen-peer"}))

        result = await route("How do I start?", mock_agents, completion, use_ai=True)

        assert result.selected_agent.name == "carmen-peer"
        assert len(completion.calls_tagged("tutor-router")) == 1
