"""
Test @mention parsing and stripping.
"""

from ai_tutors.agents.tutor.mentions import parse_mentions, strip_mentions


class TestParseMentions:
    """Resolve @name and @"Display Name" tokens to agents."""

    def test_no_mentions_returns_empty(self, mock_agents):
        assert parse_mentions("How do loops work?", mock_agents) == []

    def test_bare_names_in_order_of_appearance(self, mock_agents):
        result = parse_mentions("@beatrice-peer @socratic-tutor help me", mock_agents)
        assert [agent.name for agent in result] == ["beatrice-peer", "socratic-tutor"]

    def test_quoted_display_name(self, mock_agents):
        result = parse_mentions('Hi @"Socratic Guide" explain this', mock_agents)
        assert [agent.name for agent in result] == ["socratic-tutor"]

    def test_duplicates_removed(self, mock_agents):
        result = parse_mentions('@laila-peer and @"Laila" again @laila-peer', mock_agents)
        assert [agent.name for agent in result] == ["laila-peer"]

    def test_unknown_names_ignored(self, mock_agents):
        result = parse_mentions("@nobody @carmen-peer what's up", mock_agents)
        assert [agent.name for agent in result] == ["carmen-peer"]

    def test_trailing_punctuation(self, mock_agents):
        result = parse_mentions("Thanks @helper-tutor, that helped.", mock_agents)
        assert [agent.name for agent in result] == ["helper-tutor"]

    def test_email_address_is_not_a_mention(self, mock_agents):
        assert parse_mentions("mail me at carmen@carmen-peer.com", mock_agents) == []


class TestStripMentions:
    """Remove mention tokens so they never reach a prompt."""

    def test_strip_bare_mention(self):
        assert strip_mentions("Hey @beatrice help me") == "Hey help me"

    def test_strip_quoted_mention(self):
        assert strip_mentions('Hi @"Socratic Guide" explain this') == "Hi explain this"

    def test_no_mentions_unchanged(self):
        text = "  Why does   recursion terminate?  "
        assert strip_mentions(text) == text

    def test_leading_and_trailing_mentions(self):
        assert strip_mentions("@laila-peer what do you think? @carmen-peer") == "what do you think?"

    def test_line_breaks_and_indentation_kept(self):
        text = "@helper-tutor why does this fail?\n\ndef f(x):\n    return x + 1\n"
        assert strip_mentions(text) == "why does this fail?\n\ndef f(x):\n    return x + 1"

    def test_decorator_line_keeps_surrounding_code(self):
        text = "Why is this wrong?\n@property\ndef name(self):\n    return self._n"
        assert strip_mentions(text) == "Why is this wrong?\n\ndef name(self):\n    return self._n"

    def test_mid_line_mention_leaves_single_space(self):
        text = "Can you\tcheck @laila-peer  this loop?\nfor i in range(3):\n    print(i)"
        assert strip_mentions(text) == "Can you\tcheck this loop?\nfor i in range(3):\n    print(i)"
