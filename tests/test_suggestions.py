"""
Suggestion Generator Tests

Response parsing, count bounds, repeat filtering and prompt context.
"""

import pytest

from brainboard.core.exceptions import MalformedResponse, ProviderError
from brainboard.models.schemas import CardContext
from brainboard.services.suggestions import SuggestionGenerator
from fakes import FakeGenerator


class TestParse:
    def test_json_object(self):
        raw = '{"suggestions": ["Run a pilot", "Invite customers"]}'
        assert SuggestionGenerator.parse(raw) == ["Run a pilot", "Invite customers"]

    def test_json_array_in_code_fence(self):
        raw = '```json\n["Run a pilot", "Invite customers"]\n```'
        assert SuggestionGenerator.parse(raw) == ["Run a pilot", "Invite customers"]

    def test_ideas_key(self):
        assert SuggestionGenerator.parse('{"ideas": ["x", "y"]}') == ["x", "y"]

    def test_bullet_lines(self):
        raw = "Here you go:\n- Run a pilot\n2. Invite customers\n* Record demos"
        assert SuggestionGenerator.parse(raw) == [
            "Here you go:",
            "Run a pilot",
            "Invite customers",
            "Record demos",
        ]

    def test_json_without_list(self):
        assert SuggestionGenerator.parse('{"answer": "nothing"}') == []


class TestGenerate:
    @pytest.mark.asyncio
    async def test_returns_at_most_three(self):
        generator = FakeGenerator('{"suggestions": ["a", "b", "c", "d"]}')

        ideas = await SuggestionGenerator(generator).generate(CardContext(title="Demo day"))

        assert ideas == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_fewer_than_two_is_malformed(self):
        generator = FakeGenerator('{"suggestions": ["only one"]}')

        with pytest.raises(MalformedResponse) as exc_info:
            await SuggestionGenerator(generator).generate(CardContext(title="Demo day"))

        assert exc_info.value.raw == '{"suggestions": ["only one"]}'

    @pytest.mark.asyncio
    async def test_echo_of_card_title_does_not_count(self):
        generator = FakeGenerator('["Demo day", "demo  DAY"]')

        with pytest.raises(MalformedResponse):
            await SuggestionGenerator(generator).generate(CardContext(title="Demo day"))

    @pytest.mark.asyncio
    async def test_drops_prior_suggestions(self):
        generator = FakeGenerator('["Record demos", "Invite customers", "Share slides"]')

        ideas = await SuggestionGenerator(generator).generate(
            CardContext(title="Demo day"), prior=["record demos"]
        )

        assert ideas == ["Invite customers", "Share slides"]

    @pytest.mark.asyncio
    async def test_only_one_new_idea_is_malformed(self):
        generator = FakeGenerator('["Record demos", "Share slides", "Invite customers"]')

        with pytest.raises(MalformedResponse):
            await SuggestionGenerator(generator).generate(
                CardContext(title="Demo day"), prior=["Record demos", "share slides"]
            )

    @pytest.mark.asyncio
    async def test_prompt_includes_at_most_five_siblings(self):
        generator = FakeGenerator()
        siblings = [CardContext(title=f"Sibling {i}") for i in range(8)]

        await SuggestionGenerator(generator).generate(
            CardContext(title="Demo day", description="Every Friday"), siblings
        )

        prompt = generator.prompts[0]
        assert "Demo day: Every Friday" in prompt
        assert "Sibling 4" in prompt
        assert "Sibling 5" not in prompt

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        generator = FakeGenerator()
        generator.queue(ProviderError("fake", "quota exceeded"))

        with pytest.raises(ProviderError):
            await SuggestionGenerator(generator).generate(CardContext(title="Demo day"))
