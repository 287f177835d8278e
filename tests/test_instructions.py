"""Tests for the rewrite-direction instruction selector."""

import itertools

import pytest

from backend.models.models import CommunicationStyle
from backend.services.instructions import (
    NEUTRAL_INSTRUCTION,
    TO_AUTISTIC_INSTRUCTION,
    TO_NEUROTYPICAL_INSTRUCTION,
    select_instruction,
)

NT = CommunicationStyle.NEUROTYPICAL
AUT = CommunicationStyle.AUTISTIC


class TestSelectInstruction:
    def test_neurotypical_to_autistic_is_direct_and_literal(self) -> None:
        instruction = select_instruction(NT, AUT)
        assert instruction == TO_AUTISTIC_INSTRUCTION
        assert "direct, literal, and unambiguous" in instruction

    def test_autistic_to_neurotypical_adds_social_context(self) -> None:
        instruction = select_instruction(AUT, NT)
        assert instruction == TO_NEUROTYPICAL_INSTRUCTION
        assert "soften blunt statements" in instruction

    @pytest.mark.parametrize("style", [NT, AUT])
    def test_matching_styles_fall_back_to_neutral(self, style) -> None:
        assert select_instruction(style, style) == NEUTRAL_INSTRUCTION

    @pytest.mark.parametrize(
        "sender, recipient",
        [("Martian", AUT), (NT, "Martian"), (None, AUT), (AUT, None), ("", "")],
    )
    def test_unrecognized_styles_fall_back_to_neutral(self, sender, recipient) -> None:
        assert select_instruction(sender, recipient) == NEUTRAL_INSTRUCTION

    def test_plain_string_values_are_accepted(self) -> None:
        assert select_instruction("Neurotypical", "Autistic") == TO_AUTISTIC_INSTRUCTION
        assert select_instruction("Autistic", "Neurotypical") == TO_NEUROTYPICAL_INSTRUCTION

    def test_exact_over_every_pair(self) -> None:
        """Autistic-directed iff NT->AUT, neurotypical-directed iff AUT->NT, neutral otherwise."""
        for sender, recipient in itertools.product(list(CommunicationStyle), repeat=2):
            instruction = select_instruction(sender, recipient)
            assert (instruction == TO_AUTISTIC_INSTRUCTION) == (sender is NT and recipient is AUT)
            assert (instruction == TO_NEUROTYPICAL_INSTRUCTION) == (sender is AUT and recipient is NT)
            assert (instruction == NEUTRAL_INSTRUCTION) == (sender is recipient)
