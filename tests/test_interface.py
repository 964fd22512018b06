"""Tests for the HUD and keyboard controls."""

import numpy as np
import pytest

from interface import COUNT_STEP, MESSAGE_SECONDS, Interface
from params import DEFAULT_CONFIG, MAX_COUNT, TEMPLATES, DistributionType, ParticleShape


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ui(clock):
    return Interface(clock=clock)


# =============================================================================
# Config changes
# =============================================================================

class TestKeys:
    def test_number_keys_load_templates(self, ui):
        assert ui.handle_key(ord("1")) is True
        assert ui.config is TEMPLATES["HEARTS"]
        ui.handle_key(ord("4"))
        assert ui.config is TEMPLATES["FLOWERS"]

    def test_zero_restores_default(self, ui):
        ui.handle_key(ord("2"))
        ui.handle_key(ord("0"))
        assert ui.config is DEFAULT_CONFIG

    def test_count_steps(self, ui):
        ui.handle_key(ord("+"))
        assert ui.config.count == DEFAULT_CONFIG.count + COUNT_STEP
        ui.handle_key(ord("-"))
        assert ui.config.count == DEFAULT_CONFIG.count

    def test_count_clamped_high(self, ui):
        ui.set_config(DEFAULT_CONFIG.with_changes(count=MAX_COUNT - 10))
        ui.handle_key(ord("="))
        assert ui.config.count == MAX_COUNT

    def test_count_clamped_low(self, ui):
        ui.set_config(DEFAULT_CONFIG.with_changes(count=100))
        ui.handle_key(ord("_"))
        assert ui.config.count == 1

    def test_distribution_cycles(self, ui):
        ui.handle_key(ord("d"))
        assert ui.config.distribution is DistributionType.CUBE
        for _ in range(len(DistributionType) - 1):
            ui.handle_key(ord("d"))
        assert ui.config.distribution is DistributionType.SPHERE

    def test_shape_cycles(self, ui):
        ui.handle_key(ord("s"))
        assert ui.config.shape is ParticleShape.CUBE

    def test_colour_cycles(self, ui):
        ui.handle_key(ord("c"))
        assert ui.config.color == "#ff0055"

    def test_every_change_is_a_new_object(self, ui):
        before = ui.config
        ui.handle_key(ord("s"))
        assert ui.config is not before
        assert before.shape is ParticleShape.SPHERE

    def test_help_toggle(self, ui):
        ui.handle_key(ord("h"))
        assert ui.show_help is False

    def test_unknown_key(self, ui):
        assert ui.handle_key(ord("q")) is False
        assert ui.config is DEFAULT_CONFIG


class TestCommands:
    def test_template(self, ui):
        assert ui.apply_command(("template", "SATURN")) is True
        assert ui.config is TEMPLATES["SATURN"]

    def test_reset(self, ui):
        ui.apply_command(("template", "SATURN"))
        ui.apply_command(("reset", ""))
        assert ui.config is DEFAULT_CONFIG

    def test_prompt_not_handled_here(self, ui):
        assert ui.apply_command(("prompt", "rain")) is False


# =============================================================================
# Suggestions and messages
# =============================================================================

class TestSuggestions:
    def test_success_replaces_config(self, ui):
        ui.show_error("old")
        ui.apply_suggestion((TEMPLATES["FIREWORKS"], None))
        assert ui.config is TEMPLATES["FIREWORKS"]
        assert ui.message == ""

    def test_failure_keeps_config_and_shows_error(self, ui):
        ui.apply_suggestion((None, "API key not found. Set GEMINI_API_KEY."))
        assert ui.config is DEFAULT_CONFIG
        assert ui.message == "Failed to generate. API key not found. Set GEMINI_API_KEY."


class TestMessages:
    def test_message_expires(self, ui, clock):
        ui.show_error("boom")
        clock.now += MESSAGE_SECONDS - 0.1
        assert ui.message == "boom"
        clock.now += 0.2
        assert ui.message == ""

    def test_dismiss_key(self, ui):
        ui.show_error("boom")
        ui.handle_key(ord("x"))
        assert ui.message == ""


# =============================================================================
# Drawing
# =============================================================================

class TestDraw:
    def test_draws_overlay(self, ui):
        frame = np.zeros((720, 1280, 3), dtype=np.uint8)
        ui.show_error("something failed")
        out = ui.draw(frame, ready=True, ai_available=False, fps=60.0)
        assert out is frame
        assert frame.any()

    def test_not_ready_overlay(self, ui):
        frame = np.zeros((360, 640, 3), dtype=np.uint8)
        ui.draw(frame, ready=False, reason="No working camera found")
        assert frame[150:200].any()

    def test_tiny_frame_does_not_fail(self, ui):
        frame = np.zeros((20, 20, 3), dtype=np.uint8)
        ui.draw(frame, busy=True)

    @pytest.mark.parametrize("shape,scale", [((720, 1280, 3), 1.0), ((1440, 2560, 3), 1.8), ((240, 320, 3), 0.85)])
    def test_ui_scale_follows_frame(self, ui, shape, scale):
        ui.draw(np.zeros(shape, dtype=np.uint8))
        assert ui.ui_scale == pytest.approx(scale)
