"""Tests del control automático por umbrales."""

from pump_hub.core.domain import CommandSource, PumpAction, SystemOperatingConfig
from pump_hub.orchestration.pump_policy import AutoPumpPolicy

import pytest


class TestAutoPumpPolicy:

    def test_low_level_turns_pump_on(self, reading_factory):
        command = AutoPumpPolicy().decide(reading_factory(level=15.0, pump=False), SystemOperatingConfig())
        assert command.action is PumpAction.ON
        assert command.source is CommandSource.AUTO
        assert command.action.wire_token == "ON"

    def test_high_level_turns_pump_off(self, reading_factory):
        command = AutoPumpPolicy().decide(reading_factory(level=96.0, pump=True), SystemOperatingConfig())
        assert command.action is PumpAction.OFF

    def test_thresholds_are_inclusive(self, reading_factory):
        policy = AutoPumpPolicy()
        config = SystemOperatingConfig()
        assert policy.decide(reading_factory(level=20.0, pump=False), config).action is PumpAction.ON
        assert policy.decide(reading_factory(level=95.0, pump=True), config).action is PumpAction.OFF

    @pytest.mark.parametrize("level,pump", [(15.0, True), (96.0, False), (50.0, True), (50.0, False)])
    def test_no_command_when_already_in_target_state(self, reading_factory, level, pump):
        assert AutoPumpPolicy().decide(reading_factory(level=level, pump=pump), SystemOperatingConfig()) is None

    def test_manual_mode_never_commands(self, reading_factory):
        config = SystemOperatingConfig(auto_mode=False)
        assert AutoPumpPolicy().decide(reading_factory(level=5.0, pump=False), config) is None

    def test_invalid_thresholds_rejected(self):
        with pytest.raises(ValueError):
            SystemOperatingConfig(low_water_threshold=90.0, high_water_threshold=80.0)
