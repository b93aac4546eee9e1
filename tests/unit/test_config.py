"""
Unit tests for Settings.
"""

import pytest
from pydantic import ValidationError

from smart_scheduler.core.config import Settings


class TestSettings:
    def test_scheduling_defaults(self):
        settings = Settings(ENVIRONMENT="test")

        assert settings.MIN_SPLIT_MINUTES == 15
        assert settings.DEFAULT_AUTO_SPLIT_LONG_TASKS is False
        assert settings.DEFAULT_MAX_TASK_MINUTES == 180
        assert settings.DEFAULT_WORK_BUFFER_MINUTES == 0

    @pytest.mark.parametrize("value", [0, -15])
    def test_min_split_must_be_positive(self, value):
        with pytest.raises(ValidationError):
            Settings(MIN_SPLIT_MINUTES=value)

    def test_negative_buffer_rejected(self):
        with pytest.raises(ValidationError):
            Settings(DEFAULT_WORK_BUFFER_MINUTES=-5)
