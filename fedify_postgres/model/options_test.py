"""
Test cases for queue and key-value store options.
"""

import dataclasses
from datetime import timedelta

import pytest

from .options import KvStoreOptions, MessageQueueOptions


class TestMessageQueueOptions:
    """Test cases for MessageQueueOptions."""

    def test_defaults(self):
        opts = MessageQueueOptions()
        assert opts.table_name == "fedify_message_v2"
        assert opts.channel_name == "fedify_channel"
        assert opts.poll_interval == timedelta(seconds=5)
        assert opts.initialized is False

    @pytest.mark.parametrize(
        "value", [timedelta(seconds=2), 2, 2.0, "PT2S", {"seconds": 2}]
    )
    def test_poll_interval_is_normalised(self, value):
        opts = MessageQueueOptions(poll_interval=value)
        assert opts.poll_interval == timedelta(seconds=2)

    @pytest.mark.parametrize("value", [0, -1, "two seconds", timedelta(0)])
    def test_invalid_poll_interval_fails_fast(self, value):
        with pytest.raises(ValueError):
            MessageQueueOptions(poll_interval=value)

    @pytest.mark.parametrize("name", ["", "   ", "x" * 64])
    def test_invalid_names(self, name):
        with pytest.raises(ValueError):
            MessageQueueOptions(table_name=name)
        with pytest.raises(ValueError):
            MessageQueueOptions(channel_name=name)

    def test_options_are_immutable(self):
        opts = MessageQueueOptions()
        with pytest.raises(dataclasses.FrozenInstanceError):
            opts.table_name = "other"  # type: ignore[misc]

    def test_equality(self):
        assert MessageQueueOptions(poll_interval=1.5) == MessageQueueOptions(
            poll_interval=timedelta(milliseconds=1500)
        )
        assert MessageQueueOptions(initialized=True) != MessageQueueOptions()


class TestKvStoreOptions:
    """Test cases for KvStoreOptions."""

    def test_defaults(self):
        opts = KvStoreOptions()
        assert opts.table_name == "fedify_kv_v2"
        assert opts.initialized is False

    def test_invalid_table_name(self):
        with pytest.raises(ValueError):
            KvStoreOptions(table_name="")
