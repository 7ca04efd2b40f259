"""
Test cases for the OnError model.
"""

import pytest

from .options_on_error import OnError, RetryBackoff


class TestOnError:
    """Test cases for OnError options."""

    def test_default_options(self):
        opts = OnError()
        assert opts.max_retries == 3
        assert opts.retry_delay == 1.0
        assert opts.retry_backoff == RetryBackoff.NONE

    def test_custom_options(self):
        opts = OnError(max_retries=5, retry_delay=2.0, retry_backoff="exponential")
        assert opts.max_retries == 5
        assert opts.retry_delay == 2.0
        assert opts.retry_backoff is RetryBackoff.EXPONENTIAL

    def test_validation_max_retries(self):
        with pytest.raises(ValueError, match="max retries must be at least 1"):
            OnError(max_retries=0)

    def test_validation_negative_retry_delay(self):
        with pytest.raises(ValueError, match="retry delay cannot be negative"):
            OnError(retry_delay=-0.5)

    def test_validation_invalid_backoff(self):
        with pytest.raises(ValueError, match="invalid retry backoff"):
            OnError(retry_backoff="random")

    def test_repr_shows_backoff(self):
        opts = OnError(max_retries=2, retry_delay=0.1, retry_backoff="linear")
        assert "RetryBackoff.LINEAR" in repr(opts)

    @pytest.mark.parametrize(
        "backoff, expected",
        [
            (RetryBackoff.NONE, [0.5, 0.5, 0.5]),
            (RetryBackoff.LINEAR, [0.5, 1.0, 1.5]),
            (RetryBackoff.EXPONENTIAL, [0.5, 1.0, 2.0]),
        ],
    )
    def test_delay_before(self, backoff, expected):
        opts = OnError(max_retries=4, retry_delay=0.5, retry_backoff=backoff)
        assert [opts.delay_before(n) for n in (1, 2, 3)] == expected

    def test_frozen(self):
        opts = OnError()
        with pytest.raises(AttributeError):
            opts.max_retries = 10
