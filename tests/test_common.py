"""Tests for common module."""

from common import DriverError, MultiError, ProvisioningResult, SweepReport


class TestDriverError:
    def test_renders_code(self):
        error = DriverError('E999', 'something broke')
        assert str(error) == 'E999: something broke'
        assert error.code == 'E999'
        assert error.message == 'something broke'


class TestMultiError:
    """Tests for MultiError."""

    def test_empty_is_falsy(self):
        assert not MultiError()
        assert len(MultiError()) == 0

    def test_joins_messages_by_newline(self):
        error = MultiError([ValueError('first'), DriverError('E1', 'second')])
        assert str(error) == 'first\nE1: second'

    def test_append_keeps_order(self):
        error = MultiError()
        error.append(ValueError('a'))
        error.append(ValueError('b'))
        assert error
        assert len(error) == 2
        assert str(error) == 'a\nb'
        assert error.message == 'a\nb'

    def test_is_driver_error(self):
        error = MultiError([ValueError('x')])
        assert isinstance(error, DriverError)
        assert error.code == 'E400'


class TestProvisioningResult:
    """Tests for ProvisioningResult."""

    def test_initial_state(self):
        result = ProvisioningResult(namespace='alice-che')
        assert result.status == 'pending'
        assert not result.success
        assert result.duration is None

    def test_succeed(self):
        result = ProvisioningResult(namespace='alice-che')
        result.start()
        assert result.status == 'applying'
        result.succeed()
        assert result.success
        assert result.duration is not None
        assert result.to_dict()['status'] == 'succeeded'

    def test_fail(self):
        result = ProvisioningResult(namespace='alice-che')
        result.start()
        result.fail(ValueError('boom'))
        assert not result.success
        assert result.to_dict()['error'] == 'boom'
        assert result.to_dict()['namespace'] == 'alice-che'


class TestSweepReport:
    def test_defaults(self):
        report = SweepReport(namespace='alice')
        assert report.deleted == []
        assert report.errors == []
