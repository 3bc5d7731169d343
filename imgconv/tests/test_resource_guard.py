"""Tests for MemoryGauge."""

import resource

from imgconv.resource_guard import MemoryGauge


class TestMemoryGauge:
    """Tests for ceiling and headroom."""

    def test_explicit_limit(self, mocker):
        """Test an explicit limit wins over the rlimit."""
        mocker.patch.object(MemoryGauge, 'usage', return_value=100)
        gauge = MemoryGauge(limit_bytes=1000)

        assert gauge.ceiling() == 1000
        assert gauge.headroom() == 900

    def test_unlimited(self, mocker):
        """Test no limit and an infinite rlimit means unlimited headroom."""
        mocker.patch('imgconv.resource_guard.resource.getrlimit',
                     return_value=(resource.RLIM_INFINITY, resource.RLIM_INFINITY))

        gauge = MemoryGauge()
        assert gauge.ceiling() is None
        assert gauge.headroom() is None

    def test_rlimit_ceiling(self, mocker):
        """Test the soft address space limit is the ceiling."""
        mocker.patch('imgconv.resource_guard.resource.getrlimit', return_value=(4096, 8192))
        mocker.patch.object(MemoryGauge, 'usage', return_value=5000)

        gauge = MemoryGauge()
        assert gauge.ceiling() == 4096
        assert gauge.headroom() == -904

    def test_usage_is_positive(self):
        """Test usage reads a real value for this process."""
        assert MemoryGauge().usage() > 0

    def test_usage_falls_back_to_rusage(self, mocker):
        """Test a missing statm falls back to peak RSS."""
        mocker.patch.object(MemoryGauge, 'STATM_PATH', '/nonexistent/statm')
        mocker.patch('imgconv.resource_guard.resource.getrusage',
                     return_value=mocker.MagicMock(ru_maxrss=10))

        assert MemoryGauge().usage() == 10 * 1024

    def test_statm_fields(self, mocker, tmp_path):
        """Test resident size is read by default and total size when virtual."""
        statm = tmp_path / 'statm'
        statm.write_text('5000 1000 300 10 0 900 0\n')
        mocker.patch.object(MemoryGauge, 'STATM_PATH', str(statm))
        mocker.patch('imgconv.resource_guard.os.sysconf', return_value=4096)

        gauge = MemoryGauge()
        assert gauge.usage() == 1000 * 4096
        assert gauge.usage(virtual=True) == 5000 * 4096

    def test_rlimit_headroom_uses_total_size(self, mocker, tmp_path):
        """Test the address space limit is compared with the total program size."""
        statm = tmp_path / 'statm'
        statm.write_text('5000 1000 300 10 0 900 0\n')
        mocker.patch.object(MemoryGauge, 'STATM_PATH', str(statm))
        mocker.patch('imgconv.resource_guard.os.sysconf', return_value=4096)
        mocker.patch('imgconv.resource_guard.resource.getrlimit',
                     return_value=(100_000_000, resource.RLIM_INFINITY))

        assert MemoryGauge().headroom() == 100_000_000 - 5000 * 4096

    def test_explicit_limit_headroom_uses_resident_size(self, mocker, tmp_path):
        """Test an explicit limit is compared with resident memory."""
        statm = tmp_path / 'statm'
        statm.write_text('5000 1000 300 10 0 900 0\n')
        mocker.patch.object(MemoryGauge, 'STATM_PATH', str(statm))
        mocker.patch('imgconv.resource_guard.os.sysconf', return_value=4096)

        assert MemoryGauge(limit_bytes=100_000_000).headroom() == 100_000_000 - 1000 * 4096
