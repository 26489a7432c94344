from datetime import datetime, timedelta
from pathlib import Path

import pytest

from filedrop.models import FileUpload, UploadLink
from filedrop.utils.formatting import format_file_size

NOW = datetime(2026, 1, 1, 12, 0, 0)


def make_link(remaining=100, max_size=100, active=True, expires_at=None):
    return UploadLink(
        id="link-1",
        token="tok",
        name="Test",
        max_file_size=max_size,
        remaining_quota=remaining,
        expires_at=expires_at,
        created_at=NOW,
        is_active=active,
    )


class TestLinkExpiry:
    def test_no_expiry_never_expires(self):
        assert make_link(expires_at=None).is_expired(NOW + timedelta(days=3650)) is False

    def test_past_expiry_is_expired(self):
        assert make_link(expires_at=NOW - timedelta(seconds=1)).is_expired(NOW) is True

    def test_future_expiry_is_not_expired(self):
        assert make_link(expires_at=NOW + timedelta(hours=1)).is_expired(NOW) is False

    def test_exact_expiry_instant_is_not_expired(self):
        assert make_link(expires_at=NOW).is_expired(NOW) is False


class TestLinkValidity:
    @pytest.mark.parametrize("active", [True, False])
    @pytest.mark.parametrize("remaining", [0, 1, 100])
    @pytest.mark.parametrize("expiry", [None, timedelta(hours=-1), timedelta(hours=1)])
    def test_valid_only_when_all_three_hold(self, active, remaining, expiry):
        expires_at = NOW + expiry if expiry is not None else None
        link = make_link(remaining=remaining, active=active, expires_at=expires_at)
        expected = active and remaining > 0 and (expiry is None or expiry > timedelta(0))
        assert link.is_valid(NOW) is expected

    def test_zero_quota_is_invalid(self):
        assert make_link(remaining=0).is_valid(NOW) is False

    def test_inactive_is_invalid(self):
        assert make_link(active=False).is_valid(NOW) is False

    def test_expired_is_invalid(self):
        assert make_link(expires_at=NOW - timedelta(minutes=1)).is_valid(NOW) is False


class TestCanAcceptFile:
    def test_smaller_file_accepted(self):
        assert make_link(remaining=100).can_accept_file(99, NOW) is True

    def test_boundary_size_accepted(self):
        assert make_link(remaining=100).can_accept_file(100, NOW) is True

    def test_larger_file_rejected(self):
        assert make_link(remaining=100).can_accept_file(101, NOW) is False

    def test_invalid_link_rejects_everything(self):
        link = make_link(remaining=100, active=False)
        assert link.can_accept_file(1, NOW) is False


class TestFormatFileSize:
    def test_zero(self):
        assert format_file_size(0) == "0 B"

    def test_bytes_are_exact(self):
        assert format_file_size(512) == "512 B"
        assert format_file_size(1023) == "1023 B"

    def test_kilobytes_one_decimal(self):
        assert format_file_size(1536) == "1.5 KB"

    def test_exact_powers(self):
        assert format_file_size(1024) == "1.0 KB"
        assert format_file_size(1048576) == "1.0 MB"
        assert format_file_size(1024 ** 3) == "1.0 GB"

    def test_caps_at_terabytes(self):
        assert format_file_size(5 * 1024 ** 5) == "5120.0 TB"

    def test_link_and_upload_helpers(self):
        link = make_link(remaining=1536, max_size=1048576)
        assert link.formatted_max_size == "1.0 MB"
        assert link.formatted_remaining == "1.5 KB"
        upload = FileUpload(file_size=0)
        assert upload.formatted_size == "0 B"


def test_file_path_joins_root_folder_and_name():
    upload = FileUpload(guest_folder="g-1", stored_filename="abc.txt")
    assert upload.file_path("/srv/uploads") == Path("/srv/uploads/g-1/abc.txt")
