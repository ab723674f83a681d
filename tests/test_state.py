import os

import pytest

from sg_ip_updater.errors import StorageReadError, StorageWriteError
from sg_ip_updater.state import read_last_ip, write_last_ip


def test_missing_file_is_first_run(storage):
    assert read_last_ip(storage) is None


def test_empty_file_is_first_run(storage):
    open(storage, "w").close()
    assert read_last_ip(storage) is None


def test_write_then_read(storage):
    write_last_ip(storage, "203.0.113.5/32")
    with open(storage) as f:
        assert f.read() == "203.0.113.5/32"
    assert read_last_ip(storage) == "203.0.113.5/32"


def test_write_overwrites_and_leaves_no_temp_files(tmp_path, storage):
    write_last_ip(storage, "198.51.100.9/32")
    write_last_ip(storage, "203.0.113.5/32")
    assert read_last_ip(storage) == "203.0.113.5/32"
    assert os.listdir(tmp_path) == ["lastip"]


def test_write_failure(tmp_path):
    with pytest.raises(StorageWriteError) as exc:
        write_last_ip(str(tmp_path / "nope" / "lastip"), "203.0.113.5/32")
    assert exc.value.details


def test_suffix_is_added_when_missing(storage):
    with open(storage, "w") as f:
        f.write("198.51.100.9\n")
    assert read_last_ip(storage) == "198.51.100.9/32"


@pytest.mark.parametrize("content", ["garbage", "1.2.3/32", "1.2.3.4/24"])
def test_corrupt_content_is_first_run(storage, content):
    with open(storage, "w") as f:
        f.write(content)
    assert read_last_ip(storage) is None


def test_directory_path(tmp_path):
    with pytest.raises(StorageReadError) as exc:
        read_last_ip(str(tmp_path))
    assert exc.value.details


def test_undecodable_file(storage):
    with open(storage, "wb") as f:
        f.write(b"\xff\xfe1.2.3.4/32")
    with pytest.raises(StorageReadError):
        read_last_ip(storage)
