import pytest

from cdn_server.services.cache_store import CacheStore, IncompleteTransfer, InvalidCachePath


async def chunks(*parts):
    for part in parts:
        yield part


async def broken_stream():
    yield b"partial"
    raise OSError("No space left on device")


@pytest.fixture
def store(tmp_path):
    store = CacheStore(tmp_path / "cache")
    store.create()
    return store


def test_path_for_maps_below_files_dir(store):
    assert store.path_for("/image.png") == store.files_dir / "image.png"
    assert store.path_for("/a/b/c.txt") == store.files_dir / "a" / "b" / "c.txt"
    assert store.path_for("/../../etc/passwd") == store.files_dir / "etc" / "passwd"


@pytest.mark.parametrize("request_path", ["", "/", "/..", "/a/.."])
def test_path_for_rejects_cache_root(store, request_path):
    with pytest.raises(InvalidCachePath):
        store.path_for(request_path)


def test_exists_only_for_regular_files(store):
    (store.files_dir / "dir").mkdir()
    assert not store.exists("/dir")
    assert not store.exists("/")
    assert not store.exists("/missing")


@pytest.mark.asyncio
async def test_write_creates_entry_and_parents(store):
    path = await store.write("/a/b/image.png", chunks(b"abc", b"def"), expected_size=6)

    assert path == store.files_dir / "a" / "b" / "image.png"
    assert path.read_bytes() == b"abcdef"
    assert store.exists("/a/b/image.png")
    assert list(store.tmp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_interrupted_write_leaves_no_entry(store):
    with pytest.raises(OSError):
        await store.write("/image.png", broken_stream())

    assert not store.exists("/image.png")
    assert list(store.tmp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_short_write_leaves_no_entry(store):
    with pytest.raises(IncompleteTransfer) as excinfo:
        await store.write("/image.png", chunks(b"abc"), expected_size=10)

    assert excinfo.value.expected == 10
    assert excinfo.value.received == 3
    assert not store.exists("/image.png")
    assert list(store.tmp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_interrupted_rewrite_keeps_previous_entry(store):
    await store.write("/image.png", chunks(b"old"))

    with pytest.raises(OSError):
        await store.write("/image.png", broken_stream())

    assert store.path_for("/image.png").read_bytes() == b"old"


def test_destroy_removes_everything(store):
    (store.files_dir / "x").write_bytes(b"x")
    store.destroy()
    assert not store.root.exists()
