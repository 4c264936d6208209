import pytest

from Cryptodome.Hash import SHA1, SHA512

from unikeys.engine import EngineResult, PrivateKeyImpl, engine, hash_type, digest
from unikeys.engine.native import KeyType, max_salt_length, pbkdf2
from unikeys.errors import DecodeError, InvalidParameterError, NativeError
from unikeys import codec


def test_engine_result_unwrap():
    assert EngineResult("", b"value").ok
    assert EngineResult("", b"value").unwrap() == b"value"

    failed = EngineResult("bad input")
    assert not failed.ok
    with pytest.raises(NativeError, match="bad input"):
        failed.unwrap()
    with pytest.raises(DecodeError):
        failed.unwrap(DecodeError)


def test_hash_selection():
    assert hash_type("sha512") is SHA512
    assert digest("sha1", b"abc") == SHA1.new(b"abc").digest()
    for name in ("md5", "SHA256", None, ["sha1"]):
        with pytest.raises(InvalidParameterError):
            hash_type(name)


def test_max_salt_length():
    assert max_salt_length(1024, SHA512) == 62
    assert max_salt_length(512, SHA1) == 42
    with pytest.raises(ValueError):
        max_salt_length(512, SHA512)


@pytest.mark.asyncio
async def test_engine_initializes_once():
    await engine.init()
    assert engine.is_ready
    await engine.init()
    assert engine.is_ready


@pytest.mark.asyncio
async def test_primitive_failures_become_results():
    result = await engine.call(PrivateKeyImpl.from_bytes, b"\x00garbage")
    assert not result.ok
    assert result.value is None

    result = await engine.call(PrivateKeyImpl.generate, 128)
    assert not result.ok

    result = await engine.call(pbkdf2, SHA1, 1, 20, "password", "salt")
    assert result.ok
    assert result.value.hex() == "0c60c80f961f0e71f3a9b524af6012062fe037a6"


@pytest.mark.asyncio
async def test_handle_cannot_be_used_after_release():
    key = (await engine.call(PrivateKeyImpl.generate, 512)).unwrap()
    assert key.get_n() == key.get_p() * key.get_q()

    key.delete()
    assert key.released
    with pytest.raises(NativeError):
        key.get_n()
    with pytest.raises(NativeError):
        key.pack()
    with pytest.raises(NativeError):
        key.delete()


@pytest.mark.asyncio
async def test_password_blob_layout():
    key = (await engine.call(PrivateKeyImpl.generate, 512)).unwrap()
    try:
        blob = key.pack_with_password("secret", 1000).unwrap()
    finally:
        key.delete()

    fields = codec.load(blob)
    assert fields[0] == KeyType.PRIVATE_PASSWORD
    assert fields[1] == 1000
    assert len(fields) == 6

    # A protected blob needs the password
    assert not PrivateKeyImpl.from_bytes(blob).ok
    assert not PrivateKeyImpl.unpack_with_password(blob, "wrong").ok
    restored = PrivateKeyImpl.unpack_with_password(blob, "secret").unwrap()
    restored.delete()
