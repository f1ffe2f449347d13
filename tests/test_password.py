"""Password hashing tests."""

from tasktrack.auth.password import burn_password_check, hash_password, verify_password


def test_hash_is_bcrypt_and_salted():
    h1 = hash_password("password_123")
    h2 = hash_password("password_123")
    assert h1.startswith("$2")
    assert h1 != h2


def test_verify_password():
    h = hash_password("password_123")
    assert verify_password("password_123", h)
    assert not verify_password("password_124", h)


def test_verify_against_garbage_hash_is_false():
    assert verify_password("password_123", "not-a-bcrypt-hash") is False


def test_burn_password_check_does_not_raise():
    burn_password_check("anything")
