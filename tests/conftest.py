import pytest

SECRET_TEXT = "JBSWY3DPEHPK3PXP"
SECRET = b"Hello!\xde\xad\xbe\xef"


@pytest.fixture
def keychain_path(tmp_path):
    return tmp_path / "gauth"
