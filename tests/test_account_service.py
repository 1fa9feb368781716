import pytest

from relaybot.services.account_service import AccountService
from relaybot.services.errors import AccountError


@pytest.fixture
def accounts(http_session, zipline):
    return AccountService(http_session, zipline.base_url + "/")


@pytest.mark.asyncio
async def test_valid_token_reports_user(accounts):
    validation = await accounts.validate_token("good-token")
    assert validation.valid
    assert validation.user == "alice"
    assert validation.role == "ADMIN"
    assert validation.quota == {"used": 5, "max": 100}
    assert validation.error is None


@pytest.mark.asyncio
async def test_rejected_token_is_invalid(accounts):
    validation = await accounts.validate_token("nope")
    assert not validation.valid
    assert validation.error == "HTTP 401 - Invalid token or unauthorized"


@pytest.mark.asyncio
async def test_unreachable_host_is_invalid_not_raised(http_session):
    validation = await AccountService(http_session, "http://127.0.0.1:1").validate_token("t")
    assert not validation.valid
    assert validation.error == "Network error or invalid Zipline URL"


@pytest.mark.asyncio
async def test_get_me_returns_user_object(accounts):
    user = await accounts.get_me("good-token")
    assert user["username"] == "alice"


@pytest.mark.asyncio
async def test_get_me_raises_on_bad_token(accounts):
    with pytest.raises(AccountError):
        await accounts.get_me("nope")


class TestVersion:
    @pytest.mark.asyncio
    async def test_online_with_version(self, accounts):
        info = await accounts.get_version("good-token")
        assert info.online
        assert info.status_code == 200
        assert info.version == "4.2.0"

    @pytest.mark.asyncio
    async def test_version_tag_shape(self, accounts, zipline):
        zipline.version_reply = (200, {"version": {"tag": "v3.7.9"}})
        assert (await accounts.get_version()).version == "v3.7.9"

    @pytest.mark.asyncio
    async def test_upstream_failure_still_counts_as_online(self, accounts, zipline):
        zipline.version_reply = (500, {"error": "github unreachable"})
        info = await accounts.get_version()
        assert info.online
        assert info.status_code == 500
        assert info.version == "Unknown (Upstream Check Failed)"

    @pytest.mark.asyncio
    async def test_error_status_is_offline(self, accounts, zipline):
        zipline.version_reply = (502, "bad gateway")
        info = await accounts.get_version()
        assert not info.online
        assert info.status_code == 502

    @pytest.mark.asyncio
    async def test_unreachable_is_offline_not_raised(self, http_session):
        info = await AccountService(http_session, "http://127.0.0.1:1").get_version()
        assert not info.online
        assert info.status_code == 0
        assert info.error
