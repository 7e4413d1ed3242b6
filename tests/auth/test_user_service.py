from datetime import datetime, timezone

import pytest
from roomchat.services.user_service import UserService
from roomchat.utils.datetime_utils import as_utc


@pytest.mark.asyncio
async def test_set_online_flips_flag_and_stamps_last_seen(async_session, test_user):
    service = UserService(async_session)

    await service.set_online(test_user.id, True)
    await async_session.refresh(test_user)
    assert test_user.is_online is True
    assert test_user.last_seen is not None

    await service.set_online(test_user.id, False)
    await async_session.refresh(test_user)
    assert test_user.is_online is False


@pytest.mark.asyncio
async def test_record_last_seen(async_session, test_user):
    seen = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    await UserService(async_session).record_last_seen(test_user.id, seen)

    await async_session.refresh(test_user)
    assert as_utc(test_user.last_seen) == seen
