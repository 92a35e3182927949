"""Tests for token_version revocation."""

from remaster_auth.services.revocation import bump_token_version


class TestBumpTokenVersion:
    """Tests for bump_token_version()."""

    async def test_bump_increments(self, db_session, test_user):
        """A bump returns the previous value plus one."""
        assert await bump_token_version(db_session, test_user.id) == 1

    async def test_repeated_bumps_are_not_lost(self, db_session, test_user):
        """N bumps raise the counter by exactly N."""
        for _ in range(5):
            await bump_token_version(db_session, test_user.id)
        await db_session.commit()
        await db_session.refresh(test_user)
        assert test_user.token_version == 5

    async def test_missing_user(self, db_session):
        """A user deleted before the bump yields None."""
        assert await bump_token_version(db_session, 12345) is None

    async def test_old_refresh_fails_old_access_survives(
        self, db_session, test_user, codec
    ):
        """After a bump the old refresh token's version is stale, while the
        old access token still verifies until it expires."""
        pair = codec.issue_pair(test_user)

        await bump_token_version(db_session, test_user.id)
        await db_session.commit()
        await db_session.refresh(test_user)

        assert codec.verify_refresh(pair.refresh.token).token_version != (
            test_user.token_version
        )
        assert codec.verify_access(pair.access.token).user_id == test_user.id
