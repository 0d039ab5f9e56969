from sqlalchemy import select

from onsen_guesser.database.models import GameSession
from onsen_guesser.errors import ErrorKind

from conftest import KUSATSU


async def test_create_guest_with_default_name(user_service):
    result = await user_service.create_guest()

    assert result.ok
    user = result.data
    assert user.name.startswith("Guest")
    assert user.email is None
    assert (user.total_games, user.total_score, user.best_score, user.average_score) == (0, 0, 0, 0.0)


async def test_create_guest_strips_name(user_service):
    user = (await user_service.create_guest(name="  Taro  ")).data

    assert user.name == "Taro"


async def test_create_guest_is_find_or_create_by_email(user_service):
    first = (await user_service.create_guest(name="Taro", email="taro@example.com")).data
    again = (await user_service.create_guest(name="Someone Else", email="taro@example.com")).data
    other = (await user_service.create_guest(name="Jiro", email="jiro@example.com")).data

    assert again.id == first.id
    assert again.name == "Taro"
    assert other.id != first.id


async def test_create_guest_rejects_blank_name(user_service):
    result = await user_service.create_guest(name="   ")

    assert result.kind == ErrorKind.VALIDATION


async def test_get_user(user_service, make_user):
    user_id = await make_user("Hanako")

    result = await user_service.get_user(user_id)

    assert result.ok
    assert result.data.name == "Hanako"
    assert (await user_service.get_user("nobody")).kind == ErrorKind.USER_NOT_FOUND


async def test_rename_user(user_service, make_user):
    user_id = await make_user("Hanako")

    renamed = await user_service.rename_user(user_id, "Hanako Y.")

    assert renamed.data.name == "Hanako Y."
    assert (await user_service.get_user(user_id)).data.name == "Hanako Y."


async def test_rename_user_validation(user_service, make_user):
    user_id = await make_user("Hanako")

    assert (await user_service.rename_user(user_id, "")).kind == ErrorKind.VALIDATION
    assert (await user_service.rename_user(user_id, "x" * 101)).kind == ErrorKind.VALIDATION
    assert (await user_service.rename_user(user_id, "x" * 100)).ok
    assert (await user_service.rename_user("nobody", "Taro")).kind == ErrorKind.USER_NOT_FOUND


async def test_reset_stats(user_service, make_user, make_ranking_entry, stats):
    user_id = await make_user("Hanako", total_games=3, total_score=9000, best_score=4500)
    await make_ranking_entry(user_id, 4500, "2024-05-20")

    result = await user_service.reset_stats(user_id)

    user = result.data
    assert (user.total_games, user.total_score, user.best_score, user.average_score) == (0, 0, 0, 0.0)
    # History stays on the daily board
    assert len((await stats.daily_rankings("2024-05-20")).data) == 1
    assert (await user_service.reset_stats("nobody")).kind == ErrorKind.USER_NOT_FOUND


async def test_user_stats_before_playing(user_service, make_user):
    user_id = await make_user()

    stats = (await user_service.user_stats(user_id)).data

    assert stats.recent_games == []
    assert stats.current_rank is None


async def test_user_stats_after_playing(user_service, engine, clock, make_location, make_user):
    await make_location()
    user_id = await make_user("Hanako")

    for lat in (KUSATSU[0], KUSATSU[0] - 0.1):
        game = (await engine.create(user_id=user_id, round_count=1)).data
        await engine.submit_guess(game.session_id, lat, KUSATSU[1])
        clock.advance(hours=1)
    # Unfinished sessions are not history
    await engine.create(user_id=user_id, round_count=1)

    stats = (await user_service.user_stats(user_id)).data

    assert stats.user.total_games == 2
    assert stats.current_rank == 1
    assert len(stats.recent_games) == 2
    latest, earliest = stats.recent_games
    assert latest.completed_at > earliest.completed_at
    assert earliest.total_score == 5000
    assert earliest.total_rounds == 1
    assert earliest.rank_date == "2024-05-20"
    assert earliest.average_distance == 0


async def test_user_stats_rank_is_dense(user_service, make_user):
    await make_user("First", total_games=4, total_score=16000, best_score=4900)
    await make_user("Tied A", total_games=2, total_score=8000, best_score=4500)
    await make_user("Tied B", total_games=2, total_score=7000, best_score=4500)
    await make_user("Idle")
    last = await make_user("Last", total_games=1, total_score=100, best_score=100)

    assert (await user_service.user_stats(last)).data.current_rank == 3


async def test_user_stats_unknown_user(user_service):
    assert (await user_service.user_stats("nobody")).kind == ErrorKind.USER_NOT_FOUND


async def test_create_by_email_names_user_after_local_part(user_service):
    user = (await user_service.create_guest(email="hanako.yamada@example.com")).data

    assert user.name == "hanako.yamada"
    assert user.email == "hanako.yamada@example.com"


async def test_update_avatar(user_service, make_user):
    user_id = await make_user()

    updated = await user_service.update_avatar(user_id, "https://img.example/me.png")

    assert updated.data.avatar == "https://img.example/me.png"
    assert (await user_service.get_user(user_id)).data.avatar == "https://img.example/me.png"
    assert (await user_service.update_avatar(user_id, "  ")).data.avatar is None
    assert (await user_service.update_avatar("nobody", "x")).kind == ErrorKind.USER_NOT_FOUND


async def test_delete_user_removes_rankings_and_detaches_sessions(
    user_service, engine, stats, database, make_location, make_user
):
    await make_location()
    user_id = await make_user("Hanako")
    other_id = await make_user("Taro")
    for owner in (user_id, other_id):
        game = (await engine.create(user_id=owner, round_count=1)).data
        await engine.submit_guess(game.session_id, *KUSATSU)

    result = await user_service.delete_user(user_id)

    assert result.ok
    assert (await user_service.get_user(user_id)).kind == ErrorKind.USER_NOT_FOUND
    daily = (await stats.daily_rankings("2024-05-20")).data
    assert [r.user.name for r in daily] == ["Taro"]
    async with database.session_factory() as db:
        sessions = (await db.execute(select(GameSession))).scalars().all()
    assert sorted(s.user_id or "" for s in sessions) == sorted(["", other_id])
    assert (await user_service.delete_user(user_id)).kind == ErrorKind.USER_NOT_FOUND
