"""
Tests for the paginated starred-repository fetcher.
"""

from datetime import datetime, timezone

import pytest

from reporadar.clients.stars import StarsClient
from reporadar.exceptions import AuthenticationFailedError, NotFoundError, RateLimitedError, UnknownError
from reporadar.testing import TEST_TOKEN, FakeGitHub, make_repo_json
from reporadar.transport import AsyncGitHubTransport, RetryConfig

NO_WAIT = RetryConfig(max_retries=1, max_backoff=0.0, jitter=0.0)


def make_stars(github: FakeGitHub, **kwargs) -> StarsClient:
    transport = AsyncGitHubTransport(retry_config=NO_WAIT, http_transport=github.transport)
    return StarsClient(transport, **kwargs)


def star_many(github: FakeGitHub, count: int) -> None:
    for i in range(1, count + 1):
        # Stars deliberately out of order relative to upstream order
        github.add_starred(make_repo_json(i, stars=(i * 37) % 1000))


@pytest.mark.asyncio
async def test_count_uses_last_link(fake_github: FakeGitHub) -> None:
    star_many(fake_github, 42)

    assert await make_stars(fake_github).count(TEST_TOKEN) == 42

    call = fake_github.get_calls("GET", "/user/starred")[0]
    assert call.params["per_page"] == "1"


@pytest.mark.asyncio
async def test_count_without_link_counts_items(fake_github: FakeGitHub) -> None:
    star_many(fake_github, 1)
    stars = make_stars(fake_github)

    assert await stars.count(TEST_TOKEN) == 1

    fake_github.starred.clear()
    assert await stars.count(TEST_TOKEN) == 0


@pytest.mark.asyncio
async def test_fetch_all_101_repositories(fake_github: FakeGitHub) -> None:
    """
    Property 8: Probe then parallel pages

    With N=101 starred and page size 100, the fetcher SHALL issue one probe
    and exactly two page requests and return all 101, most-starred first.
    """
    star_many(fake_github, 101)

    result = await make_stars(fake_github).fetch_all(TEST_TOKEN)

    assert fake_github.call_count("GET", "/user/starred") == 3
    pages = sorted(
        int(c.params["page"]) for c in fake_github.get_calls("GET", "/user/starred") if "page" in c.params
    )
    assert pages == [1, 2]
    assert result.total_fetched == 101
    assert result.total_starred == 101
    assert result.is_limited is False
    stars = [repo.stars for repo in result.repositories]
    assert stars == sorted(stars, reverse=True)


@pytest.mark.asyncio
async def test_fetch_all_empty_skips_page_requests(fake_github: FakeGitHub) -> None:
    result = await make_stars(fake_github).fetch_all(TEST_TOKEN)

    assert result.repositories == []
    assert result.total_starred == 0
    assert fake_github.call_count("GET", "/user/starred") == 1


@pytest.mark.asyncio
async def test_fetch_all_is_capped(fake_github: FakeGitHub) -> None:
    star_many(fake_github, 260)

    result = await make_stars(fake_github, max_repos=200).fetch_all(TEST_TOKEN)

    assert result.total_fetched == 200
    assert result.total_starred == 260
    assert result.is_limited is True
    # probe + 2 pages of 100
    assert fake_github.call_count("GET", "/user/starred") == 3


@pytest.mark.asyncio
async def test_fetch_all_runs_pages_concurrently() -> None:
    github = FakeGitHub(latency=0.01)
    star_many(github, 250)

    await make_stars(github).fetch_all(TEST_TOKEN)

    assert github.max_in_flight == 3


@pytest.mark.asyncio
async def test_equal_star_counts_keep_upstream_order(fake_github: FakeGitHub) -> None:
    for i in range(1, 6):
        fake_github.add_starred(make_repo_json(i, stars=10))

    result = await make_stars(fake_github).fetch_all(TEST_TOKEN)

    assert [repo.id for repo in result.repositories] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_auth_failure_on_any_page_aborts(fake_github: FakeGitHub) -> None:
    star_many(fake_github, 150)
    fake_github.fail("/user/starred", 401, params={"page": "2"})

    with pytest.raises(AuthenticationFailedError):
        await make_stars(fake_github).fetch_all(TEST_TOKEN)


@pytest.mark.asyncio
async def test_rate_limit_on_any_page_aborts(fake_github: FakeGitHub) -> None:
    star_many(fake_github, 150)
    fake_github.fail_rate_limited("/user/starred", 1705320000, params={"page": "1"})

    with pytest.raises(RateLimitedError) as exc_info:
        await make_stars(fake_github).fetch_all(TEST_TOKEN)

    assert exc_info.value.reset_at == datetime.fromtimestamp(1705320000, tz=timezone.utc)


@pytest.mark.asyncio
async def test_other_page_failures_yield_partial_results(fake_github: FakeGitHub, caplog) -> None:
    star_many(fake_github, 150)
    fake_github.fail("/user/starred", 500, params={"page": "2"})

    result = await make_stars(fake_github).fetch_all(TEST_TOKEN)

    assert result.total_fetched == 100
    assert result.failed_pages == [2]
    assert any("page 2" in r.message for r in caplog.records)


@pytest.mark.asyncio
async def test_all_pages_failing_raises(fake_github: FakeGitHub) -> None:
    star_many(fake_github, 150)
    fake_github.fail("/user/starred", 500, params={"page": "1"})
    fake_github.fail("/user/starred", 500, params={"page": "2"})

    with pytest.raises(UnknownError):
        await make_stars(fake_github).fetch_all(TEST_TOKEN)


@pytest.mark.asyncio
async def test_fetch_page_reads_starred_at(fake_github: FakeGitHub) -> None:
    fake_github.add_starred(make_repo_json(7, "octo/seven", stars=3), starred_at="2024-02-01T10:00:00Z")

    [repo] = await make_stars(fake_github).fetch_page(TEST_TOKEN)

    assert repo.full_name == "octo/seven"
    assert repo.starred_at == datetime(2024, 2, 1, 10, tzinfo=timezone.utc)
    call = fake_github.get_calls("GET", "/user/starred")[0]
    assert "star+json" in call.headers["accept"]


@pytest.mark.asyncio
async def test_fetch_page_rejects_unknown_sort(fake_github: FakeGitHub) -> None:
    with pytest.raises(ValueError):
        await make_stars(fake_github).fetch_page(TEST_TOKEN, sort="stars")
    with pytest.raises(ValueError):
        await make_stars(fake_github).fetch_page(TEST_TOKEN, direction="up")


@pytest.mark.asyncio
async def test_fetch_next_page_has_more(fake_github: FakeGitHub) -> None:
    star_many(fake_github, 45)
    stars = make_stars(fake_github)

    first = await stars.fetch_next_page(TEST_TOKEN, page=1)
    second = await stars.fetch_next_page(TEST_TOKEN, page=2)

    assert len(first.repositories) == 30
    assert first.next_page == 2
    assert len(second.repositories) == 15
    assert second.has_more is False


@pytest.mark.asyncio
async def test_fetch_next_page_stops_at_cap(fake_github: FakeGitHub) -> None:
    star_many(fake_github, 90)
    stars = make_stars(fake_github, max_repos=60)

    page = await stars.fetch_next_page(TEST_TOKEN, page=2)

    assert len(page.repositories) == 30
    assert page.next_page is None


@pytest.mark.asyncio
async def test_star_unstar_and_is_starred(fake_github: FakeGitHub) -> None:
    fake_github.add_repository(make_repo_json(9, "octo/nine"))
    stars = make_stars(fake_github)

    assert await stars.is_starred(TEST_TOKEN, "octo", "nine") is False
    await stars.star(TEST_TOKEN, "octo", "nine")
    assert await stars.is_starred(TEST_TOKEN, "octo", "nine") is True
    await stars.unstar(TEST_TOKEN, "octo", "nine")
    assert await stars.is_starred(TEST_TOKEN, "octo", "nine") is False

    assert fake_github.was_called("PUT", "/user/starred/octo/nine")
    assert fake_github.was_called("DELETE", "/user/starred/octo/nine")


@pytest.mark.asyncio
async def test_unstar_unknown_repository(fake_github: FakeGitHub) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        await make_stars(fake_github).unstar(TEST_TOKEN, "ghost", "repo")

    assert "ghost/repo" in exc_info.value.message


@pytest.mark.asyncio
async def test_is_starred_without_token(fake_github: FakeGitHub) -> None:
    assert await make_stars(fake_github).is_starred(None, "octo", "nine") is False
    assert fake_github.call_count() == 0
