import json
import re
from datetime import datetime, timezone

import pytest

from club_api.exceptions import ChallengeValidationError, NotFoundError, SourceUnavailableError
from club_api.schemas.challenge import ChallengeCreate, ChallengeReward, ChallengeSet
from club_api.services.challenge_data import ChallengeDataRepository
from club_api.services.challenge_generator import ChallengeGenerator, export_file_name, generate_challenge_id

from conftest import make_challenge_set

FIXED_NOW = datetime(2025, 3, 5, 10, 0, 0, tzinfo=timezone.utc)


def write_month(directory, year_month: str, generated_at: str, count: int = 1) -> None:
    (directory / f"{year_month}.json").write_text(
        json.dumps(make_challenge_set(generated_at, count), ensure_ascii=False),
        encoding="utf-8",
    )


@pytest.fixture()
def generator(song_repository) -> ChallengeGenerator:
    return ChallengeGenerator(song_repository, clock=lambda: FIXED_NOW)


@pytest.mark.asyncio
async def test_files_are_listed_newest_first(challenge_dir):
    write_month(challenge_dir, "2024-12", "2024-12-01T00:00:00.000Z")
    write_month(challenge_dir, "2025-02", "2025-02-01T00:00:00.000Z", count=3)
    write_month(challenge_dir, "2025-01", "2025-01-01T00:00:00.000Z")
    (challenge_dir / "README.txt").write_text("not a challenge file", encoding="utf-8")

    batch = await ChallengeDataRepository(challenge_dir).list_monthly_files()

    assert [f.yearMonth for f in batch.items] == ["2025-02", "2025-01", "2024-12"]
    assert batch.items[0].fileName == "2025-02.json"
    assert batch.items[0].data.totalChallenges == 3
    assert not batch.has_failures


@pytest.mark.asyncio
async def test_corrupt_file_is_excluded(challenge_dir):
    write_month(challenge_dir, "2025-01", "2025-01-01T00:00:00.000Z")
    (challenge_dir / "2025-02.json").write_text("{oops", encoding="utf-8")
    (challenge_dir / "2025-03.json").write_text(json.dumps({"challenges": "nope"}), encoding="utf-8")

    batch = await ChallengeDataRepository(challenge_dir).list_monthly_files()

    assert [f.yearMonth for f in batch.items] == ["2025-01"]
    assert sorted(failure.key for failure in batch.failures) == ["2025-02.json", "2025-03.json"]


@pytest.mark.asyncio
async def test_latest_only_reads_newest_file(challenge_dir):
    (challenge_dir / "2024-11.json").write_text("{oops", encoding="utf-8")
    write_month(challenge_dir, "2025-01", "2025-01-01T00:00:00.000Z")

    batch = await ChallengeDataRepository(challenge_dir).list_monthly_files(latest_only=True)

    assert [f.fileName for f in batch.items] == ["2025-01.json"]
    assert not batch.has_failures


@pytest.mark.asyncio
async def test_files_are_served_as_written(challenge_dir):
    content = make_challenge_set("2025-03-01T00:00:00.000Z")
    content["challenges"][0]["reward"] = "60币"
    content["challenges"][0]["bonus"] = "double coins"
    del content["challenges"][0]["stars"]
    content["theme"] = "spring"
    (challenge_dir / "2025-03.json").write_text(json.dumps(content, ensure_ascii=False), encoding="utf-8")

    batch = await ChallengeDataRepository(challenge_dir).list_monthly_files(latest_only=True)

    assert not batch.has_failures
    served = batch.items[0].data.model_dump()
    assert served == content


@pytest.mark.asyncio
async def test_file_without_envelope_fields_is_excluded(challenge_dir):
    (challenge_dir / "2025-03.json").write_text(json.dumps({"challenges": []}), encoding="utf-8")

    batch = await ChallengeDataRepository(challenge_dir).list_monthly_files()

    assert batch.items == []
    assert [failure.key for failure in batch.failures] == ["2025-03.json"]


@pytest.mark.asyncio
async def test_list_file_names(challenge_dir):
    write_month(challenge_dir, "2025-01", "2025-01-01T00:00:00.000Z")
    write_month(challenge_dir, "2025-02", "2025-02-01T00:00:00.000Z")
    (challenge_dir / "notes.txt").write_text("skip me", encoding="utf-8")

    assert await ChallengeDataRepository(challenge_dir).list_file_names() == ["2025-02.json", "2025-01.json"]


@pytest.mark.asyncio
async def test_missing_directory_is_source_unavailable(tmp_path):
    repository = ChallengeDataRepository(tmp_path / "nope")
    with pytest.raises(SourceUnavailableError):
        await repository.list_monthly_files()


@pytest.mark.asyncio
async def test_save_monthly_file_round_trips(tmp_path):
    directory = tmp_path / "new-dir"
    repository = ChallengeDataRepository(directory)
    challenge_set = ChallengeSet.model_validate(make_challenge_set("2025-03-01T00:00:00.000Z", 2))

    saved = await repository.save_monthly_file("2025-03", challenge_set)

    assert saved.fileName == "2025-03.json"
    content = (directory / "2025-03.json").read_text(encoding="utf-8")
    assert "15币" in content
    batch = await repository.list_monthly_files(latest_only=True)
    assert batch.items[0].data.model_dump() == challenge_set.model_dump(mode="json")


@pytest.mark.asyncio
@pytest.mark.parametrize("year_month", ["2025-13", "2025-3", "25-03", "2025-03.json", "../2025-03"])
async def test_save_rejects_bad_month(challenge_dir, year_month):
    challenge_set = ChallengeSet.model_validate(make_challenge_set("2025-03-01T00:00:00.000Z"))
    with pytest.raises(ChallengeValidationError):
        await ChallengeDataRepository(challenge_dir).save_monthly_file(year_month, challenge_set)


@pytest.mark.asyncio
async def test_save_rejects_inconsistent_set(challenge_dir):
    payload = make_challenge_set("2025-03-01T00:00:00.000Z", 2)
    payload["totalChallenges"] = 5
    with pytest.raises(ChallengeValidationError):
        await ChallengeDataRepository(challenge_dir).save_monthly_file("2025-03", ChallengeSet.model_validate(payload))

    empty = ChallengeSet(challenges=[], generatedAt="2025-03-01T00:00:00.000Z", totalChallenges=0)
    with pytest.raises(ChallengeValidationError):
        await ChallengeDataRepository(challenge_dir).save_monthly_file("2025-03", empty)


def test_challenge_id_format():
    assert re.fullmatch(r"challenge_1741168800000_[0-9a-z]{9}", generate_challenge_id(1741168800000))


def test_export_file_name_uses_current_month():
    assert export_file_name(FIXED_NOW) == "2025-03.json"
    assert export_file_name(datetime(2025, 11, 30, tzinfo=timezone.utc)) == "2025-11.json"


@pytest.mark.asyncio
async def test_build_challenge_copies_song_details(generator):
    challenge = await generator.build_challenge(
        ChallengeCreate(songId=2, difficulty="ura", requiredScore=95, reward=ChallengeReward.COINS_30, notes="full combo")
    )

    assert challenge.songTitle == "Senbonzakura"
    assert challenge.songTitleCn == "千本樱"
    assert challenge.stars == 9.5
    assert challenge.reward == ChallengeReward.COINS_30
    assert challenge.customReward is None
    assert challenge.notes == "full combo"
    assert challenge.createdAt == "2025-03-05T10:00:00.000Z"
    assert re.fullmatch(r"challenge_1741168800000_[0-9a-z]{9}", challenge.id)


@pytest.mark.asyncio
async def test_level_without_constant_has_zero_stars(generator):
    challenge = await generator.build_challenge(ChallengeCreate(songId=3, difficulty="easy", requiredScore=50))
    assert challenge.stars == 0


@pytest.mark.asyncio
async def test_custom_reward_required_for_other(generator):
    with pytest.raises(ChallengeValidationError):
        await generator.build_challenge(
            ChallengeCreate(songId=1, difficulty="oni", requiredScore=90, reward=ChallengeReward.OTHER, customReward="  ")
        )

    challenge = await generator.build_challenge(
        ChallengeCreate(songId=1, difficulty="oni", requiredScore=90, reward=ChallengeReward.OTHER, customReward=" Club T-shirt ")
    )
    assert challenge.customReward == "Club T-shirt"


@pytest.mark.asyncio
async def test_custom_reward_dropped_for_coin_rewards(generator):
    challenge = await generator.build_challenge(
        ChallengeCreate(songId=1, difficulty="oni", requiredScore=90, customReward="ignored")
    )
    assert challenge.customReward is None


@pytest.mark.asyncio
async def test_build_challenge_rejections(generator):
    with pytest.raises(NotFoundError):
        await generator.build_challenge(ChallengeCreate(songId=42, difficulty="oni", requiredScore=90))
    with pytest.raises(ChallengeValidationError):
        await generator.build_challenge(ChallengeCreate(songId=1, difficulty="ura", requiredScore=90))
    with pytest.raises(ChallengeValidationError):
        await generator.build_challenge(ChallengeCreate(songId=1, difficulty="oni", requiredScore=0))


@pytest.mark.asyncio
async def test_generate_set(generator):
    first = await generator.build_challenge(ChallengeCreate(songId=1, difficulty="oni", requiredScore=90))
    second = await generator.build_challenge(ChallengeCreate(songId=2, difficulty="oni", requiredScore=80))

    challenge_set = generator.generate_set([first, second])

    assert challenge_set.totalChallenges == 2
    assert challenge_set.generatedAt == "2025-03-05T10:00:00.000Z"
    assert generator.export_file_name() == "2025-03.json"

    with pytest.raises(ChallengeValidationError):
        generator.generate_set([])
