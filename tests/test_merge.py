import pytest
from pydantic import ValidationError

from src.gmb_leads.merge import LeadCollection
from src.gmb_leads.parse import parse_leads_from_markdown
from src.gmb_leads.schema import Lead


def _lead(name, rank=1, rating=4.0, distance="1 km", keyword="plumbers"):
    return Lead(
        id=f"id-{name}-{rank}",
        business_name=name,
        rank=rank,
        rating=rating,
        distance=distance,
        keyword=keyword,
    )


def test_merge_dedupes_case_insensitively(three_row_table):
    collection = LeadCollection()
    collection.merge(parse_leads_from_markdown(three_row_table, "plumbers"))

    added = collection.merge([_lead("acme plumbing "), _lead("New Shop")])

    assert [lead.business_name for lead in added] == ["New Shop"]
    names = [lead.business_name.lower() for lead in collection]
    assert names.count("acme plumbing") == 1
    assert len(collection) == 4


def test_clear_is_the_only_removal():
    collection = LeadCollection([_lead("A"), _lead("B")])

    collection.clear()

    assert len(collection) == 0
    assert collection.merge([_lead("A")])


def test_sorted_by_distance_uses_meters():
    collection = LeadCollection(
        [_lead("far", distance="2 km"), _lead("near", distance="300 m"), _lead("mid", distance="1.1 km")]
    )

    names = [lead.business_name for lead in collection.sorted_by("distance")]

    assert names == ["near", "mid", "far"]


def test_sorted_by_rating_descending():
    collection = LeadCollection([_lead("a", rating=3.0), _lead("b", rating=4.9)])

    assert collection.sorted_by("rating", descending=True)[0].business_name == "b"


def test_sorted_by_rejects_unknown_field():
    with pytest.raises(ValueError):
        LeadCollection().sorted_by("id")


def test_stats_and_grouping():
    collection = LeadCollection(
        [
            _lead("a", rating=4.0, keyword="plumbers"),
            _lead("b", rating=4.5, keyword="plumbers"),
            _lead("c", rating=3.0, keyword="roofers"),
        ]
    )

    stats = collection.stats()

    assert stats.total == 3
    assert stats.average_rating == 3.8
    assert stats.unique_keywords == 2
    assert sorted(collection.by_keyword()) == ["plumbers", "roofers"]


def test_empty_stats():
    assert LeadCollection().stats().average_rating == 0.0


def test_leads_are_immutable():
    lead = _lead("A")

    with pytest.raises(ValidationError):
        lead.rank = 5


def test_export_shape_uses_camel_case():
    dumped = _lead("A").model_dump(by_alias=True)

    assert set(dumped) == {
        "id",
        "businessName",
        "phoneNumber",
        "address",
        "rank",
        "website",
        "locationLink",
        "rating",
        "distance",
        "keyword",
    }
    assert dumped["website"] == "None"
    assert dumped["locationLink"] == "#"


def test_bare_distance_sorts_as_kilometres():
    collection = LeadCollection([_lead("five", distance="5"), _lead("near", distance="800 m")])

    names = [lead.business_name for lead in collection.sorted_by("distance")]

    assert names == ["near", "five"]
