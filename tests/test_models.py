from libflix.domain.models import CandidateSource, Priority, ResolutionFailure, ResolutionSuccess


def test_priority_coerce():
    assert Priority.coerce("HIGH") is Priority.HIGH
    assert Priority.coerce(Priority.HIGH) is Priority.HIGH
    assert Priority.coerce(None) is Priority.NORMAL
    assert Priority.coerce("urgent") is Priority.NORMAL


def test_result_dicts():
    ok = ResolutionSuccess(item_id="1", url="https://a.example/x.jpg", width=10, height=20,
                           resolved_at=5.0, source=CandidateSource.SUPPLIED)
    assert ok.ok and ok.to_dict()['source'] == "supplied"

    failure = ResolutionFailure(item_id="1", title="T", author="A", tried_urls=("u1", "u2"))
    data = failure.to_dict()
    assert not failure.ok
    assert data['ok'] is False
    assert data['tried_urls'] == ["u1", "u2"]
    assert data['reason'] == "exhausted_all_candidates"
