import pytest

from tagtrain.context import DefaultNameContextGenerator, NameContextGenerator
from tagtrain.errors import InvalidSpanError, SampleEncodingError, SourceReadError
from tagtrain.event_stream import EventBuilder, NameEventStream, generate_events
from tagtrain.outcomes import encode
from tagtrain.types import Event, NameSample, Span


def make_sample(tokens, names=(), additional_context=None, clear=False):
    return NameSample(tuple(tokens), tuple(names), additional_context, clear)


JOHN = make_sample(["John", "lives", "in", "Paris"], [Span(0, 1, "PERSON"), Span(3, 4, "LOCATION")])
SEEN_AGAIN = make_sample(["John", "left"])


class RecordingContextGenerator(NameContextGenerator):
    """Records every call so tests can check the builder's contract."""

    def __init__(self):
        self.calls = []
        self.added = []

    def get_context(self, index, tokens, outcomes_so_far, additional_context):
        self.calls.append(("get_context", index, list(outcomes_so_far)))
        return (f"i={index}",)

    def update_adaptive_data(self, tokens, outcomes):
        self.calls.append(("update", list(tokens), list(outcomes)))

    def clear_adaptive_data(self):
        self.calls.append(("clear",))

    def add_feature_generator(self, generator):
        self.added.append(generator)


class ClosableSource:
    def __init__(self, samples, fail_after=None):
        self.samples = list(samples)
        self.fail_after = fail_after
        self.closed = False

    def __iter__(self):
        for i, sample in enumerate(self.samples):
            if self.fail_after is not None and i == self.fail_after:
                raise SourceReadError("disk went away")
            yield sample

    def close(self):
        self.closed = True


def test_one_event_per_token_with_encoded_outcomes() -> None:
    events = EventBuilder(DefaultNameContextGenerator()).build(JOHN)

    expected = encode(JOHN.names, "default", len(JOHN.tokens))
    assert len(events) == len(JOHN.tokens)
    assert [e.outcome for e in events] == expected
    assert all(isinstance(e, Event) for e in events)


def test_untyped_names_get_override_type() -> None:
    sample = make_sample(["New", "York"], [Span(0, 2)])
    events = EventBuilder(DefaultNameContextGenerator(), "location").build(sample)
    assert [e.outcome for e in events] == ["location-start", "location-continue"]


def test_builder_calls_generator_in_order_with_gold_outcomes() -> None:
    cg = RecordingContextGenerator()
    builder = EventBuilder(cg)

    events = builder.build(JOHN)

    gold = ["PERSON-start", "other", "other", "LOCATION-start"]
    assert [c for c in cg.calls if c[0] == "get_context"] == [
        ("get_context", i, gold) for i in range(4)
    ]
    assert cg.calls[-1] == ("update", list(JOHN.tokens), gold)
    assert [e.context for e in events] == [("i=0",), ("i=1",), ("i=2",), ("i=3",)]
    assert len(cg.added) == 1


def test_builder_clears_adaptive_data_only_when_flagged() -> None:
    cg = RecordingContextGenerator()
    builder = EventBuilder(cg)

    builder.build(SEEN_AGAIN)
    assert ("clear",) not in cg.calls

    builder.build(make_sample(["x"], clear=True))
    assert cg.calls.count(("clear",)) == 1


def test_identical_samples_on_fresh_generators_give_identical_events() -> None:
    first = EventBuilder(DefaultNameContextGenerator()).build(JOHN)
    second = EventBuilder(DefaultNameContextGenerator()).build(JOHN)
    assert first == second


def test_features_carry_over_between_samples_without_clear_flag() -> None:
    events = list(NameEventStream([JOHN, SEEN_AGAIN]))
    assert "pd=PERSON-start" in events[len(JOHN.tokens)].context


def test_clear_flag_makes_sample_independent_of_history() -> None:
    cleared = make_sample(SEEN_AGAIN.tokens, clear=True)

    after_history = list(NameEventStream([JOHN, cleared]))[len(JOHN.tokens):]
    alone = list(NameEventStream([cleared]))

    assert after_history == alone
    assert not any(f.startswith("pd=") for e in alone for f in e.context)


def test_additional_context_reaches_features_through_window() -> None:
    sample = make_sample(["a", "b", "c"], additional_context=[["pd=x"], ["pd=y"], ["pd=z"]])
    events = EventBuilder(DefaultNameContextGenerator()).build(sample)

    first = events[0].context
    assert "ne=pd=x" in first
    assert "n1ne=pd=y" in first
    assert "n2ne=pd=z" in first
    assert not any(f.startswith("p1ne=") for f in first)


def test_additional_context_does_not_leak_into_next_sample() -> None:
    builder = EventBuilder(DefaultNameContextGenerator())
    builder.build(make_sample(["a"], additional_context=[["pd=x"]]))
    events = builder.build(make_sample(["b"]))
    assert not any("ne=" in f for f in events[0].context)


def test_additional_context_row_mismatch_fails() -> None:
    sample = make_sample(["a", "b"], additional_context=[["pd=x"]])
    with pytest.raises(SampleEncodingError):
        EventBuilder(DefaultNameContextGenerator()).build(sample)


def test_generate_events_rejects_length_mismatch() -> None:
    with pytest.raises(SampleEncodingError):
        generate_events(["a", "b"], ["other"], DefaultNameContextGenerator())


def test_generator_returning_a_string_fails() -> None:
    class BadGenerator(RecordingContextGenerator):
        def get_context(self, index, tokens, outcomes_so_far, additional_context):
            return "w=oops"

    with pytest.raises(SampleEncodingError):
        EventBuilder(BadGenerator()).build(SEEN_AGAIN)


def test_stream_flattens_samples_in_order() -> None:
    events = list(NameEventStream([JOHN, SEEN_AGAIN]))
    assert [e.outcome for e in events] == [
        "PERSON-start", "other", "other", "LOCATION-start", "other", "other",
    ]


def test_stream_is_lazy() -> None:
    pulled = []

    def source():
        for sample in (JOHN, SEEN_AGAIN):
            pulled.append(sample)
            yield sample

    it = iter(NameEventStream(source()))
    next(it)
    assert pulled == [JOHN]


def test_stream_surfaces_bad_sample_immediately() -> None:
    bad = make_sample(["a", "b"], [Span(1, 3, "X")])
    it = iter(NameEventStream([SEEN_AGAIN, bad, JOHN]))

    assert len([next(it), next(it)]) == 2
    with pytest.raises(InvalidSpanError):
        next(it)


def test_stream_propagates_source_errors_unchanged() -> None:
    source = ClosableSource([JOHN, SEEN_AGAIN], fail_after=1)
    with pytest.raises(SourceReadError, match="disk went away"):
        with NameEventStream(source) as stream:
            list(stream)
    assert source.closed


def test_stream_restarts_only_if_source_does() -> None:
    restartable = NameEventStream([JOHN, SEEN_AGAIN])
    assert list(restartable) == list(restartable)

    one_shot = NameEventStream(iter([JOHN]))
    assert len(list(one_shot)) == 4
    assert list(one_shot) == []


def test_reset_needs_a_resettable_source() -> None:
    with pytest.raises(TypeError):
        NameEventStream([JOHN]).reset()


def test_stream_keeps_one_generator_for_its_lifetime() -> None:
    cg = RecordingContextGenerator()
    stream = NameEventStream([JOHN, SEEN_AGAIN], context_generator=cg)
    list(stream)

    assert stream.context_generator is cg
    # one clear at the start of the traversal, none between samples
    assert cg.calls.count(("clear",)) == 1
    assert cg.calls[0] == ("clear",)


def test_stream_closes_source_when_a_sample_is_malformed() -> None:
    bad = make_sample(["a", "b"], [Span(1, 3, "X")])
    source = ClosableSource([JOHN, bad, SEEN_AGAIN])

    with pytest.raises(InvalidSpanError):
        with NameEventStream(source) as stream:
            list(stream)
    assert source.closed


def test_context_generator_cannot_serve_two_streams() -> None:
    cg = DefaultNameContextGenerator()
    NameEventStream([JOHN], context_generator=cg)

    with pytest.raises(ValueError, match="already used"):
        NameEventStream([SEEN_AGAIN], context_generator=cg)
    assert len(cg.feature_generator.generators) == 7


def test_string_context_rows_are_rejected() -> None:
    with pytest.raises(SampleEncodingError):
        make_sample(["a", "b"], additional_context=["pd=x", "pd=y"])
    with pytest.raises(SampleEncodingError):
        make_sample(["a"], additional_context=[[1]])
