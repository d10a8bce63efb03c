from speechcoach.backend.tagging import classify_pace, find_hedging, normalize_word, tag_segment


def _even_rows(words, duration_ms):
    step = duration_ms // len(words)
    return [(word, i * step, (i + 1) * step) for i, word in enumerate(words)]


def _token_kinds(segment):
    return [[tag.kind for tag in token.tags] for token in segment.tokens]


def test_single_filler_is_tagged_on_its_token(make_tokens):
    tokens = make_tokens([("um", 2500, 2900), ("great.", 2900, 3100)])

    segment = tag_segment(tokens, 1, "c1")

    assert segment.id == "seg-c1-1"
    assert _token_kinds(segment) == [["filler"], []]
    tag = segment.tokens[0].tags[0]
    assert tag.id == "t0-filler"
    assert tag.data.normalized == "um"


def test_you_know_is_tagged_once_on_first_token(make_tokens):
    tokens = make_tokens(_even_rows(["and", "you", "know", "it", "works"], 2000))

    segment = tag_segment(tokens, 0, "c1")

    assert _token_kinds(segment) == [[], ["filler"], [], [], []]
    data = segment.tokens[1].tags[0].data
    assert (data.normalized, data.start_index, data.end_index) == ("you know", 1, 2)


def test_filler_matching_ignores_case_and_punctuation(make_tokens):
    tokens = make_tokens(_even_rows(["Um,", "we", "shipped", "Basically."], 2000))
    segment = tag_segment(tokens, 0, "c1")
    assert _token_kinds(segment) == [["filler"], [], [], ["filler"]]


def test_hedging_matches_whole_words_only():
    assert find_hedging(["a", "mighty", "idea"]) == []
    words = ["i", "think", "it", "could", "be", "done"]
    assert [(m.phrase, m.start_index, m.end_index) for m in find_hedging(words)] == [
        ("i think", 0, 1),
        ("could be", 3, 4),
    ]


def test_hedging_tags_every_token_of_phrase_and_aggregates(make_tokens):
    tokens = make_tokens(_even_rows(["I", "think", "we", "might", "win", "today"], 2400))

    segment = tag_segment(tokens, 0, "c1")

    assert _token_kinds(segment) == [["hedging"], ["hedging"], [], ["hedging"], [], []]
    hedging_tags = [tag for tag in segment.tags if tag.kind == "hedging"]
    assert len(hedging_tags) == 1
    assert hedging_tags[0].severity == "medium"
    assert hedging_tags[0].data.count == 2


def test_filler_aggregate_severity(make_tokens):
    three = tag_segment(make_tokens(_even_rows(["um", "uh", "er", "fine", "then"], 2000)), 0, "c1")
    five = tag_segment(make_tokens(_even_rows(["um", "uh", "er", "ah", "umm", "then"], 2400)), 0, "c1")

    assert [(t.kind, t.severity) for t in three.tags if t.id.endswith("-filler")] == [("filler", "medium")]
    assert [(t.kind, t.severity) for t in five.tags if t.id.endswith("-filler")] == [("filler", "high")]


def test_pace_bands_are_exclusive():
    assert classify_pace(0) == ("slow", "medium")
    assert classify_pace(60) == ("slow", "medium")
    assert classify_pace(110) is None
    assert classify_pace(160) is None
    assert classify_pace(180) == ("fast", "medium")
    assert classify_pace(200) == ("fast", "medium")
    assert classify_pace(250) == ("very_fast", "high")


def test_segment_pace_tag(make_tokens):
    words = ["we", "built", "this", "thing", "from", "scratch", "last", "year", "and", "won"]
    rushed = tag_segment(make_tokens(_even_rows(words, 2000)), 0, "c1")
    dragging = tag_segment(make_tokens(_even_rows(words, 10000)), 0, "c1")
    steady = tag_segment(make_tokens(_even_rows(words, 4000)), 0, "c1")

    assert [(t.id, t.kind, t.severity) for t in rushed.tags] == [("seg-c1-0-pace", "very_fast", "high")]
    assert rushed.tags[0].data.wpm == 300.0
    assert [t.kind for t in dragging.tags] == ["slow"]
    assert steady.tags == []


def test_zero_duration_segment_counts_as_slow(make_tokens):
    segment = tag_segment(make_tokens([("hi", 100, 100)]), 0, "c1")

    assert [(t.kind, t.severity) for t in segment.tags] == [("slow", "medium")]
    assert segment.tags[0].data.wpm == 0.0
    assert segment.tags[0].label == "Segment spoken at ~0 WPM - too slow, target 110-160"


def test_tagging_is_idempotent(make_tokens):
    tokens = make_tokens(_even_rows(["um", "I", "guess", "you", "know", "so", "yeah"], 1500))
    assert tag_segment(tokens, 3, "c1") == tag_segment(tokens, 3, "c1")


def test_normalize_word():
    assert normalize_word("  Hello?! ") == "hello"
    assert normalize_word("") == ""
