from outline_worker.services.parsing import normalize_item


def test_text_record_is_kept_verbatim():
    assert normalize_item({"text": "X"}) == {"text": "X"}
    assert normalize_item({"text": "  X  ", "核心金句": "ignored"}) == {"text": "X"}


def test_native_keys_join_in_fixed_order():
    assert normalize_item({"核心金句": "A", "逻辑拆解": "B"}) == {"text": "A\nB"}
    item = {"互动建议": "C", "逻辑拆解": " B ", "核心金句": "A"}
    assert normalize_item(item) == {"text": "A\nB\nC"}


def test_english_aliases():
    assert normalize_item({"core": "A", "logic": "B", "insight": "C"}) == {"text": "A\nB\nC"}


def test_native_key_wins_over_alias():
    assert normalize_item({"核心金句": "native", "core": "alias"}) == {"text": "native"}


def test_empty_fields_are_omitted():
    assert normalize_item({"core": "A", "logic": "", "insight": "   "}) == {"text": "A"}
    assert normalize_item({"logic": "B"}) == {"text": "B"}
    assert normalize_item({}) == {"text": ""}


def test_plain_and_missing_values():
    assert normalize_item("plain") == {"text": "plain"}
    assert normalize_item("  padded \n") == {"text": "padded"}
    assert normalize_item(None) == {"text": ""}


def test_scalars_are_coerced():
    assert normalize_item(42) == {"text": "42"}
    assert normalize_item(True) == {"text": "true"}


def test_non_string_text_falls_through_to_record_fields():
    assert normalize_item({"text": 5, "core": "A"}) == {"text": "A"}


def test_arrays_have_no_record_fields():
    assert normalize_item(["a", "b"]) == {"text": ""}
    assert normalize_item([]) == {"text": ""}
