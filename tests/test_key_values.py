from quiz_ocr.blocks import BlockGraph
from quiz_ocr.key_values import extract_key_values, extract_kv_answers, normalise_kv


def test_key_values_pair_keys_with_values(factory):
    factory.key_value("Name:", "Alice Smith")
    factory.key_value("Email", "alice@example.com")
    kv = extract_key_values(BlockGraph(factory.blocks()))
    assert kv == {"Name:": "Alice Smith", "Email": "alice@example.com"}


def test_key_without_value_text(factory):
    factory.key_value("Team", "")
    assert extract_key_values(BlockGraph(factory.blocks())) == {"Team": ""}


def test_normalise_lifts_name_and_email():
    out = normalise_kv({" Name: ": " Alice ", "E-mail": " a@b.com "})
    assert out["name"] == "Alice"
    assert out["email"] == "a@b.com"
    assert out["Name:"] == "Alice"


def test_unlabelled_email_value_is_found():
    out = normalise_kv({"Contact": "bob@example.com", "Other": "carol@example.com"})
    assert out["email"] == "bob@example.com"


def test_labelled_email_wins_over_unlabelled():
    out = normalise_kv({"Contact": "bob@example.com", "email address": "alice@example.com"})
    assert out["email"] == "alice@example.com"


def test_name_must_start_the_key():
    assert "name" not in normalise_kv({"Team name": "Owls"})
    assert "name" not in normalise_kv({"Names": "x"})


def test_kv_answers_use_the_following_pair():
    kv = {"1": "", "Capital of France?": "PARIS", "2": "", "Largest ocean?": "PACIFIC", "Name": "Alice"}
    assert extract_kv_answers(kv) == {"Q1": "PARIS", "Q2": "PACIFIC"}


def test_kv_answers_respect_max_questions():
    kv = {"1": "", "q1": "A", "12": "", "q12": "B"}
    assert extract_kv_answers(kv, max_q=10) == {"Q1": "A"}


def test_number_as_last_key_is_ignored():
    assert extract_kv_answers({"3": "x"}) == {}
